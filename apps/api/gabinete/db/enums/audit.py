"""Audit trail enums."""

from enum import Enum


class LogAction(str, Enum):
    """Actions recorded in the system-wide audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    DELETE_REQUESTED = "DELETE_REQUESTED"
    RESTORE = "RESTORE"
    LOGIN = "LOGIN"
    STATUS_CHANGE = "STATUS_CHANGE"
    CONTACT = "CONTACT"
    COMMENT = "COMMENT"
    EXPORT = "EXPORT"
    USER_STATUS_CHANGE = "USER_STATUS_CHANGE"
    UNLOCK = "UNLOCK"


class LogModule(str, Enum):
    """Functional area an audit entry belongs to."""

    AUTH = "AUTH"
    CONSTITUENT = "CONSTITUENT"
    DEMAND = "DEMAND"
    SYSTEM = "SYSTEM"
    CONTROL_CENTER = "CONTROL_CENTER"
    CATEGORY = "CATEGORY"
