"""Enum definitions for application constants."""

from gabinete.db.enums.audit import LogAction, LogModule
from gabinete.db.enums.auth import Role, UserStatus
from gabinete.db.enums.constituents import Gender, LeadershipType
from gabinete.db.enums.demands import (
    ContactChannel,
    ContactDirection,
    DemandPriority,
    DemandStatus,
    TimelineEventType,
)
from gabinete.db.enums.entities import EntityKind
from gabinete.db.enums.permissions import (
    ROLES_CAN_EDIT_TIMELINE,
    ROLES_CAN_IMPORT,
    ROLES_CAN_MANAGE_TEAM,
    ROLES_CAN_REVIEW_QUARANTINE,
    ROLES_CAN_VIEW_AUDIT,
)

DEFAULT_DEMAND_STATUS = DemandStatus.OPEN
DEFAULT_DEMAND_PRIORITY = DemandPriority.MEDIUM

__all__ = [
    "ContactChannel",
    "ContactDirection",
    "DEFAULT_DEMAND_PRIORITY",
    "DEFAULT_DEMAND_STATUS",
    "DemandPriority",
    "DemandStatus",
    "EntityKind",
    "Gender",
    "LeadershipType",
    "LogAction",
    "LogModule",
    "ROLES_CAN_EDIT_TIMELINE",
    "ROLES_CAN_IMPORT",
    "ROLES_CAN_MANAGE_TEAM",
    "ROLES_CAN_REVIEW_QUARANTINE",
    "ROLES_CAN_VIEW_AUDIT",
    "Role",
    "TimelineEventType",
    "UserStatus",
]
