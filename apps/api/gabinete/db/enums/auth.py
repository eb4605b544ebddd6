"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Office team roles.

    - ADMIN: Chief of staff / office admin (quarantine, team, audit trail)
    - ASSESSOR: Field advisor who owns a constituent portfolio
    - STAFF: Front-desk operator
    - PARLIAMENTARY: The elected member (read-mostly)
    """

    ADMIN = "ADMIN"
    ASSESSOR = "ASSESSOR"
    STAFF = "STAFF"
    PARLIAMENTARY = "PARLIAMENTARY"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class UserStatus(str, Enum):
    """Team member account status. Only ACTIVE users may sign in."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
