"""Constituent enums."""

from enum import Enum


class LeadershipType(str, Enum):
    """Community leadership classification."""

    COMMUNITY = "COMMUNITY"
    RELIGIOUS = "RELIGIOUS"
    SPORTS = "SPORTS"
    UNION = "UNION"
    OTHER = "OTHER"
    NONE = "NONE"


class Gender(str, Enum):
    M = "M"
    F = "F"
    OTHER = "OTHER"
