"""SQLAlchemy ORM models."""

from gabinete.db.models.audit import LogEntry
from gabinete.db.models.auth import User
from gabinete.db.models.categories import Category
from gabinete.db.models.constituents import Constituent
from gabinete.db.models.deletion import (
    Active,
    DeletionState,
    PendingDeletion,
    SoftDeleteMixin,
)
from gabinete.db.models.demands import Demand, TimelineEvent

__all__ = [
    "Active",
    "Category",
    "Constituent",
    "DeletionState",
    "Demand",
    "LogEntry",
    "PendingDeletion",
    "SoftDeleteMixin",
    "TimelineEvent",
    "User",
]
