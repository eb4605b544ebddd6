"""Entity kinds managed by the lifecycle (soft delete / quarantine) workflow."""

from enum import Enum


class EntityKind(str, Enum):
    CONSTITUENT = "constituent"
    DEMAND = "demand"
