"""Pydantic schemas for the quarantine review panel."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class QuarantineEntry(BaseModel):
    """Uniform row for either entity kind."""
    id: UUID
    kind: str
    label: str  # constituent name or demand protocol/title
    deletion_reason: str | None
    deleted_at: datetime | None
    deleted_by: UUID | None
