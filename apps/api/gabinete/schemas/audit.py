"""Pydantic schemas for the audit trail."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class LogEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    timestamp: datetime
    action: str
    module: str
    entity_id: str
    actor: dict
    changes: list[dict] | None
    meta: dict | None
