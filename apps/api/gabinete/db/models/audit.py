"""System-wide audit log model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gabinete.db.base import Base, utc_now


class LogEntry(Base):
    """
    Append-only record of who did what, when.

    The actor is a snapshot (user_id, name, email, role) taken at write time,
    so entries stay accurate after profile changes. Never updated or deleted.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_timestamp", "timestamp"),
        Index("idx_audit_entity_timestamp", "entity_id", "timestamp"),
        Index("idx_audit_module_timestamp", "module", "timestamp"),
        Index("idx_audit_actor_timestamp", "actor_user_id", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    timestamp: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    action: Mapped[str] = mapped_column(String(30), nullable=False)  # LogAction
    module: Mapped[str] = mapped_column(String(30), nullable=False)  # LogModule
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor: Mapped[dict] = mapped_column(JSON, nullable=False)
    # Copy of actor["user_id"] so per-user reads are an indexed query
    actor_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    # [{field, old_value, new_value}]
    changes: Mapped[list | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)
