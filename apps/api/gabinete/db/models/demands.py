"""Demand (protocol) and timeline models."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Date, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gabinete.db.base import Base, utc_now
from gabinete.db.enums import DEFAULT_DEMAND_PRIORITY, DEFAULT_DEMAND_STATUS
from gabinete.db.models.deletion import SoftDeleteMixin


class Demand(SoftDeleteMixin, Base):
    """
    Service request tied to exactly one constituent.

    ``last_action_label`` / ``last_user_name`` mirror the newest timeline
    event and are written only by the timeline service.
    """

    __tablename__ = "demands"
    __table_args__ = (
        Index("idx_demands_pending", "is_pending_deletion"),
        Index("idx_demands_constituent", "constituent_id"),
        Index("idx_demands_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    protocol: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    # Weak references (no FK constraints)
    constituent_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    category_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    assigned_to_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    title: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=DEFAULT_DEMAND_PRIORITY.value
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DEFAULT_DEMAND_STATUS.value
    )
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    # [{id, name, type, size, url, created_at}]
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Forwarded to an outside government body
    external_sector: Mapped[str | None] = mapped_column(String(255), nullable=True)
    protocol_external: Mapped[str | None] = mapped_column(String(100), nullable=True)
    protocol_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    external_link: Mapped[str | None] = mapped_column(String(500), nullable=True)

    last_action_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)


class TimelineEvent(Base):
    """
    Narrative event on a demand's timeline.

    Append-only except for admin description edits. ``sequence`` breaks
    ``created_at`` ties so events for one demand are totally ordered.
    Rows outlive their demand (``parent_id`` is a weak reference).
    """

    __tablename__ = "timeline_events"
    __table_args__ = (Index("idx_timeline_parent_sequence", "parent_id", "sequence"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    parent_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
