"""Constituent model."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gabinete.db.base import Base, utc_now
from gabinete.db.models.deletion import SoftDeleteMixin


class Constituent(SoftDeleteMixin, Base):
    """
    A person known to the office.

    ``address`` is an embedded document (zip_code, street, number,
    neighborhood, city, state, complement) and ``geo`` an optional
    ``{"lat": .., "lng": ..}`` pair filled by the geocoding job.
    """

    __tablename__ = "constituents"
    __table_args__ = (
        Index("idx_constituents_pending", "is_pending_deletion"),
        Index("idx_constituents_responsible", "responsible_user_id"),
        Index("idx_constituents_document", "document"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    document: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    mobile_phone: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    voter_title: Mapped[str | None] = mapped_column(String(20), nullable=True)
    electoral_zone: Mapped[str | None] = mapped_column(String(10), nullable=True)
    electoral_section: Mapped[str | None] = mapped_column(String(10), nullable=True)

    address: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    geo: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)

    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_leadership: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    leadership_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Weak reference to users.id; empty string means office-general
    responsible_user_id: Mapped[str] = mapped_column(String(36), nullable=False, default="")

    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
