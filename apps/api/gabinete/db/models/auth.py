"""Team member model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gabinete.db.base import Base, utc_now
from gabinete.db.enums import Role, UserStatus


class User(Base):
    """
    Office team member.

    Referenced weakly (plain UUID columns) by constituents, demands and the
    actor snapshot of audit entries.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.STAFF.value)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserStatus.ACTIVE.value
    )
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Category ids the user may act within
    sectors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Auto-provisioned users have no password until an admin sets one
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Bumped on deactivation / password reset to revoke session cookies
    token_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, default=utc_now, onupdate=utc_now
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value
