"""Soft-delete (quarantine) state shared by constituents and demands."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Boolean, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


@dataclass(frozen=True)
class Active:
    """Entity visible in normal listings."""


@dataclass(frozen=True)
class PendingDeletion:
    """Entity parked in quarantine awaiting admin review."""

    reason: str
    by: uuid.UUID
    at: datetime

    def __post_init__(self) -> None:
        if not self.reason or not self.reason.strip():
            raise ValueError("Deletion reason is required")
        if self.by is None:
            raise ValueError("Deletion actor is required")


DeletionState = Active | PendingDeletion


class SoftDeleteMixin:
    """
    DeletionAudit columns.

    The four columns are only written through ``deletion_state`` so that
    ``is_pending_deletion`` always implies a non-empty reason and an actor.
    """

    is_pending_deletion: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    deletion_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    @property
    def deletion_state(self) -> DeletionState:
        if not self.is_pending_deletion:
            return Active()
        return PendingDeletion(
            reason=self.deletion_reason or "",
            by=self.deleted_by,  # type: ignore[arg-type]
            at=self.deleted_at,  # type: ignore[arg-type]
        )

    @deletion_state.setter
    def deletion_state(self, state: DeletionState) -> None:
        if isinstance(state, PendingDeletion):
            self.is_pending_deletion = True
            self.deletion_reason = state.reason.strip()
            self.deleted_by = state.by
            self.deleted_at = state.at
        else:
            self.is_pending_deletion = False
            self.deletion_reason = None
            self.deleted_by = None
            self.deleted_at = None
