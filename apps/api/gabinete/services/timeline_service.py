"""Demand timeline service.

``Timeline.append`` is the only code path that writes a demand's
``last_action_label``: the event and the mirrored label are committed
together.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gabinete.db.base import utc_now
from gabinete.db.enums import (
    ROLES_CAN_EDIT_TIMELINE,
    ContactChannel,
    ContactDirection,
    LogAction,
    LogModule,
    Role,
    TimelineEventType,
)
from gabinete.db.models import Demand, TimelineEvent, User
from gabinete.services.audit_service import AuditLog, FieldChange, strip_absent

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 50


class Timeline:
    """Session-bound writer/reader for demand timelines."""

    def __init__(self, db: Session, audit: AuditLog):
        self.db = db
        self.audit = audit

    def _next_sequence(self, demand_id: UUID) -> int:
        current = self.db.scalar(
            select(func.max(TimelineEvent.sequence)).where(
                TimelineEvent.parent_id == demand_id
            )
        )
        return (current or 0) + 1

    def append(
        self,
        demand: Demand,
        actor: User,
        event_type: TimelineEventType,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> TimelineEvent:
        """
        Append an event and mirror it onto the demand in the same commit.

        Any pending change to ``demand`` (status, deletion fields, ...) is
        committed together with the event.
        """
        now = utc_now()
        event = TimelineEvent(
            parent_id=demand.id,
            sequence=self._next_sequence(demand.id),
            user_id=actor.id,
            user_name=actor.name,
            type=TimelineEventType(event_type).value,
            description=description,
            event_metadata=strip_absent(metadata or {}),
            created_at=now,
        )
        demand.last_action_label = description
        demand.last_user_name = actor.name
        demand.updated_at = now
        demand.updated_by = actor.id
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def list_for_demand(
        self, demand_id: UUID, newest_first: bool = True
    ) -> list[TimelineEvent]:
        if newest_first:
            order = (TimelineEvent.created_at.desc(), TimelineEvent.sequence.desc())
        else:
            order = (TimelineEvent.created_at.asc(), TimelineEvent.sequence.asc())
        stmt = select(TimelineEvent).where(TimelineEvent.parent_id == demand_id).order_by(*order)
        return list(self.db.scalars(stmt).all())

    def get_event(self, event_id: UUID) -> TimelineEvent | None:
        return self.db.get(TimelineEvent, event_id)

    # -------------------------------------------------------------------------
    # Admin edit
    # -------------------------------------------------------------------------

    def edit_description(
        self, event: TimelineEvent, actor: User, new_description: str
    ) -> TimelineEvent:
        """
        Rewrite an event's description (admins only).

        ``metadata.original_content`` keeps the text from before the FIRST
        edit, so repeated edits never lose the original.
        """
        if Role(actor.role) not in ROLES_CAN_EDIT_TIMELINE:
            raise PermissionError("Only administrators can edit timeline entries")
        new_description = (new_description or "").strip()
        if not new_description:
            raise ValueError("Description cannot be empty")

        old_description = event.description
        if new_description == old_description:
            return event

        metadata = dict(event.event_metadata or {})
        metadata.setdefault("original_content", old_description)
        metadata["is_edited"] = True
        metadata["edited_at"] = utc_now().isoformat()
        metadata["edited_by"] = actor.name

        event.description = new_description
        event.event_metadata = metadata

        # Keep the mirrored label in sync when the newest event is edited
        demand = self.db.get(Demand, event.parent_id)
        if demand is not None and self._is_latest(event):
            demand.last_action_label = new_description

        self.db.commit()
        self.db.refresh(event)

        self.audit.log(
            LogAction.UPDATE,
            LogModule.DEMAND,
            event.parent_id,
            actor,
            changes=[
                FieldChange(
                    field="timeline.description",
                    old_value=old_description,
                    new_value=new_description,
                )
            ],
            meta={"event_id": str(event.id)},
        )
        return event

    def _is_latest(self, event: TimelineEvent) -> bool:
        latest = self.db.scalar(
            select(func.max(TimelineEvent.sequence)).where(
                TimelineEvent.parent_id == event.parent_id
            )
        )
        return latest == event.sequence

    # -------------------------------------------------------------------------
    # Convenience appenders
    # -------------------------------------------------------------------------

    def add_comment(self, demand: Demand, actor: User, text: str) -> TimelineEvent:
        text = (text or "").strip()
        if not text:
            raise ValueError("Comment cannot be empty")
        event = self.append(demand, actor, TimelineEventType.COMMENT, text)
        self.audit.log(
            LogAction.COMMENT,
            LogModule.DEMAND,
            demand.id,
            actor,
            meta={"preview": text[:COMMENT_PREVIEW_LENGTH]},
        )
        return event

    def register_contact(
        self,
        demand: Demand,
        actor: User,
        channel: ContactChannel,
        direction: ContactDirection,
        notes: str | None = None,
    ) -> TimelineEvent:
        channel = ContactChannel(channel)
        direction = ContactDirection(direction)
        label = "Contacted constituent" if direction == ContactDirection.OUTBOUND else (
            "Constituent got in touch"
        )
        description = f"{label} via {channel.value}"
        if notes and notes.strip():
            description = f"{description}: {notes.strip()}"
        event = self.append(
            demand,
            actor,
            TimelineEventType.CONTACT,
            description,
            metadata={"channel": channel.value, "direction": direction.value},
        )
        self.audit.log(
            LogAction.CONTACT,
            LogModule.DEMAND,
            demand.id,
            actor,
            meta={"channel": channel.value, "direction": direction.value},
        )
        return event
