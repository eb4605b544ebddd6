"""Audit log service - system-wide record of who did what, when.

Writes are best-effort: the primary record is committed first and a failed
audit write is reported through logging, never raised into the caller.

Guidelines:
- NEVER log secrets (passwords, tokens)
- The actor is a snapshot taken at write time, not a live reference
- Absent optional values are omitted, never stored as null placeholders
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, TypedDict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gabinete.core.config import settings
from gabinete.core.structured_logging import build_log_context
from gabinete.db.enums import LogAction, LogModule
from gabinete.db.models import LogEntry, User

logger = logging.getLogger(__name__)


class FieldChange(TypedDict):
    field: str
    old_value: Any
    new_value: Any


# =============================================================================
# Value helpers
# =============================================================================

def _to_json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value


def strip_absent(value: Any) -> Any:
    """
    Recursively drop ``None`` entries from dicts and lists.

    Also coerces enums, dates and UUIDs into JSON-friendly values.
    """
    if isinstance(value, dict):
        return {
            str(key): strip_absent(item)
            for key, item in value.items()
            if item is not None
        }
    if isinstance(value, (list, tuple)):
        return [strip_absent(item) for item in value if item is not None]
    return _to_json_value(value)


def actor_snapshot(actor: User) -> dict[str, Any]:
    """Copy of the actor's identity at write time."""
    return strip_absent(
        {
            "user_id": str(actor.id),
            "name": actor.name,
            "email": actor.email,
            "role": actor.role,
        }
    )


def compute_changes(
    before: dict[str, Any],
    after: dict[str, Any],
    prefix: str = "",
) -> list[FieldChange]:
    """
    Field-level diff between two snapshots of an entity.

    Only keys present in ``after`` are compared (partial patches). Nested
    dicts are compared per key with a dotted field name (``address.city``).
    """
    changes: list[FieldChange] = []
    for key, new_value in after.items():
        field = f"{prefix}{key}"
        old_value = before.get(key)
        if isinstance(old_value, dict) and isinstance(new_value, dict):
            merged_keys = {**{k: None for k in old_value}, **new_value}
            changes.extend(compute_changes(old_value, merged_keys, prefix=f"{field}."))
            continue
        if _to_json_value(old_value) == _to_json_value(new_value):
            continue
        changes.append(
            FieldChange(field=field, old_value=old_value, new_value=new_value)
        )
    return changes


# =============================================================================
# Audit log component
# =============================================================================

class AuditLog:
    """Session-bound audit log writer and reader."""

    def __init__(self, db: Session, user_agent: str | None = None):
        self.db = db
        self.user_agent = user_agent

    def log(
        self,
        action: LogAction,
        module: LogModule,
        entity_id: str | UUID,
        actor: User,
        changes: Iterable[FieldChange] | None = None,
        meta: dict[str, Any] | None = None,
    ) -> LogEntry | None:
        """
        Append an audit entry.

        Returns:
            The persisted entry, or None when the write failed. Failures are
            logged and never propagate: callers must already have committed
            the primary mutation.
        """
        change_list = strip_absent(list(changes)) if changes else []
        meta_dict = strip_absent({**(meta or {}), "user_agent": self.user_agent})
        entry = LogEntry(
            action=LogAction(action).value,
            module=LogModule(module).value,
            entity_id=str(entity_id),
            actor=actor_snapshot(actor),
            actor_user_id=str(actor.id),
            changes=change_list or None,
            meta=meta_dict or None,
        )
        try:
            self._persist(entry)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Audit log write failed",
                extra=build_log_context(
                    user_id=str(actor.id),
                    entity_id=str(entity_id),
                    action=entry.action,
                ),
            )
            return None
        return entry

    def _persist(self, entry: LogEntry) -> None:
        self.db.add(entry)
        self.db.commit()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_all_logs(self, limit: int | None = None) -> list[LogEntry]:
        """Newest entries first, bounded to ``AUDIT_LOG_READ_LIMIT``."""
        limit = limit or settings.AUDIT_LOG_READ_LIMIT
        stmt = select(LogEntry).order_by(LogEntry.timestamp.desc()).limit(limit)
        return list(self.db.scalars(stmt).all())

    def get_logs_by_entity(self, entity_id: str | UUID) -> list[LogEntry]:
        stmt = (
            select(LogEntry)
            .where(LogEntry.entity_id == str(entity_id))
            .order_by(LogEntry.timestamp.desc())
        )
        return list(self.db.scalars(stmt).all())

    def get_logs_by_module(
        self, module: LogModule, limit: int | None = None
    ) -> list[LogEntry]:
        limit = limit or settings.AUDIT_LOG_READ_LIMIT
        stmt = (
            select(LogEntry)
            .where(LogEntry.module == LogModule(module).value)
            .order_by(LogEntry.timestamp.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt).all())

    def get_logs_by_actor(
        self, user_id: str | UUID, limit: int | None = None
    ) -> list[LogEntry]:
        """That user's newest entries first, bounded to ``AUDIT_LOG_READ_LIMIT``."""
        limit = limit or settings.AUDIT_LOG_READ_LIMIT
        stmt = (
            select(LogEntry)
            .where(LogEntry.actor_user_id == str(user_id))
            .order_by(LogEntry.timestamp.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt).all())

    # -------------------------------------------------------------------------
    # Convenience writers
    # -------------------------------------------------------------------------

    def log_login(self, user: User) -> LogEntry | None:
        return self.log(
            LogAction.LOGIN,
            LogModule.AUTH,
            user.id,
            user,
            meta={"description": "User signed in"},
        )

    def log_user_status_change(
        self, target: User, actor: User, old_status: str, new_status: str
    ) -> LogEntry | None:
        return self.log(
            LogAction.USER_STATUS_CHANGE,
            LogModule.CONTROL_CENTER,
            target.id,
            actor,
            changes=[FieldChange(field="status", old_value=old_status, new_value=new_status)],
        )
