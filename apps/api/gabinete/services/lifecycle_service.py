"""Entity lifecycle: create, update, soft delete, restore, permanent delete.

Covers constituents and demands. Each mutation commits the primary record
first and then writes the audit entry; a failed audit write leaves the entity
saved and is reported through ``MutationResult.audit_complete``.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar
from uuid import UUID

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import select
from sqlalchemy.orm import Session

from gabinete.core.config import settings
from gabinete.core.structured_logging import build_log_context
from gabinete.db.base import utc_now
from gabinete.db.enums import (
    DemandPriority,
    DemandStatus,
    EntityKind,
    LogAction,
    LogModule,
    TimelineEventType,
)
from gabinete.db.models import (
    Active,
    Constituent,
    Demand,
    PendingDeletion,
    User,
)
from gabinete.services import storage_service
from gabinete.services.audit_service import AuditLog, compute_changes
from gabinete.services.status_rules import DemandLockedError, is_finalized
from gabinete.services.timeline_service import Timeline

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityNotFoundError(LookupError):
    """Raised when an entity id does not resolve."""


@dataclass
class MutationResult(Generic[T]):
    """Outcome of a lifecycle mutation: the entity is saved; the audit may not be."""

    entity: T
    audit_complete: bool = True


# kind -> (model, audit module)
REGISTRY: dict[EntityKind, tuple[type, LogModule]] = {
    EntityKind.CONSTITUENT: (Constituent, LogModule.CONSTITUENT),
    EntityKind.DEMAND: (Demand, LogModule.DEMAND),
}

CONSTITUENT_FIELDS = frozenset(
    {
        "name",
        "document",
        "mobile_phone",
        "email",
        "birth_date",
        "gender",
        "voter_title",
        "electoral_zone",
        "electoral_section",
        "address",
        "geo",
        "tags",
        "is_leadership",
        "leadership_type",
        "notes",
        "responsible_user_id",
    }
)

DEMAND_CREATE_FIELDS = frozenset(
    {
        "constituent_id",
        "category_id",
        "assigned_to_user_id",
        "title",
        "description",
        "priority",
        "deadline",
    }
)

# Status, assignment, external forwarding, protocol and deletion fields
# have dedicated operations
DEMAND_PATCH_FIELDS = frozenset({"title", "description", "priority", "deadline"})

# Patchable columns that must never be set to null
NOT_NULL_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.CONSTITUENT: frozenset(
        {
            "name",
            "document",
            "mobile_phone",
            "address",
            "tags",
            "is_leadership",
            "responsible_user_id",
        }
    ),
    EntityKind.DEMAND: frozenset({"title", "description", "priority"}),
}


def generate_protocol(year: int | None = None, rng: random.Random | None = None) -> str:
    """Human-facing protocol code: REQ-<year>-<4 random digits>."""
    year = year or utc_now().year
    rng = rng or random
    return f"REQ-{year}-{rng.randint(0, 9999):04d}"


def _check_fields(data: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Fields cannot be set here: {', '.join(unknown)}")


def _check_not_null(data: dict[str, Any], required: frozenset[str]) -> None:
    nulls = sorted(field for field in required if field in data and data[field] is None)
    if nulls:
        raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")


class EntityLifecycle:
    """Lifecycle manager for constituents and demands."""

    def __init__(
        self,
        db: Session,
        audit: AuditLog,
        timeline: Timeline,
        protocol_factory: Callable[[], str] = generate_protocol,
    ):
        self.db = db
        self.audit = audit
        self.timeline = timeline
        self.protocol_factory = protocol_factory

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, kind: EntityKind, entity_id: UUID) -> Any:
        model, _ = REGISTRY[EntityKind(kind)]
        entity = self.db.get(model, entity_id)
        if entity is None:
            raise EntityNotFoundError(f"{EntityKind(kind).value} {entity_id} not found")
        return entity

    def get_active(self, kind: EntityKind, entity_id: UUID) -> Any:
        """Like ``get`` but quarantined entities are treated as missing."""
        entity = self.get(kind, entity_id)
        if entity.is_pending_deletion:
            raise EntityNotFoundError(f"{EntityKind(kind).value} {entity_id} not found")
        return entity

    def list_active(self, kind: EntityKind, **filters: Any) -> list[Any]:
        return self._list(kind, pending=False, **filters)

    def list_pending_deletions(self, kind: EntityKind) -> list[Any]:
        return self._list(kind, pending=True)

    def _list(self, kind: EntityKind, pending: bool, **filters: Any) -> list[Any]:
        model, _ = REGISTRY[EntityKind(kind)]
        stmt = select(model).where(model.is_pending_deletion.is_(pending))
        for field, value in filters.items():
            if value is not None:
                stmt = stmt.where(getattr(model, field) == value)
        order = model.deleted_at.desc() if pending else model.created_at.desc()
        return list(self.db.scalars(stmt.order_by(order)).all())

    # =========================================================================
    # Create
    # =========================================================================

    def create(self, kind: EntityKind, data: dict[str, Any], actor: User) -> MutationResult:
        kind = EntityKind(kind)
        now = utc_now()
        stamps = {
            "created_by": actor.id,
            "updated_by": actor.id,
            "created_at": now,
            "updated_at": now,
        }

        if kind == EntityKind.CONSTITUENT:
            _check_fields(data, CONSTITUENT_FIELDS)
            entity = Constituent(**data, **stamps)
            entity.deletion_state = Active()
            self.db.add(entity)
            self.db.commit()
            self.db.refresh(entity)
            meta = {"name": entity.name}
        else:
            entity = self._create_demand(data, actor, stamps)
            meta = {"protocol": entity.protocol, "title": entity.title}

        logger.info(
            "Entity created",
            extra=build_log_context(
                user_id=str(actor.id), entity_kind=kind.value, entity_id=str(entity.id)
            ),
        )
        entry = self.audit.log(LogAction.CREATE, REGISTRY[kind][1], entity.id, actor, meta=meta)
        return MutationResult(entity=entity, audit_complete=entry is not None)

    def _create_demand(
        self, data: dict[str, Any], actor: User, stamps: dict[str, Any]
    ) -> Demand:
        _check_fields(data, DEMAND_CREATE_FIELDS)
        if not data.get("title"):
            raise ValueError("Demand title is required")

        constituent = self.db.get(Constituent, data.get("constituent_id"))
        if constituent is None or constituent.is_pending_deletion:
            raise ValueError("Demand must reference an existing, active constituent")

        fields = dict(data)
        fields["priority"] = DemandPriority(
            fields.get("priority") or DemandPriority.MEDIUM
        ).value

        demand = Demand(
            **fields,
            **stamps,
            protocol=self._allocate_protocol(),
            status=DemandStatus.OPEN.value,
            attachments=[],
        )
        demand.deletion_state = Active()
        self.db.add(demand)
        self.db.flush()
        self.timeline.append(demand, actor, TimelineEventType.CREATION, "Demand opened")
        self.db.refresh(demand)
        return demand

    def _allocate_protocol(self) -> str:
        for _ in range(settings.PROTOCOL_MAX_ATTEMPTS):
            candidate = self.protocol_factory()
            taken = self.db.scalar(select(Demand.id).where(Demand.protocol == candidate))
            if taken is None:
                return candidate
            logger.warning("Protocol collision, retrying", extra={"protocol": candidate})
        raise ValueError("Could not allocate a unique protocol number")

    # =========================================================================
    # Update
    # =========================================================================

    def update(
        self, kind: EntityKind, entity_id: UUID, patch: dict[str, Any], actor: User
    ) -> MutationResult:
        """
        Apply a partial patch.

        Constituents are diffed field by field and the diff is audited.
        Demands take the raw patch; semantic actions (status, external
        update, transfer) write their own timeline and audit entries.
        Finalized demands are read-only until reopened.
        """
        kind = EntityKind(kind)
        entity = self.get_active(kind, entity_id)
        _check_not_null(patch, NOT_NULL_FIELDS[kind])

        if kind == EntityKind.DEMAND:
            _check_fields(patch, DEMAND_PATCH_FIELDS)
            if is_finalized(entity.status):
                raise DemandLockedError(
                    f"Demand {entity.protocol} is finalized ({entity.status}); reopen it first"
                )
            if "priority" in patch:
                patch = {**patch, "priority": DemandPriority(patch["priority"]).value}
            for field, value in patch.items():
                setattr(entity, field, value)
            entity.last_user_name = actor.name
            entity.updated_at = utc_now()
            entity.updated_by = actor.id
            self.db.commit()
            self.db.refresh(entity)
            return MutationResult(entity=entity)

        _check_fields(patch, CONSTITUENT_FIELDS)
        if isinstance(patch.get("address"), dict):
            patch = {**patch, "address": {**(entity.address or {}), **patch["address"]}}
        before = {field: getattr(entity, field) for field in patch}
        changes = compute_changes(before, patch)
        if not changes:
            return MutationResult(entity=entity)

        for field, value in patch.items():
            setattr(entity, field, value)
        entity.updated_at = utc_now()
        entity.updated_by = actor.id
        self.db.commit()
        self.db.refresh(entity)

        entry = self.audit.log(
            LogAction.UPDATE, LogModule.CONSTITUENT, entity.id, actor, changes=changes
        )
        return MutationResult(entity=entity, audit_complete=entry is not None)

    # =========================================================================
    # Quarantine transitions
    # =========================================================================

    def soft_delete(
        self, kind: EntityKind, entity_id: UUID, actor: User, reason: str
    ) -> MutationResult:
        kind = EntityKind(kind)
        entity = self.get(kind, entity_id)
        if entity.is_pending_deletion:
            raise ValueError(f"{kind.value} is already pending deletion")

        # PendingDeletion rejects a blank reason
        state = PendingDeletion(reason=(reason or "").strip(), by=actor.id, at=utc_now())
        entity.deletion_state = state

        if kind == EntityKind.DEMAND:
            self.timeline.append(
                entity,
                actor,
                TimelineEventType.DELETION_REQUESTED,
                f"Deletion requested: {state.reason}",
                metadata={"reason": state.reason},
            )
        else:
            entity.updated_at = state.at
            entity.updated_by = actor.id
            self.db.commit()
        self.db.refresh(entity)

        entry = self.audit.log(
            LogAction.DELETE_REQUESTED,
            REGISTRY[kind][1],
            entity.id,
            actor,
            meta={"reason": state.reason},
        )
        return MutationResult(entity=entity, audit_complete=entry is not None)

    def restore(self, kind: EntityKind, entity_id: UUID, actor: User) -> MutationResult:
        """
        Bring an entity back from quarantine.

        Restoring an active entity leaves it (and its timeline) untouched but
        is still audited, with ``meta.was_pending`` recording the difference.
        """
        kind = EntityKind(kind)
        entity = self.get(kind, entity_id)
        was_pending = entity.is_pending_deletion

        if was_pending:
            entity.deletion_state = Active()
            if kind == EntityKind.DEMAND:
                self.timeline.append(
                    entity, actor, TimelineEventType.RESTORED, "Restored from quarantine"
                )
            else:
                entity.updated_at = utc_now()
                entity.updated_by = actor.id
                self.db.commit()
            self.db.refresh(entity)

        entry = self.audit.log(
            LogAction.RESTORE,
            REGISTRY[kind][1],
            entity.id,
            actor,
            meta={"was_pending": was_pending},
        )
        return MutationResult(entity=entity, audit_complete=entry is not None)

    def permanent_delete(
        self, kind: EntityKind, entity_id: UUID, actor: User
    ) -> MutationResult[None]:
        """
        Irreversibly remove a quarantined entity.

        Timeline rows are kept; stored attachment files are removed.
        """
        kind = EntityKind(kind)
        entity = self.get(kind, entity_id)
        state = entity.deletion_state
        if not isinstance(state, PendingDeletion):
            raise ValueError(
                f"{kind.value} must be pending deletion before it can be permanently deleted"
            )

        meta: dict[str, Any] = {"reason": state.reason}
        storage_keys: list[str] = []
        if kind == EntityKind.DEMAND:
            meta["protocol"] = entity.protocol
            storage_keys = [
                a["storage_key"] for a in (entity.attachments or []) if a.get("storage_key")
            ]
        else:
            meta["name"] = entity.name

        deleted_id = entity.id
        self.db.delete(entity)
        self.db.commit()

        for key in storage_keys:
            self._delete_stored_file(key)

        entry = self.audit.log(LogAction.DELETE, REGISTRY[kind][1], deleted_id, actor, meta=meta)
        return MutationResult(entity=None, audit_complete=entry is not None)

    def _delete_stored_file(self, storage_key: str) -> None:
        try:
            storage_service.delete_file(storage_key)
        except (OSError, BotoCoreError, ClientError):
            # Row is already gone; an orphaned object is left for manual cleanup
            logger.warning("Could not delete stored file", exc_info=True)
