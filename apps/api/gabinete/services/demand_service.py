"""Demand semantic actions: status changes, external forwarding, transfer, attachments.

Plain lifecycle updates on demands are not audited field by field; these
actions are, each with its own timeline event.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, BinaryIO
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gabinete.db.base import utc_now
from gabinete.db.enums import (
    DemandStatus,
    EntityKind,
    LogAction,
    LogModule,
    TimelineEventType,
    UserStatus,
)
from gabinete.db.models import Category, Constituent, Demand, User
from gabinete.services import storage_service
from gabinete.services.audit_service import FieldChange, compute_changes
from gabinete.services.lifecycle_service import EntityLifecycle, MutationResult
from gabinete.services.status_rules import (
    DemandLockedError,
    is_finalized,
    is_reopen,
    transition_label,
    validate_transition,
)

logger = logging.getLogger(__name__)


def _get_editable(lifecycle: EntityLifecycle, demand_id: UUID) -> Demand:
    demand = lifecycle.get_active(EntityKind.DEMAND, demand_id)
    if is_finalized(demand.status):
        raise DemandLockedError(
            f"Demand {demand.protocol} is finalized ({demand.status}); reopen it first"
        )
    return demand


# =============================================================================
# Status
# =============================================================================

def update_status(
    lifecycle: EntityLifecycle,
    demand_id: UUID,
    actor: User,
    new_status: DemandStatus | str,
    reason: str | None = None,
) -> MutationResult[Demand]:
    """
    Move a demand through the status state machine.

    Every change is audited as STATUS_CHANGE. Reopening a finalized demand
    (-> OPEN) requires a reason and is flagged with ``meta.reopen``.
    """
    demand = lifecycle.get_active(EntityKind.DEMAND, demand_id)
    old, new = validate_transition(demand.status, new_status, reason)
    reopen = is_reopen(old, new)
    clean_reason = reason.strip() if reason and reason.strip() else None

    metadata: dict[str, Any] = {"old": old.value, "new": new.value}
    if reopen:
        metadata["reason"] = clean_reason

    demand.status = new.value
    lifecycle.timeline.append(
        demand,
        actor,
        TimelineEventType.STATUS_CHANGE,
        transition_label(old, new, clean_reason),
        metadata=metadata,
    )
    lifecycle.db.refresh(demand)

    entry = lifecycle.audit.log(
        LogAction.STATUS_CHANGE,
        LogModule.DEMAND,
        demand.id,
        actor,
        changes=[FieldChange(field="status", old_value=old.value, new_value=new.value)],
        meta={"reason": clean_reason, "reopen": True if reopen else None},
    )
    return MutationResult(entity=demand, audit_complete=entry is not None)


# =============================================================================
# External forwarding / transfer
# =============================================================================

def update_external(
    lifecycle: EntityLifecycle,
    demand_id: UUID,
    actor: User,
    external_sector: str,
    protocol_external: str | None = None,
    protocol_date: date | None = None,
    external_link: str | None = None,
) -> MutationResult[Demand]:
    """Record that the demand was forwarded to an outside government body."""
    demand = _get_editable(lifecycle, demand_id)
    if not external_sector or not external_sector.strip():
        raise ValueError("External sector is required")

    patch = {
        "external_sector": external_sector.strip(),
        "protocol_external": protocol_external,
        "protocol_date": protocol_date,
        "external_link": external_link,
    }
    before = {field: getattr(demand, field) for field in patch}
    changes = compute_changes(before, patch)
    for field, value in patch.items():
        setattr(demand, field, value)

    description = f"Linked external documentation. Agency: {patch['external_sector']}"
    if protocol_external:
        description = f"{description} | Protocol: {protocol_external}"
    lifecycle.timeline.append(
        demand,
        actor,
        TimelineEventType.EXTERNAL_UPDATE,
        description,
        metadata={"external_sector": patch["external_sector"], "protocol_external": protocol_external},
    )
    lifecycle.db.refresh(demand)

    entry = lifecycle.audit.log(
        LogAction.UPDATE, LogModule.DEMAND, demand.id, actor, changes=changes
    )
    return MutationResult(entity=demand, audit_complete=entry is not None)


def transfer(
    lifecycle: EntityLifecycle,
    demand_id: UUID,
    actor: User,
    assigned_to_user_id: UUID,
    category_id: UUID | None = None,
) -> MutationResult[Demand]:
    """Hand the demand to another team member, optionally under another category."""
    demand = _get_editable(lifecycle, demand_id)
    db = lifecycle.db

    assignee = db.get(User, assigned_to_user_id)
    if assignee is None or assignee.status != UserStatus.ACTIVE.value:
        raise ValueError("Assignee must be an active team member")

    patch: dict[str, Any] = {"assigned_to_user_id": assignee.id}
    description = f"Transferred to {assignee.name}"
    if category_id is not None:
        category = db.get(Category, category_id)
        if category is None:
            raise ValueError("Category not found")
        patch["category_id"] = category.id
        description = f"{description} ({category.name})"

    before = {field: getattr(demand, field) for field in patch}
    changes = compute_changes(before, patch)
    if not changes:
        raise ValueError("Demand is already assigned there")
    for field, value in patch.items():
        setattr(demand, field, value)

    lifecycle.timeline.append(
        demand,
        actor,
        TimelineEventType.ASSIGNMENT,
        description,
        metadata={
            "from_user_id": before["assigned_to_user_id"],
            "to_user_id": assignee.id,
        },
    )
    lifecycle.db.refresh(demand)

    entry = lifecycle.audit.log(
        LogAction.UPDATE, LogModule.DEMAND, demand.id, actor, changes=changes
    )
    return MutationResult(entity=demand, audit_complete=entry is not None)


# =============================================================================
# Attachments
# =============================================================================

def add_attachment(
    lifecycle: EntityLifecycle,
    demand_id: UUID,
    actor: User,
    filename: str,
    content_type: str,
    file: BinaryIO,
) -> tuple[dict[str, Any], MutationResult[Demand]]:
    """Upload a file and append its metadata to the demand."""
    demand = lifecycle.get_active(EntityKind.DEMAND, demand_id)

    size = storage_service.file_size(file)
    is_valid, error = storage_service.validate_file(filename, content_type, size)
    if not is_valid:
        raise ValueError(error)

    storage_key = storage_service.build_storage_key(f"demands/{demand.id}", filename)
    checksum = storage_service.calculate_checksum(file)
    storage_service.store_file(storage_key, file)

    attachment = {
        "id": str(uuid.uuid4()),
        "name": filename,
        "type": content_type,
        "size": size,
        "url": storage_service.generate_url(storage_key),
        "created_at": utc_now().isoformat(),
        "storage_key": storage_key,
        "checksum_sha256": checksum,
    }
    # Reassign so the JSON column registers the change
    demand.attachments = [*(demand.attachments or []), attachment]
    lifecycle.timeline.append(
        demand,
        actor,
        TimelineEventType.DOCUMENT_UPLOAD,
        f"Attached file: {filename}",
        metadata={"attachment_id": attachment["id"]},
    )
    lifecycle.db.refresh(demand)

    entry = lifecycle.audit.log(
        LogAction.UPDATE,
        LogModule.DEMAND,
        demand.id,
        actor,
        meta={"attachment": filename, "size": size},
    )
    return attachment, MutationResult(entity=demand, audit_complete=entry is not None)


# =============================================================================
# Dashboard
# =============================================================================

def birthdays_on(db: Session, on: date) -> list[Constituent]:
    """Active constituents whose birthday (day and month) falls on ``on``."""
    stmt = (
        select(Constituent)
        .where(Constituent.is_pending_deletion.is_(False), Constituent.birth_date.is_not(None))
        .order_by(Constituent.name)
    )
    return [
        c for c in db.scalars(stmt).all()
        if (c.birth_date.month, c.birth_date.day) == (on.month, on.day)
    ]


def count_active_neighborhoods(db: Session) -> int:
    """Distinct non-blank neighborhoods across active constituents."""
    addresses = db.scalars(
        select(Constituent.address).where(Constituent.is_pending_deletion.is_(False))
    ).all()
    return len({
        ((address or {}).get("neighborhood") or "").strip().upper()
        for address in addresses
    } - {""})


def summary_stats(db: Session, today: date | None = None) -> dict[str, Any]:
    """KPIs for the dashboard (quarantined records excluded).

    ``today`` defaults to the local date and drives the birthday count.
    """
    active_demands = Demand.is_pending_deletion.is_(False)

    def count_status(status: DemandStatus) -> int:
        return db.scalar(
            select(func.count(Demand.id)).where(active_demands, Demand.status == status.value)
        ) or 0

    total_constituents = db.scalar(
        select(func.count(Constituent.id)).where(Constituent.is_pending_deletion.is_(False))
    ) or 0

    by_category_rows = db.execute(
        select(Demand.category_id, func.count(Demand.id))
        .where(active_demands)
        .group_by(Demand.category_id)
    ).all()
    category_names = {c.id: c.name for c in db.scalars(select(Category)).all()}
    demands_by_category = sorted(
        (
            {
                "category_id": category_id,
                "name": category_names.get(category_id, "Uncategorized"),
                "count": count,
            }
            for category_id, count in by_category_rows
        ),
        key=lambda row: row["count"],
        reverse=True,
    )

    resolved_rows = dict(
        db.execute(
            select(Demand.assigned_to_user_id, func.count(Demand.id))
            .where(active_demands, Demand.status == DemandStatus.SUCCESS.value)
            .group_by(Demand.assigned_to_user_id)
        ).all()
    )
    team_productivity = sorted(
        (
            {"user_name": user.name, "resolved_count": resolved_rows.get(user.id, 0)}
            for user in db.scalars(select(User)).all()
        ),
        key=lambda row: row["resolved_count"],
        reverse=True,
    )

    return {
        "total_constituents": total_constituents,
        "open_demands": count_status(DemandStatus.OPEN),
        "waiting_demands": count_status(DemandStatus.WAITING_THIRD_PARTY),
        "finished_demands": count_status(DemandStatus.SUCCESS),
        "demands_by_category": demands_by_category,
        "team_productivity": team_productivity,
        "birthdays_today": len(birthdays_on(db, today or date.today())),
        "active_neighborhoods": count_active_neighborhoods(db),
    }
