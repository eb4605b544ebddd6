"""Quarantine router - admin review of soft-deleted records.

This is the only router exposing restore and permanent deletion.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status

from gabinete.core.deps import (
    AUDIT_INCOMPLETE_HEADER,
    get_lifecycle,
    mark_audit_result,
    require_csrf_header,
    require_roles,
)
from gabinete.db.enums import ROLES_CAN_REVIEW_QUARANTINE, EntityKind
from gabinete.db.models import Demand, User
from gabinete.schemas.quarantine import QuarantineEntry
from gabinete.services import quarantine_service
from gabinete.services.lifecycle_service import EntityLifecycle, EntityNotFoundError

router = APIRouter(prefix="/quarantine", tags=["Quarantine"])


def _to_entry(kind: EntityKind, entity) -> QuarantineEntry:
    if isinstance(entity, Demand):
        label = f"{entity.protocol} - {entity.title}"
    else:
        label = entity.name
    return QuarantineEntry(
        id=entity.id,
        kind=kind.value,
        label=label,
        deletion_reason=entity.deletion_reason,
        deleted_at=entity.deleted_at,
        deleted_by=entity.deleted_by,
    )


@router.get("/{kind}", response_model=list[QuarantineEntry])
def list_pending_deletions(
    kind: EntityKind,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_roles(list(ROLES_CAN_REVIEW_QUARANTINE))),
):
    return [_to_entry(kind, e) for e in quarantine_service.get_pending_deletions(lifecycle, kind)]


@router.post(
    "/{kind}/{entity_id}/restore",
    response_model=QuarantineEntry,
    dependencies=[Depends(require_csrf_header)],
)
def restore_entity(
    kind: EntityKind,
    entity_id: UUID,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_roles(list(ROLES_CAN_REVIEW_QUARANTINE))),
):
    try:
        result = quarantine_service.restore(lifecycle, kind, entity_id, user)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Record not found")
    mark_audit_result(response, result.audit_complete)
    return _to_entry(kind, result.entity)


@router.delete(
    "/{kind}/{entity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def purge_entity(
    kind: EntityKind,
    entity_id: UUID,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_roles(list(ROLES_CAN_REVIEW_QUARANTINE))),
):
    """Permanently delete a quarantined record. Irreversible."""
    try:
        result = quarantine_service.purge(lifecycle, kind, entity_id, user)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Record not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    headers = {} if result.audit_complete else {AUDIT_INCOMPLETE_HEADER: "true"}
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)
