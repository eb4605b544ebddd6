"""Constituents router - registry, quarantine requests, history."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from gabinete.core.deps import (
    get_audit_log,
    get_current_user,
    get_db,
    get_lifecycle,
    mark_audit_result,
    require_csrf_header,
)
from gabinete.db.enums import EntityKind
from gabinete.db.models import User
from gabinete.schemas.audit import LogEntryRead
from gabinete.schemas.constituent import (
    ConstituentCreate,
    ConstituentRead,
    ConstituentUpdate,
    DeletionRequest,
)
from gabinete.schemas.demand import DemandRead
from gabinete.services import demand_service
from gabinete.services.audit_service import AuditLog
from gabinete.services.lifecycle_service import EntityLifecycle, EntityNotFoundError
from gabinete.utils.normalization import digits_only

router = APIRouter(tags=["Constituents"])


def _matches(constituent, q: str) -> bool:
    needle = q.strip().lower()
    digits = digits_only(q)
    if needle in constituent.name.lower():
        return True
    if digits and (digits in constituent.document or digits in constituent.mobile_phone):
        return True
    return any(needle.upper() in tag for tag in constituent.tags or [])


# =============================================================================
# List / Detail
# =============================================================================

@router.get("", response_model=list[ConstituentRead])
def list_constituents(
    q: str | None = Query(None, description="Search name, document, phone or tag"),
    responsible_user_id: str | None = Query(None, description="'' for office-general"),
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """List active constituents (quarantined records are never listed here)."""
    items = lifecycle.list_active(
        EntityKind.CONSTITUENT, responsible_user_id=responsible_user_id
    )
    if q:
        items = [c for c in items if _matches(c, q)]
    return items


@router.get("/birthdays", response_model=list[ConstituentRead])
def list_birthdays(
    on: date | None = Query(None, description="Defaults to today"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Active constituents with a birthday on the given day (year ignored)."""
    return demand_service.birthdays_on(db, on or date.today())


@router.get("/{constituent_id}", response_model=ConstituentRead)
def get_constituent(
    constituent_id: UUID,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    try:
        return lifecycle.get_active(EntityKind.CONSTITUENT, constituent_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Constituent not found")


@router.get("/{constituent_id}/demands", response_model=list[DemandRead])
def list_constituent_demands(
    constituent_id: UUID,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.list_active(EntityKind.DEMAND, constituent_id=constituent_id)


@router.get("/{constituent_id}/history", response_model=list[LogEntryRead])
def get_constituent_history(
    constituent_id: UUID,
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(get_current_user),
):
    """Audit entries for this constituent, newest first."""
    return audit.get_logs_by_entity(constituent_id)


# =============================================================================
# Mutations
# =============================================================================

@router.post(
    "",
    response_model=ConstituentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_constituent(
    data: ConstituentCreate,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    result = lifecycle.create(EntityKind.CONSTITUENT, data.model_dump(), user)
    mark_audit_result(response, result.audit_complete)
    return result.entity


@router.patch(
    "/{constituent_id}",
    response_model=ConstituentRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_constituent(
    constituent_id: UUID,
    data: ConstituentUpdate,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """Partial update; the field-level diff is recorded in the audit trail."""
    patch = data.model_dump(exclude_unset=True)
    try:
        result = lifecycle.update(EntityKind.CONSTITUENT, constituent_id, patch, user)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Constituent not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return result.entity


@router.post(
    "/{constituent_id}/quarantine",
    response_model=ConstituentRead,
    dependencies=[Depends(require_csrf_header)],
)
def request_constituent_deletion(
    constituent_id: UUID,
    data: DeletionRequest,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """Send a constituent to quarantine. Permanent deletion happens only from /quarantine."""
    try:
        result = lifecycle.soft_delete(EntityKind.CONSTITUENT, constituent_id, user, data.reason)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Constituent not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return result.entity
