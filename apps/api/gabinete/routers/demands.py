"""Demands router - protocols, status workflow, timeline, attachments."""

from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)
from sqlalchemy.orm import Session

from gabinete.core.deps import (
    get_current_user,
    get_db,
    get_lifecycle,
    get_timeline,
    mark_audit_result,
    require_csrf_header,
)
from gabinete.db.enums import DemandPriority, DemandStatus, EntityKind
from gabinete.db.models import Demand, User
from gabinete.schemas.constituent import DeletionRequest
from gabinete.schemas.demand import (
    AttachmentRead,
    CommentCreate,
    ContactCreate,
    DemandCreate,
    DemandExternalUpdate,
    DemandRead,
    DemandStats,
    DemandStatusUpdate,
    DemandTransfer,
    DemandUpdate,
    TimelineEdit,
    TimelineEventRead,
)
from gabinete.services import demand_service
from gabinete.services.lifecycle_service import EntityLifecycle, EntityNotFoundError
from gabinete.services.status_rules import DemandLockedError, StatusTransitionError
from gabinete.services.timeline_service import Timeline

router = APIRouter(tags=["Demands"])


def _get_demand(lifecycle: EntityLifecycle, demand_id: UUID) -> Demand:
    try:
        return lifecycle.get_active(EntityKind.DEMAND, demand_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Demand not found")


# =============================================================================
# List / Stats / Detail
# =============================================================================

@router.get("", response_model=list[DemandRead])
def list_demands(
    status: DemandStatus | None = None,
    priority: DemandPriority | None = None,
    constituent_id: UUID | None = None,
    category_id: UUID | None = None,
    assigned_to_user_id: UUID | None = None,
    q: str | None = Query(None, description="Search protocol or title"),
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """List active demands, newest first."""
    items = lifecycle.list_active(
        EntityKind.DEMAND,
        status=status.value if status else None,
        priority=priority.value if priority else None,
        constituent_id=constituent_id,
        category_id=category_id,
        assigned_to_user_id=assigned_to_user_id,
    )
    if q:
        needle = q.strip().lower()
        items = [d for d in items if needle in d.protocol.lower() or needle in d.title.lower()]
    return items


@router.get("/stats", response_model=DemandStats)
def get_demand_stats(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Dashboard KPIs."""
    return demand_service.summary_stats(db)


@router.get("/{demand_id}", response_model=DemandRead)
def get_demand(
    demand_id: UUID,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return _get_demand(lifecycle, demand_id)


# =============================================================================
# Create / Update / Quarantine
# =============================================================================

@router.post(
    "",
    response_model=DemandRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_demand(
    data: DemandCreate,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """Open a demand; a protocol number and a CREATION timeline event are generated."""
    try:
        result = lifecycle.create(EntityKind.DEMAND, data.model_dump(), user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return result.entity


@router.patch(
    "/{demand_id}",
    response_model=DemandRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_demand(
    demand_id: UUID,
    data: DemandUpdate,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """Edit title, description, priority or deadline of a demand that is not finalized."""
    _get_demand(lifecycle, demand_id)
    try:
        result = lifecycle.update(
            EntityKind.DEMAND, demand_id, data.model_dump(exclude_unset=True), user
        )
    except DemandLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.entity


@router.post(
    "/{demand_id}/quarantine",
    response_model=DemandRead,
    dependencies=[Depends(require_csrf_header)],
)
def request_demand_deletion(
    demand_id: UUID,
    data: DeletionRequest,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """Send a demand to quarantine. Permanent deletion happens only from /quarantine."""
    _get_demand(lifecycle, demand_id)
    try:
        result = lifecycle.soft_delete(EntityKind.DEMAND, demand_id, user, data.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return result.entity


# =============================================================================
# Semantic actions
# =============================================================================

@router.patch(
    "/{demand_id}/status",
    response_model=DemandRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_demand_status(
    demand_id: UUID,
    data: DemandStatusUpdate,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """
    Change status.

    Finalized demands (SUCCESS, UNFEASIBLE, ARCHIVED) only accept OPEN,
    with a reason (reopen).
    """
    _get_demand(lifecycle, demand_id)
    try:
        result = demand_service.update_status(
            lifecycle, demand_id, user, data.status, data.reason
        )
    except StatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return result.entity


@router.patch(
    "/{demand_id}/external",
    response_model=DemandRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_demand_external(
    demand_id: UUID,
    data: DemandExternalUpdate,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    """Link the protocol opened with an outside government body."""
    _get_demand(lifecycle, demand_id)
    try:
        result = demand_service.update_external(
            lifecycle,
            demand_id,
            user,
            external_sector=data.external_sector,
            protocol_external=data.protocol_external,
            protocol_date=data.protocol_date,
            external_link=data.external_link,
        )
    except DemandLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return result.entity


@router.post(
    "/{demand_id}/transfer",
    response_model=DemandRead,
    dependencies=[Depends(require_csrf_header)],
)
def transfer_demand(
    demand_id: UUID,
    data: DemandTransfer,
    response: Response,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    _get_demand(lifecycle, demand_id)
    try:
        result = demand_service.transfer(
            lifecycle, demand_id, user, data.assigned_to_user_id, data.category_id
        )
    except DemandLockedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return result.entity


@router.post(
    "/{demand_id}/attachments",
    response_model=AttachmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def upload_demand_attachment(
    demand_id: UUID,
    response: Response,
    file: UploadFile = File(...),
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    _get_demand(lifecycle, demand_id)
    try:
        attachment, result = demand_service.add_attachment(
            lifecycle,
            demand_id,
            user,
            filename=file.filename or "upload",
            content_type=file.content_type or "application/octet-stream",
            file=file.file,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    mark_audit_result(response, result.audit_complete)
    return attachment


# =============================================================================
# Timeline
# =============================================================================

@router.get("/{demand_id}/timeline", response_model=list[TimelineEventRead])
def get_demand_timeline(
    demand_id: UUID,
    newest_first: bool = True,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    timeline: Timeline = Depends(get_timeline),
    user: User = Depends(get_current_user),
):
    _get_demand(lifecycle, demand_id)
    return timeline.list_for_demand(demand_id, newest_first=newest_first)


@router.post(
    "/{demand_id}/comments",
    response_model=TimelineEventRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def add_demand_comment(
    demand_id: UUID,
    data: CommentCreate,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    timeline: Timeline = Depends(get_timeline),
    user: User = Depends(get_current_user),
):
    demand = _get_demand(lifecycle, demand_id)
    try:
        return timeline.add_comment(demand, user, data.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{demand_id}/contacts",
    response_model=TimelineEventRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def register_demand_contact(
    demand_id: UUID,
    data: ContactCreate,
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    timeline: Timeline = Depends(get_timeline),
    user: User = Depends(get_current_user),
):
    demand = _get_demand(lifecycle, demand_id)
    return timeline.register_contact(demand, user, data.channel, data.direction, data.notes)


@router.patch(
    "/{demand_id}/timeline/{event_id}",
    response_model=TimelineEventRead,
    dependencies=[Depends(require_csrf_header)],
)
def edit_timeline_event(
    demand_id: UUID,
    event_id: UUID,
    data: TimelineEdit,
    timeline: Timeline = Depends(get_timeline),
    user: User = Depends(get_current_user),
):
    """Rewrite an event's text (admins only); the original text is preserved."""
    event = timeline.get_event(event_id)
    if not event or event.parent_id != demand_id:
        raise HTTPException(status_code=404, detail="Timeline event not found")
    try:
        return timeline.edit_description(event, user, data.description)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
