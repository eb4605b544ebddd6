"""Audit router - API endpoints for viewing the audit trail."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from gabinete.core.config import settings
from gabinete.core.deps import get_audit_log, require_roles
from gabinete.db.enums import ROLES_CAN_VIEW_AUDIT, LogModule
from gabinete.db.models import User
from gabinete.schemas.audit import LogEntryRead
from gabinete.services.audit_service import AuditLog

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=list[LogEntryRead])
def list_audit_logs(
    limit: int = Query(settings.AUDIT_LOG_READ_LIMIT, ge=1, le=settings.AUDIT_LOG_READ_LIMIT),
    module: LogModule | None = Query(None, description="Filter by module"),
    actor_user_id: UUID | None = Query(None, description="Filter by actor"),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(require_roles(list(ROLES_CAN_VIEW_AUDIT))),
):
    """Newest entries first, bounded. Paging beyond the bound is client-side."""
    if actor_user_id:
        return audit.get_logs_by_actor(actor_user_id, limit=limit)
    if module:
        return audit.get_logs_by_module(module, limit=limit)
    return audit.get_all_logs(limit=limit)


@router.get("/entity/{entity_id}", response_model=list[LogEntryRead])
def list_entity_logs(
    entity_id: str,
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(require_roles(list(ROLES_CAN_VIEW_AUDIT))),
):
    return audit.get_logs_by_entity(entity_id)
