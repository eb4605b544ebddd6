"""Categories router - demand sectors."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from gabinete.core.deps import (
    get_audit_log,
    get_current_user,
    get_db,
    require_csrf_header,
    require_roles,
)
from gabinete.db.enums import ROLES_CAN_MANAGE_TEAM
from gabinete.db.models import User
from gabinete.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from gabinete.services import category_service
from gabinete.services.audit_service import AuditLog

router = APIRouter(tags=["Categories"])


@router.get("", response_model=list[CategoryRead])
def list_categories(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return category_service.list_categories(db)


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(require_roles(list(ROLES_CAN_MANAGE_TEAM))),
):
    try:
        return category_service.create_category(db, audit, user, data.name, data.color)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.patch(
    "/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(require_roles(list(ROLES_CAN_MANAGE_TEAM))),
):
    category = category_service.get_category(db, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    try:
        return category_service.update_category(
            db, audit, user, category, data.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
