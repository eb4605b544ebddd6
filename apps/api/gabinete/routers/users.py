"""Users router - team management (control center) and own profile."""

from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from gabinete.core.deps import (
    get_audit_log,
    get_current_user,
    get_db,
    require_csrf_header,
    require_roles,
)
from gabinete.db.enums import ROLES_CAN_MANAGE_TEAM, Role, UserStatus
from gabinete.db.models import User
from gabinete.schemas.audit import LogEntryRead
from gabinete.schemas.user import (
    PasswordSet,
    UserCreate,
    UserRead,
    UserStatusUpdate,
    UserUpdate,
)
from gabinete.services import user_service
from gabinete.services.audit_service import AuditLog

router = APIRouter(tags=["Users"])


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    target = user_service.get_user(db, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return target


@router.get("", response_model=list[UserRead])
def list_users(
    role: Role | None = None,
    user_status: UserStatus | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return user_service.list_users(db, role=role, status=user_status)


@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(require_roles(list(ROLES_CAN_MANAGE_TEAM))),
):
    try:
        return user_service.create_user(
            db,
            audit,
            user,
            name=data.name,
            email=data.email,
            role=data.role,
            password=data.password,
            username=data.username,
            phone=data.phone,
            sectors=[str(s) for s in data.sectors],
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=UserRead, dependencies=[Depends(require_csrf_header)])
def update_user(
    user_id: UUID,
    data: UserUpdate,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(get_current_user),
):
    """Admins edit anyone; others edit their own profile but not their role or sectors."""
    target = _get_user_or_404(db, user_id)
    patch = data.model_dump(exclude_unset=True)
    is_admin = Role(user.role) in ROLES_CAN_MANAGE_TEAM
    if not is_admin and (target.id != user.id or {"role", "sectors"} & set(patch)):
        raise HTTPException(status_code=403, detail="Not allowed to edit this profile")
    try:
        return user_service.update_user(db, audit, user, target, patch)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.patch(
    "/{user_id}/status",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def set_user_status(
    user_id: UUID,
    data: UserStatusUpdate,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(require_roles(list(ROLES_CAN_MANAGE_TEAM))),
):
    target = _get_user_or_404(db, user_id)
    try:
        return user_service.set_status(db, audit, user, target, data.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put(
    "/{user_id}/password",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def set_user_password(
    user_id: UUID,
    data: PasswordSet,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(get_current_user),
):
    target = _get_user_or_404(db, user_id)
    if target.id != user.id and Role(user.role) not in ROLES_CAN_MANAGE_TEAM:
        raise HTTPException(status_code=403, detail="Not allowed to change this password")
    try:
        return user_service.set_password(db, audit, user, target, data.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{user_id}/avatar",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def upload_user_avatar(
    user_id: UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(get_current_user),
):
    target = _get_user_or_404(db, user_id)
    if target.id != user.id and Role(user.role) not in ROLES_CAN_MANAGE_TEAM:
        raise HTTPException(status_code=403, detail="Not allowed to change this avatar")
    try:
        return user_service.upload_avatar(
            db,
            audit,
            user,
            target,
            filename=file.filename or "avatar",
            content_type=file.content_type or "application/octet-stream",
            file=file.file,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{user_id}/activity", response_model=list[LogEntryRead])
def get_user_activity(
    user_id: UUID,
    audit: AuditLog = Depends(get_audit_log),
    user: User = Depends(require_roles(list(ROLES_CAN_MANAGE_TEAM))),
):
    """Audit entries performed by this user, newest first."""
    return audit.get_logs_by_actor(user_id)
