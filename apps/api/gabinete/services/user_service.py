"""Team member management (control center)."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gabinete.core.security import hash_password
from gabinete.db.enums import LogAction, LogModule, Role, UserStatus
from gabinete.db.models import User
from gabinete.services import storage_service
from gabinete.services.audit_service import AuditLog, compute_changes
from gabinete.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset({"name", "username", "phone", "role", "sectors"})
MIN_PASSWORD_LENGTH = 8


def get_user(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(func.lower(User.email) == normalize_email(email)))


def list_users(
    db: Session,
    role: Role | None = None,
    status: UserStatus | None = None,
) -> list[User]:
    stmt = select(User).order_by(User.name)
    if role:
        stmt = stmt.where(User.role == Role(role).value)
    if status:
        stmt = stmt.where(User.status == UserStatus(status).value)
    return list(db.scalars(stmt).all())


def _check_unique(db: Session, email: str | None, username: str | None, exclude: UUID | None = None) -> None:
    if email:
        existing = get_user_by_email(db, email)
        if existing and existing.id != exclude:
            raise ValueError("Email already in use")
    if username:
        existing = db.scalar(select(User).where(func.lower(User.username) == username.lower()))
        if existing and existing.id != exclude:
            raise ValueError("Username already in use")


def create_user(
    db: Session,
    audit: AuditLog,
    actor: User,
    *,
    name: str,
    email: str,
    role: Role = Role.STAFF,
    password: str | None = None,
    username: str | None = None,
    phone: str | None = None,
    sectors: list[str] | None = None,
) -> User:
    clean_name = normalize_name(name)
    clean_email = normalize_email(email)
    if not clean_name or not clean_email:
        raise ValueError("Name and email are required")
    _check_unique(db, clean_email, username)
    if password is not None and len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")

    user = User(
        name=clean_name,
        email=clean_email,
        username=username,
        phone=phone,
        role=Role(role).value,
        status=UserStatus.ACTIVE.value,
        sectors=[str(s) for s in (sectors or [])],
        password_hash=hash_password(password) if password else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    audit.log(
        LogAction.CREATE,
        LogModule.CONTROL_CENTER,
        user.id,
        actor,
        meta={"name": user.name, "role": user.role},
    )
    return user


def update_user(
    db: Session, audit: AuditLog, actor: User, user: User, patch: dict[str, Any]
) -> User:
    unknown = set(patch) - PROFILE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be set here: {', '.join(sorted(unknown))}")
    if "role" in patch and patch["role"] is not None:
        patch = {**patch, "role": Role(patch["role"]).value}
    if "sectors" in patch and patch["sectors"] is not None:
        patch = {**patch, "sectors": [str(s) for s in patch["sectors"]]}
    _check_unique(db, None, patch.get("username"), exclude=user.id)

    before = {field: getattr(user, field) for field in patch}
    changes = compute_changes(before, patch)
    if not changes:
        return user
    for field, value in patch.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    audit.log(LogAction.UPDATE, LogModule.CONTROL_CENTER, user.id, actor, changes=changes)
    return user


def set_status(
    db: Session, audit: AuditLog, actor: User, user: User, status: UserStatus
) -> User:
    """Activate or deactivate an account; deactivation revokes open sessions."""
    new_status = UserStatus(status).value
    if user.id == actor.id and new_status != UserStatus.ACTIVE.value:
        raise ValueError("You cannot deactivate your own account")
    old_status = user.status
    if old_status == new_status:
        return user

    user.status = new_status
    if new_status != UserStatus.ACTIVE.value:
        user.token_version += 1
    db.commit()
    db.refresh(user)

    audit.log_user_status_change(user, actor, old_status, new_status)
    return user


def set_password(
    db: Session, audit: AuditLog, actor: User, user: User, password: str
) -> User:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    user.password_hash = hash_password(password)
    user.token_version += 1
    db.commit()
    db.refresh(user)
    audit.log(
        LogAction.UPDATE,
        LogModule.CONTROL_CENTER,
        user.id,
        actor,
        meta={"password_reset": True},
    )
    return user


def upload_avatar(
    db: Session,
    audit: AuditLog,
    actor: User,
    user: User,
    filename: str,
    content_type: str,
    file: BinaryIO,
) -> User:
    size = storage_service.file_size(file)
    is_valid, error = storage_service.validate_file(
        filename, content_type, size, allowed_extensions=storage_service.AVATAR_EXTENSIONS
    )
    if not is_valid:
        raise ValueError(error)

    storage_key = storage_service.build_storage_key(f"avatars/{user.id}", filename)
    storage_service.store_file(storage_key, file)
    old_url = user.avatar_url
    user.avatar_url = storage_service.generate_url(storage_key)
    db.commit()
    db.refresh(user)

    audit.log(
        LogAction.UPDATE,
        LogModule.CONTROL_CENTER,
        user.id,
        actor,
        changes=[{"field": "avatar_url", "old_value": old_url, "new_value": user.avatar_url}],
    )
    return user
