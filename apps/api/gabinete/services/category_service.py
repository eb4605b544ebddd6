"""Demand categories (office sectors)."""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gabinete.db.enums import LogAction, LogModule
from gabinete.db.models import Category, User
from gabinete.services.audit_service import AuditLog, compute_changes

DEFAULT_COLOR = "#6B7280"


def list_categories(db: Session) -> list[Category]:
    return list(db.scalars(select(Category).order_by(Category.name)).all())


def get_category(db: Session, category_id: UUID) -> Category | None:
    return db.get(Category, category_id)


def _name_taken(db: Session, name: str, exclude: UUID | None = None) -> bool:
    existing = db.scalar(select(Category).where(func.lower(Category.name) == name.lower()))
    return existing is not None and existing.id != exclude


def create_category(
    db: Session, audit: AuditLog, actor: User, name: str, color: str | None = None
) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValueError("Category name is required")
    if _name_taken(db, name):
        raise ValueError(f"Category '{name}' already exists")

    category = Category(name=name, color=color or DEFAULT_COLOR)
    db.add(category)
    db.commit()
    db.refresh(category)

    audit.log(
        LogAction.CREATE, LogModule.CATEGORY, category.id, actor, meta={"name": category.name}
    )
    return category


def update_category(
    db: Session, audit: AuditLog, actor: User, category: Category, patch: dict[str, Any]
) -> Category:
    if patch.get("name") is not None:
        patch = {**patch, "name": patch["name"].strip()}
        if not patch["name"]:
            raise ValueError("Category name is required")
        if _name_taken(db, patch["name"], exclude=category.id):
            raise ValueError(f"Category '{patch['name']}' already exists")
    patch = {k: v for k, v in patch.items() if k in ("name", "color") and v is not None}

    changes = compute_changes({k: getattr(category, k) for k in patch}, patch)
    if not changes:
        return category
    for field, value in patch.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)

    audit.log(LogAction.UPDATE, LogModule.CATEGORY, category.id, actor, changes=changes)
    return category
