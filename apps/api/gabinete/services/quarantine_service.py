"""Quarantine review: the only entry point to restore or purge soft-deleted records."""

from uuid import UUID

from gabinete.db.enums import EntityKind
from gabinete.db.models import User
from gabinete.services.lifecycle_service import EntityLifecycle, MutationResult


def get_pending_deletions(lifecycle: EntityLifecycle, kind: EntityKind) -> list:
    """Entities awaiting review, most recently quarantined first."""
    return lifecycle.list_pending_deletions(kind)


def restore(
    lifecycle: EntityLifecycle, kind: EntityKind, entity_id: UUID, actor: User
) -> MutationResult:
    return lifecycle.restore(kind, entity_id, actor)


def purge(
    lifecycle: EntityLifecycle, kind: EntityKind, entity_id: UUID, actor: User
) -> MutationResult:
    """Permanently delete a quarantined entity."""
    return lifecycle.permanent_delete(kind, entity_id, actor)
