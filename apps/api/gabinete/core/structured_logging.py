"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    entity_kind: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never names or documents)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if entity_kind:
        context["entity_kind"] = entity_kind
    if entity_id:
        context["entity_id"] = str(entity_id)
    if action:
        context["action"] = action
    if request_id:
        context["request_id"] = request_id
    return context
