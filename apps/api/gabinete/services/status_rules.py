"""Demand status state machine.

Explicit transition table over DemandStatus. Terminal statuses (SUCCESS,
UNFEASIBLE, ARCHIVED) only move back to OPEN through the reopen edge, which
requires a non-blank reason.
"""

from gabinete.db.enums import DemandStatus


TERMINAL_STATUSES: frozenset[DemandStatus] = frozenset(
    {DemandStatus.SUCCESS, DemandStatus.UNFEASIBLE, DemandStatus.ARCHIVED}
)

_WORKING_TARGETS: frozenset[DemandStatus] = frozenset(
    {
        DemandStatus.ANALYSIS,
        DemandStatus.IN_PROGRESS,
        DemandStatus.WAITING_THIRD_PARTY,
        DemandStatus.SUCCESS,
        DemandStatus.UNFEASIBLE,
        DemandStatus.ARCHIVED,
    }
)

ALLOWED_TRANSITIONS: dict[DemandStatus, frozenset[DemandStatus]] = {
    DemandStatus.DRAFT: _WORKING_TARGETS | {DemandStatus.OPEN},
    DemandStatus.OPEN: _WORKING_TARGETS,
    DemandStatus.ANALYSIS: _WORKING_TARGETS,
    DemandStatus.IN_PROGRESS: _WORKING_TARGETS,
    DemandStatus.WAITING_THIRD_PARTY: _WORKING_TARGETS,
    DemandStatus.SUCCESS: frozenset({DemandStatus.OPEN}),
    DemandStatus.UNFEASIBLE: frozenset({DemandStatus.OPEN}),
    DemandStatus.ARCHIVED: frozenset({DemandStatus.OPEN}),
}

# (old, new) -> label; None as old matches any source
_SPECIAL_LABELS: dict[tuple[DemandStatus | None, DemandStatus], str] = {
    (DemandStatus.WAITING_THIRD_PARTY, DemandStatus.IN_PROGRESS): (
        "Resumed after external response or deadline"
    ),
    (DemandStatus.IN_PROGRESS, DemandStatus.WAITING_THIRD_PARTY): (
        "Paused awaiting third party"
    ),
    (None, DemandStatus.ANALYSIS): "Technical triage in progress",
    (None, DemandStatus.SUCCESS): "Objective achieved, reported to constituent",
}


class StatusTransitionError(ValueError):
    """Raised when a requested status change is not allowed."""


class DemandLockedError(ValueError):
    """Raised when a finalized demand is edited without being reopened first."""


def parse_status(value: str | DemandStatus) -> DemandStatus:
    try:
        return DemandStatus(value)
    except ValueError as e:
        raise StatusTransitionError(f"Unknown status: {value}") from e


def is_finalized(status: str | DemandStatus) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def is_reopen(old: str | DemandStatus, new: str | DemandStatus) -> bool:
    return is_finalized(old) and parse_status(new) == DemandStatus.OPEN


def validate_transition(
    old: str | DemandStatus,
    new: str | DemandStatus,
    reason: str | None = None,
) -> tuple[DemandStatus, DemandStatus]:
    """
    Check a transition against the table.

    Returns:
        The parsed (old, new) pair.

    Raises:
        StatusTransitionError: same status, unknown status, finalized demand
            moved anywhere but OPEN, or reopen without a reason.
    """
    old_status = parse_status(old)
    new_status = parse_status(new)

    if old_status == new_status:
        raise StatusTransitionError(f"Demand is already {new_status.value}")

    if new_status not in ALLOWED_TRANSITIONS[old_status]:
        if old_status in TERMINAL_STATUSES:
            raise StatusTransitionError(
                f"Demand is finalized ({old_status.value}); reopen it before changing status"
            )
        raise StatusTransitionError(
            f"Cannot change status from {old_status.value} to {new_status.value}"
        )

    if old_status in TERMINAL_STATUSES and not (reason and reason.strip()):
        raise StatusTransitionError("A reason is required to reopen a finalized demand")

    return old_status, new_status


def transition_label(
    old: str | DemandStatus,
    new: str | DemandStatus,
    reason: str | None = None,
) -> str:
    """Human-readable sentence for the timeline and ``last_action_label``."""
    old_status = parse_status(old)
    new_status = parse_status(new)

    if is_reopen(old_status, new_status):
        return f"Record reopened. Reason: {(reason or '').strip()}"

    label = _SPECIAL_LABELS.get((old_status, new_status)) or _SPECIAL_LABELS.get(
        (None, new_status)
    )
    if label:
        return label
    return f"Status changed from {old_status.value} to {new_status.value}"
