"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone

from ..constants import COND_SECRET_SYNCHRONIZED, REASON_SECRET_SYNCHRONIZED
from ..models import Condition


def format_time(moment: datetime) -> str:
    """Render a timestamp the way Kubernetes serializes metav1.Time."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def update_condition(
    conditions: tuple[Condition, ...],
    condition_type: str,
    status: bool,
    reason: str,
    message: str,
    now: datetime,
    reason_change: bool = False,
) -> tuple[Condition, ...]:
    """Update or add a condition.

    ``lastTransitionTime`` moves only when the boolean status flips, or when
    ``reason_change`` is set and the reason differs. It never moves backwards.
    Any duplicate entries of the same type are collapsed and the result is
    ordered by type.

    Args:
        conditions: Existing conditions
        condition_type: Type of condition
        status: Boolean status of the condition
        reason: Machine-readable reason
        message: Human-readable message
        now: Current time
        reason_change: Treat a changed reason as a transition

    Returns:
        New conditions tuple
    """
    existing = next((c for c in conditions if c.type == condition_type), None)
    timestamp = format_time(now)

    if existing is None:
        transition_time = timestamp
    elif existing.status != status or (reason_change and existing.reason != reason):
        transition_time = max(timestamp, existing.last_transition_time)
    else:
        transition_time = existing.last_transition_time

    new_condition = Condition(
        type=condition_type,
        status=status,
        reason=reason,
        message=message,
        last_transition_time=transition_time,
    )
    others = tuple(c for c in conditions if c.type != condition_type)
    return tuple(sorted(others + (new_condition,), key=lambda c: c.type))


def set_synchronized_condition(
    conditions: tuple[Condition, ...],
    message: str,
    now: datetime,
) -> tuple[Condition, ...]:
    """Set SecretSynchronized=True."""
    return update_condition(
        conditions,
        COND_SECRET_SYNCHRONIZED,
        True,
        REASON_SECRET_SYNCHRONIZED,
        message,
        now,
    )


def set_not_synchronized_condition(
    conditions: tuple[Condition, ...],
    reason: str,
    message: str,
    now: datetime,
) -> tuple[Condition, ...]:
    """Set SecretSynchronized=False; a new failure reason counts as a transition."""
    return update_condition(
        conditions,
        COND_SECRET_SYNCHRONIZED,
        False,
        reason,
        message,
        now,
        reason_change=True,
    )


def conditions_equal(left: tuple[Condition, ...], right: tuple[Condition, ...]) -> bool:
    """Compare two condition sets irrespective of order."""
    return sorted(left, key=lambda c: c.type) == sorted(right, key=lambda c: c.type)
