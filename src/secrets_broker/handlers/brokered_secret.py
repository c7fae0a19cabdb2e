"""Handler for BrokeredSecret CRD."""

from __future__ import annotations

from typing import Any

import kopf

from .. import config
from ..constants import API_GROUP_VERSION, KIND_BROKERED_SECRET, PHASE_IN_SYNC, PHASE_STALE
from ..exceptions import UnknownPhase
from ..models import ObjectKey
from ..reconciler import Reconciler

# Per-object memo key counting consecutive failed reconciles
FAILURES_KEY = "consecutive_failures"


def run_reconcile(reconciler: Reconciler, body: dict[str, Any], memo: kopf.Memo) -> None:
    """Run one reconcile invocation and translate its result for kopf.

    The backoff is driven by the object's consecutive failures, kept in its
    memo, rather than kopf's retry counter, which also advances on planned
    follow-up steps.

    Raises:
        kopf.TemporaryError: When the result asks for a requeue
        kopf.PermanentError: When the object's phase is not recognized
    """
    meta = body.get("metadata", {})
    key = ObjectKey(meta.get("namespace", "default"), meta.get("name", ""))
    failures = memo.get(FAILURES_KEY, 0)

    try:
        result = reconciler.reconcile_with_metrics(body, lambda: reconciler.reconcile(key, retry=failures))
    except UnknownPhase as e:
        raise kopf.PermanentError(str(e)) from e

    memo[FAILURES_KEY] = failures + 1 if result.failed else 0

    if result.requeue:
        raise kopf.TemporaryError(f"requeue {key}", delay=result.requeue_after)


def is_synchronized(status: kopf.Status, **_: Any) -> bool:
    """Whether the resync timer should re-check the object.

    Other phases are driven by the create/update handler's own requeues, so
    the timer cannot cut a cooldown short.
    """
    return status.get("phase") in (PHASE_IN_SYNC, PHASE_STALE)


@kopf.on.create(API_GROUP_VERSION, KIND_BROKERED_SECRET)
@kopf.on.update(API_GROUP_VERSION, KIND_BROKERED_SECRET, field="spec")
@kopf.on.resume(API_GROUP_VERSION, KIND_BROKERED_SECRET)
def handle_brokered_secret(
    body: kopf.Body,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Handle BrokeredSecret resource reconciliation."""
    run_reconcile(memo.reconciler, dict(body), memo)


@kopf.timer(
    API_GROUP_VERSION,
    KIND_BROKERED_SECRET,
    interval=config.RESYNC_INTERVAL_SECONDS,
    idle=10,
    when=is_synchronized,
)
def resync_brokered_secret(
    body: kopf.Body,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Periodically re-check a synchronized BrokeredSecret against its source."""
    run_reconcile(memo.reconciler, dict(body), memo)
