"""Common plumbing for handlers: structured logging and reconcile accounting."""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from .. import metrics
from ..constants import EVENT_REASON_RECONCILE_FAILED
from ..logging import log_resource_event
from ..utils.errors import sanitize_exception
from ..utils.events import emit_event

_T = TypeVar("_T")

# (obj, reason, message, type_) -> None
EventSink = Callable[..., None]


class BaseHandler:
    """Base class for handlers of one resource kind."""

    controller = "secrets-broker"

    def __init__(self, kind: str, events: EventSink = emit_event):
        """
        Args:
            kind: Resource kind handled, used as a metric and log label
            events: Posts a Kubernetes event about an object
        """
        self.kind = kind
        self.events = events
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        error: Exception | None = None,
        **fields: Any,
    ) -> None:
        """Write a structured record about the object described by ``meta``.

        When ``error`` is given its sanitized text and type are added to the
        record; the raw exception text is never logged.
        """
        if error is not None:
            fields["error"] = sanitize_exception(error)
            fields["error_type"] = type(error).__name__

        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            self.controller,
            self.kind,
            ctx["name"],
            ctx["namespace"],
            ctx["uid"],
            event,
            reason,
            message,
            level=level,
            **fields,
        )

    def log_info(self, meta: dict[str, Any], message: str, event: str = "info", reason: str = "Info", **fields: Any) -> None:
        self.log(logging.INFO, meta, message, event, reason, **fields)

    def log_warning(
        self, meta: dict[str, Any], message: str, event: str = "warning", reason: str = "Warning", **fields: Any
    ) -> None:
        self.log(logging.WARNING, meta, message, event, reason, **fields)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **fields: Any,
    ) -> None:
        self.log(logging.ERROR, meta, message, event, reason, error=error, **fields)

    def reconcile_with_metrics(self, obj: dict[str, Any], reconcile_fn: Callable[[], _T]) -> _T:
        """Run ``reconcile_fn`` with duration and outcome metrics.

        A failure is counted by exception type, logged, and reported on
        ``obj`` as a ``ReconcileFailed`` Warning event before it is re-raised
        to the caller.

        Args:
            obj: Body of the object being reconciled
            reconcile_fn: The reconcile invocation

        Returns:
            Whatever ``reconcile_fn`` returns
        """
        meta = obj.get("metadata", obj)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        with metrics.reconcile_duration_seconds.labels(kind=self.kind).time():
            try:
                result = reconcile_fn()
            except Exception as e:
                metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
                metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
                self.events(obj, EVENT_REASON_RECONCILE_FAILED, f"Reconciliation failed: {sanitize_exception(e)}", "Warning")
                raise

        metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
        return result
