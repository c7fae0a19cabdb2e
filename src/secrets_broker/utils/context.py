"""Per-invocation correlation context for structured logs."""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace

correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("correlation_id", default=None)


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:16]


def get_correlation_id() -> str | None:
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of a block.

    Each reconcile invocation runs inside one of these so that every log line
    it produces can be grouped, even when kopf interleaves invocations for
    different objects on the same thread pool.

    Args:
        corr_id: ID to bind; a fresh one is generated when omitted

    Yields:
        The bound ID
    """
    token = correlation_id.set(corr_id or new_correlation_id())
    try:
        yield correlation_id.get()  # type: ignore[misc]
    finally:
        correlation_id.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Fields identifying the current invocation and span, for log records.

    Args:
        additional: Extra fields merged in last

    Returns:
        ``correlation_id`` when bound, ``trace_id``/``span_id`` when a span
        is recording, plus ``additional``
    """
    ctx: dict[str, Any] = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        ctx["trace_id"] = format(span_context.trace_id, "032x")
        ctx["span_id"] = format(span_context.span_id, "016x")

    ctx.update(additional or {})
    return ctx
