"""OpenTelemetry spans around reconcile steps."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer

logger = logging.getLogger(__name__)

# Set by initialize_tracing; None means spans are not recorded
_tracer: Tracer | None = None


def initialize_tracing(service_name: str = "secrets-broker") -> bool:
    """Install a tracer provider exporting over OTLP/gRPC.

    Reads ``OTEL_TRACES_ENABLED`` (``false`` turns tracing off),
    ``OTEL_SERVICE_NAME``, ``OTEL_SERVICE_VERSION`` and
    ``OTEL_EXPORTER_OTLP_ENDPOINT``.

    Returns:
        Whether tracing was enabled
    """
    global _tracer

    if os.getenv("OTEL_TRACES_ENABLED", "true").lower() == "false":
        logger.info("Tracing disabled by OTEL_TRACES_ENABLED")
        return False

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    resource = Resource.create({
        SERVICE_NAME: os.getenv("OTEL_SERVICE_NAME", service_name),
        SERVICE_VERSION: os.getenv("OTEL_SERVICE_VERSION", "unknown"),
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)

    _tracer = trace.get_tracer("secrets_broker")
    logger.info(f"Tracing enabled, exporting to {endpoint}")
    return True


def get_tracer() -> Tracer | None:
    return _tracer


@contextmanager
def trace_span(
    name: str,
    kind: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span | None]:
    """Run a block inside a span.

    An exception escaping the block is recorded on the span and marks it as
    failed before propagating. Without a tracer the block runs untraced and
    ``None`` is yielded.
    """
    tracer = get_tracer()
    if tracer is None:
        yield None
        return

    span_attributes: dict[str, Any] = {"resource.kind": kind} if kind else {}
    span_attributes.update(attributes or {})
    with tracer.start_as_current_span(
        name,
        attributes=span_attributes,
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        yield span


def add_span_attribute(key: str, value: Any) -> None:
    """Tag the active span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)
