"""JSON-per-line logging for the Secrets Broker Operator."""

import json
import logging
import sys
from typing import Any

from . import config
from .utils.context import get_context_dict

# Extra fields that may carry Secret material
REDACTED_FIELDS = frozenset({"data", "fetched", "password", "token", "value"})


def setup_structured_logging() -> None:
    """Send bare messages to stdout; ``log_resource_event`` builds the JSON."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def sanitize_secrets(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: "***REDACTED***" if k in REDACTED_FIELDS else v for k, v in fields.items()}


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log one JSON record about a resource.

    The record carries the resource identity, the correlation context of the
    running invocation, and ``fields`` with secret-bearing entries redacted.
    """
    record = dict(
        controller=controller,
        resource=resource_kind,
        name=resource_name,
        namespace=namespace,
        uid=uid,
        event=event,
        reason=reason,
        message=message,
        **get_context_dict(),
    )
    record.update(sanitize_secrets(fields))
    logger.log(level, json.dumps(record, default=str))
