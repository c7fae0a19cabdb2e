"""Utility functions for the Secrets Broker Operator."""

from .backoff import backoff_delay
from .conditions import (
    set_not_synchronized_condition,
    set_synchronized_condition,
    update_condition,
)
from .context import get_context_dict, get_correlation_id, with_correlation_id
from .deadline import Deadline
from .errors import sanitize_exception
from .events import emit_event
from .rate_limit import rate_limit_k8s

__all__ = [
    "backoff_delay",
    "update_condition",
    "set_synchronized_condition",
    "set_not_synchronized_condition",
    "get_context_dict",
    "get_correlation_id",
    "with_correlation_id",
    "Deadline",
    "sanitize_exception",
    "emit_event",
    "rate_limit_k8s",
]
