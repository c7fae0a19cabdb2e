"""Kubernetes events about BrokeredSecrets."""

from __future__ import annotations

from typing import Any

import kopf

# The API server rejects event notes longer than this
MAX_EVENT_MESSAGE_LENGTH = 1024


def emit_event(obj: dict[str, Any], reason: str, message: str, type_: str = "Normal") -> None:
    """Post an event referring to ``obj``; overlong messages are truncated."""
    if len(message) > MAX_EVENT_MESSAGE_LENGTH:
        message = message[: MAX_EVENT_MESSAGE_LENGTH - 3] + "..."
    kopf.event(obj, type=type_, reason=reason, message=message)
