"""Redaction of credentials and secret values from error text.

Anything derived from an exception may end up in a condition message, an
event or a log line, all of which are readable far more widely than the
Secrets themselves.
"""

from __future__ import annotations

import re

REDACTED = "[REDACTED]"

# Field names whose values are never shown
SENSITIVE_FIELDS = frozenset({
    "password",
    "secret",
    "credentials",
    "token",
    "data",
    "value",
})

_REDACTIONS = [
    # Authorization headers echoed back in client errors
    (re.compile(r"(authorization:\s*bearer)\s+[^\s,;]+", re.IGNORECASE), rf"\1 {REDACTED}"),
    (re.compile(r"(x-vault-token:)\s*[^\s,;]+", re.IGNORECASE), rf"\1 {REDACTED}"),
    # user:password@host
    (re.compile(r"(\b[a-z][a-z0-9+.-]*://[^:/\s@]+:)[^@\s]+(?=@)", re.IGNORECASE), rf"\1{REDACTED}"),
    # field: value / field=value
    (
        re.compile(rf"\b({'|'.join(sorted(SENSITIVE_FIELDS))})\s*[:=]\s*[^\s,;)]+", re.IGNORECASE),
        rf"\1: {REDACTED}",
    ),
]


def sanitize_error_message(message: str) -> str:
    """Redact credentials and ``field: value`` pairs for sensitive fields."""
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    return message


def sanitize_exception(error: BaseException) -> str:
    return sanitize_error_message(str(error))
