"""Exceptions raised while reconciling BrokeredSecrets."""

from __future__ import annotations


class SecretsBrokerError(Exception):
    """Base class for all operator errors."""


class InvalidSpec(SecretsBrokerError):
    """The source object's spec does not describe a valid mapping."""


class MissingSourceField(SecretsBrokerError):
    """One or more mapped source fields are absent from the fetched values."""

    def __init__(self, missing: list[str]):
        self.missing = sorted(missing)
        super().__init__(f"source fields not found in store: {', '.join(self.missing)}")


class Conflict(SecretsBrokerError):
    """A write was rejected because the object changed since it was read."""


class AlreadyExists(SecretsBrokerError):
    """An object to be created already exists."""


class ClusterUnavailable(SecretsBrokerError):
    """The cluster API failed transiently (throttling, server errors, timeouts)."""


class DeadlineExceeded(SecretsBrokerError):
    """A reconcile invocation ran past its deadline."""


class UnknownPhase(SecretsBrokerError):
    """Status holds a phase value outside the recognized set."""

    def __init__(self, phase: str):
        self.phase = phase
        super().__init__(f"phase {phase!r} is not handled by this controller")
