"""Base secret store provider interface."""

from __future__ import annotations

from typing import Protocol


class ProviderError(Exception):
    """Base class for secret store failures."""

    retriable = False


class Unauthorized(ProviderError):
    """The store rejected the controller's credentials."""


class NotFound(ProviderError):
    """Nothing exists at the requested location and path."""


class Unavailable(ProviderError):
    """The store could not be reached or failed transiently."""

    retriable = True


class Malformed(ProviderError):
    """The store returned data that cannot be interpreted as fields."""


class SecretProvider(Protocol):
    """Protocol defining secret store read operations."""

    name: str

    def fetch(
        self,
        store_location: str,
        source_path: str,
        timeout: float | None = None,
    ) -> dict[str, bytes]:
        """Fetch all fields stored at a path.

        Args:
            store_location: Which store (or store partition) to read from
            source_path: Path of the secret within the store
            timeout: Seconds the call may take before failing as Unavailable

        Returns:
            Mapping of source field name to raw bytes

        Raises:
            Unauthorized, NotFound, Unavailable, Malformed
        """
        ...
