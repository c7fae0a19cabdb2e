"""In-memory secret store, for local runs and tests."""

from __future__ import annotations

from .base import NotFound, ProviderError


class StaticSecretProvider:
    """Serves fields from a fixed in-memory table.

    Entries are keyed by ``(store_location, source_path)``. A path can also
    be mapped to a ``ProviderError`` instance, which is raised on fetch.
    """

    name = "static"

    def __init__(self, entries: dict[tuple[str, str], dict[str, bytes] | ProviderError] | None = None):
        self.entries = dict(entries or {})
        self.calls: list[tuple[str, str]] = []

    def set(self, store_location: str, source_path: str, value: dict[str, bytes] | ProviderError) -> None:
        self.entries[(store_location, source_path)] = value

    def fetch(
        self,
        store_location: str,
        source_path: str,
        timeout: float | None = None,
    ) -> dict[str, bytes]:
        self.calls.append((store_location, source_path))
        try:
            value = self.entries[(store_location, source_path)]
        except KeyError:
            raise NotFound(f"no secret at {store_location}:{source_path}") from None
        if isinstance(value, ProviderError):
            raise value
        return dict(value)
