"""Status subresource writes with no-op suppression."""

from __future__ import annotations

import logging

from . import metrics
from .exceptions import Conflict
from .models import SourceObject, SourceStatus
from .services.cluster import ClusterAccessor
from .utils.conditions import conditions_equal

logger = logging.getLogger(__name__)


def status_equal(current: SourceStatus, desired: SourceStatus) -> bool:
    """Field-by-field and condition-by-condition status comparison."""
    return current.phase == desired.phase and conditions_equal(current.conditions, desired.conditions)


class StatusManager:
    """Applies computed status to a source object.

    Identical status is never written, so an unchanged object does not
    generate a watch event that would trigger another reconcile. A write
    rejected for a stale resourceVersion raises ``Conflict``; the caller is
    expected to re-read the object and recompute, not to retry the write.
    """

    def __init__(self, cluster: ClusterAccessor):
        self.cluster = cluster

    def apply(
        self,
        source: SourceObject,
        desired: SourceStatus,
        timeout: float | None = None,
    ) -> bool:
        """Write ``desired`` if it differs from the persisted status.

        Returns:
            True if a write was made
        """
        if status_equal(source.status, desired):
            metrics.status_writes_total.labels(result="skipped").inc()
            return False

        try:
            self.cluster.replace_status(source, desired, timeout=timeout)
        except Conflict:
            metrics.status_writes_total.labels(result="conflict").inc()
            raise

        metrics.status_writes_total.labels(result="written").inc()
        logger.debug(f"Status of {source.key} written: phase {source.status.phase!r} -> {desired.phase!r}")
        return True
