"""Client-side throttling of Kubernetes API calls."""

from __future__ import annotations

import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from .. import config

_F = TypeVar("_F", bound=Callable[..., Any])

RETRIABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class MinIntervalLimiter:
    """Spaces calls at least ``1 / rate`` seconds apart across all threads."""

    def __init__(self, rate: float):
        self.rate = rate
        self._lock = threading.Lock()
        self._last = float("-inf")

    def acquire(self) -> None:
        with self._lock:
            wait = self._last + 1.0 / self.rate - time.monotonic()
            if wait > 0:
                time.sleep(wait)
            self._last = time.monotonic()


k8s_limiter = MinIntervalLimiter(config.K8S_RATE_LIMIT_PER_SECOND)


def rate_limit_k8s(func: _F) -> _F:
    """Wrap a Kubernetes client call so it waits its turn on ``k8s_limiter``."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        k8s_limiter.acquire()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def is_retriable_status(status: int | None) -> bool:
    """Whether an API status code denotes throttling or a server-side failure."""
    return status in RETRIABLE_STATUSES
