"""Requeue delay computation for failed reconciliations."""

from __future__ import annotations

import random

from .. import config


def backoff_delay(
    retry: int,
    base: float | None = None,
    ceiling: float | None = None,
    jitter: float | None = None,
    rng: random.Random | None = None,
) -> float:
    """Exponential backoff with jitter and a ceiling.

    The retry counter is the dispatcher's per-object attempt count, which
    resets after a successful handler run, so the delay resets with it.

    Args:
        retry: Number of previous failed attempts (0 for the first retry)
        base: Initial delay in seconds
        ceiling: Maximum delay in seconds before jitter
        jitter: Fraction of the delay added at random
        rng: Random source, for deterministic tests

    Returns:
        Delay in seconds
    """
    base = config.RETRY_BASE_DELAY_SECONDS if base is None else base
    ceiling = config.RETRY_MAX_DELAY_SECONDS if ceiling is None else ceiling
    jitter = config.RETRY_JITTER if jitter is None else jitter

    # Cap the exponent so large retry counts cannot overflow
    delay = min(ceiling, base * (2 ** min(max(retry, 0), 32)))
    return delay + delay * jitter * (rng or random).random()
