from __future__ import annotations

import random
from typing import Callable

JITTER_RATIO = 0.2


def compute_delay(attempt: int, initial_delay: float, multiplier: float, max_delay: float) -> float:
    """
    Exponential backoff for a 0-based attempt index, capped at ``max_delay``.

    Pure and deterministic; all values are in seconds.
    """
    delay = float(initial_delay) * (float(multiplier) ** max(0, int(attempt)))
    return min(delay, float(max_delay))


def add_jitter(delay: float, *, rng: Callable[[], float] = random.random) -> float:
    """Add up to 20% of ``delay`` on top of it, so the result is in [delay, 1.2*delay)."""
    return delay + delay * JITTER_RATIO * rng()
