from __future__ import annotations

import asyncio
import random

MAX_BACKOFF_SECONDS = 30.0


def compute_backoff(
    attempt: int,
    base: float = 1.5,
    jitter: float = 0.5,
    max_delay: float = MAX_BACKOFF_SECONDS,
) -> float:
    """Exponential backoff with jitter, capped at ``max_delay`` seconds."""
    delay = min(base ** attempt, max_delay)
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 1.5, jitter: float = 0.5) -> None:
    """Sleep before re-attempting a failed delivery."""
    await asyncio.sleep(compute_backoff(attempt, base=base, jitter=jitter))
