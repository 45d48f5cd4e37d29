from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

Sleeper = Callable[[float], Awaitable[None]]


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(
    attempt: int, base: float = 1.5, jitter: float = 0.5, sleep: Sleeper = asyncio.sleep
) -> float:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base, jitter=jitter)
    await sleep(delay)
    return delay
