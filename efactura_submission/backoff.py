"""Poll backoff schedule."""

from __future__ import annotations

from typing import Sequence

# 5 min, 15 min, 30 min, 1 h, 2 h
DEFAULT_BACKOFF_MS: tuple[int, ...] = (300_000, 900_000, 1_800_000, 3_600_000, 7_200_000)


def backoff_delay_ms(attempt: int, schedule: Sequence[int] = DEFAULT_BACKOFF_MS) -> int:
    """Delay before the poll that follows ``attempt``; clamped to the last entry."""
    if not schedule:
        raise ValueError("backoff schedule is empty")
    if attempt < 0:
        attempt = 0
    return schedule[min(attempt, len(schedule) - 1)]
