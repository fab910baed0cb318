"""
RateLimiter -- per-operation token buckets for Authority calls.

Responsibility:
    Track the Authority's published quotas: a global per-minute ceiling
    plus daily quotas keyed by resource (list per tax id, status per
    upload id, download per message id).  Every client call acquires the
    global bucket together with its specific bucket.

Architecture position:
    Authority -- owned by the process and shared by every client
    instance; the only mutable state shared across tenant runs.

Invariants enforced:
    - ``consume`` and ``acquire`` read the clock and charge buckets under
      one lock, so concurrent tenant runs never overdraw a bucket.
    - ``acquire`` is all-or-nothing across the global and specific bucket.
    - Buckets refill continuously at ``capacity / window`` tokens per
      second and never exceed ``capacity``.
    - The limiter never sleeps.

Failure modes:
    - RateLimitedError(bucket, retry_after_seconds >= 1) when a bucket is
      empty.  Callers hand it to their own scheduling layer.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass

from efactura_config.schema import BucketLimit, RateLimitSettings
from efactura_kernel.domain.clock import Clock, SystemClock
from efactura_kernel.exceptions import RateLimitedError
from efactura_kernel.logging_config import get_logger

logger = get_logger("authority.rate_limiter")

GLOBAL = "global"
LIST = "list"
STATUS = "status"
DOWNLOAD = "download"


@dataclass
class RateBudget:
    """Mutable bucket state; only touched while the limiter lock is held."""

    tokens: float
    updated_at: float


class RateLimiter:
    """
    Thread-safe token-bucket limiter keyed by ``(bucket, resource_key)``.

    Contract:
        ``consume(bucket, key)`` takes one token or raises
        RateLimitedError with the time until one token is available.

    Non-goals:
        - Not distributed: one limiter per process.  Multi-process
          deployments need a shared store behind the same interface.
    """

    def __init__(
        self,
        settings: RateLimitSettings | None = None,
        clock: Clock | None = None,
    ):
        self._limits: dict[str, BucketLimit] = (settings or RateLimitSettings()).as_buckets()
        self._clock = clock or SystemClock()
        self._budgets: dict[tuple[str, str], RateBudget] = {}
        self._lock = threading.Lock()

    def _now(self) -> float:
        return self._clock.now_utc().timestamp()

    def limit(self, bucket: str) -> BucketLimit:
        try:
            return self._limits[bucket]
        except KeyError:
            raise ValueError(f"Unknown rate-limit bucket: {bucket}") from None

    def consume(self, bucket: str, key: str | None = None) -> None:
        self._take(((bucket, key),))

    def acquire(self, bucket: str | None = None, key: str | None = None) -> None:
        """
        Take a global token plus, when ``bucket`` is given, a token from it.

        Both buckets are checked before either is charged, so a refused
        status or download call leaves the global budget untouched.
        """
        requests = [(GLOBAL, None)]
        if bucket is not None:
            requests.append((bucket, key))
        self._take(requests)

    def _take(self, requests) -> None:
        limits = [(bucket, key, self.limit(bucket)) for bucket, key in requests]
        refused = None

        with self._lock:
            now = self._now()
            budgets = [self._refilled(bucket, key, limit, now) for bucket, key, limit in limits]
            for (bucket, key, limit), budget in zip(limits, budgets):
                if budget.tokens < 1.0:
                    refill_rate = limit.capacity / limit.window_seconds
                    refused = (bucket, key, math.ceil((1.0 - budget.tokens) / refill_rate))
                    break
            else:
                for budget in budgets:
                    budget.tokens -= 1.0
                return

        bucket, key, retry_after = refused
        logger.warning(
            "rate_limit_exhausted",
            extra={"bucket": bucket, "resource_key": key, "retry_after_seconds": retry_after},
        )
        raise RateLimitedError(bucket, retry_after, resource_key=key)

    def _refilled(self, bucket: str, key: str | None, limit: BucketLimit, now: float) -> RateBudget:
        budget = self._budgets.get((bucket, key or ""))
        if budget is None:
            budget = RateBudget(tokens=float(limit.capacity), updated_at=now)
            self._budgets[(bucket, key or "")] = budget
        else:
            elapsed = max(0.0, now - budget.updated_at)
            refill_rate = limit.capacity / limit.window_seconds
            budget.tokens = min(float(limit.capacity), budget.tokens + elapsed * refill_rate)
            budget.updated_at = now
        return budget

    def remaining(self, bucket: str, key: str | None = None) -> int:
        limit = self.limit(bucket)
        with self._lock:
            budget = self._budgets.get((bucket, key or ""))
            if budget is None:
                return limit.capacity
            elapsed = max(0.0, self._now() - budget.updated_at)
            tokens = min(
                float(limit.capacity),
                budget.tokens + elapsed * limit.capacity / limit.window_seconds,
            )
        return int(tokens)

    def consume_global(self) -> None:
        self.consume(GLOBAL)

    def consume_list(self, tax_id: str) -> None:
        self.consume(LIST, tax_id)

    def consume_status(self, upload_id: str) -> None:
        self.consume(STATUS, upload_id)

    def consume_download(self, message_id: str) -> None:
        self.consume(DOWNLOAD, message_id)

    def reset(self) -> None:
        with self._lock:
            self._budgets.clear()
