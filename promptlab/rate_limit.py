# FILE: promptlab/rate_limit.py
"""
In-memory sliding-window rate limiter.

Each key (caller) has two windows of admitted-request timestamps:
one minute and one hour. A request is admitted only when neither window
is at its ceiling.

Locks are per key: callers never contend with each other, and two
concurrent calls for the same key cannot both see a stale count.

Buckets are only created by writes (record / try_acquire). Reads on an
unknown key report full headroom without storing anything. Idle buckets,
whose hour window has fully expired, are swept at most once per
`sweep_interval_seconds`, so the key map tracks recent callers only.

Construct one instance at startup and pass it to every consumer.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional

from promptlab.config import RateLimitConfig

logger = logging.getLogger(__name__)

MINUTE_WINDOW_SECONDS = 60.0
HOUR_WINDOW_SECONDS = 3600.0

UNLIMITED = sys.maxsize


@dataclass
class _Bucket:
    minute: Deque[float] = field(default_factory=deque)
    hour: Deque[float] = field(default_factory=deque)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def _prune(window: Deque[float], now: float, span: float) -> None:
    while window and now - window[0] >= span:
        window.popleft()


class InMemoryRateLimiter:

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = MINUTE_WINDOW_SECONDS,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep = clock()
        self._buckets: Dict[str, _Bucket] = {}

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def tracked_keys(self) -> int:
        return len(self._buckets)

    def _bucket(self, key: str) -> _Bucket:
        # No await between lookup and insert, so this is atomic on the event loop
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket()
            self._buckets[key] = bucket
        return bucket

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        evicted = 0
        for key, bucket in list(self._buckets.items()):
            if bucket.lock.locked():
                continue
            # Minute entries are always a subset of hour entries
            _prune(bucket.hour, now, HOUR_WINDOW_SECONDS)
            if not bucket.hour:
                del self._buckets[key]
                evicted += 1
        if evicted:
            logger.debug("[rate_limit] Evicted %d idle rate limit bucket(s)", evicted)

    def _fresh_headroom(self) -> int:
        return max(0, min(self.config.requests_per_minute, self.config.requests_per_hour))

    def _has_capacity(self, bucket: _Bucket, now: float) -> bool:
        _prune(bucket.minute, now, MINUTE_WINDOW_SECONDS)
        _prune(bucket.hour, now, HOUR_WINDOW_SECONDS)
        if len(bucket.minute) >= self.config.requests_per_minute:
            return False
        if len(bucket.hour) >= self.config.requests_per_hour:
            return False
        return True

    async def admit(self, key: str) -> bool:
        """True if a request for `key` may proceed right now. Does not record it."""
        if not self.enabled:
            return True
        bucket = self._buckets.get(key)
        if bucket is None:
            return self._fresh_headroom() > 0
        async with bucket.lock:
            return self._has_capacity(bucket, self._clock())

    async def record(self, key: str) -> None:
        if not self.enabled:
            return
        self._sweep(self._clock())
        bucket = self._bucket(key)
        async with bucket.lock:
            now = self._clock()
            bucket.minute.append(now)
            bucket.hour.append(now)

    async def try_acquire(self, key: str) -> bool:
        """Admit and record in one lock hold. Returns False when over budget."""
        if not self.enabled:
            return True
        self._sweep(self._clock())
        bucket = self._bucket(key)
        async with bucket.lock:
            now = self._clock()
            if not self._has_capacity(bucket, now):
                logger.warning("[rate_limit] Rate limit exceeded for key: %s", key)
                return False
            bucket.minute.append(now)
            bucket.hour.append(now)
            return True

    async def remaining(self, key: str) -> int:
        """Headroom of the more restrictive window, never below zero."""
        if not self.enabled:
            return UNLIMITED
        bucket = self._buckets.get(key)
        if bucket is None:
            return self._fresh_headroom()
        async with bucket.lock:
            now = self._clock()
            _prune(bucket.minute, now, MINUTE_WINDOW_SECONDS)
            _prune(bucket.hour, now, HOUR_WINDOW_SECONDS)
            per_minute = self.config.requests_per_minute - len(bucket.minute)
            per_hour = self.config.requests_per_hour - len(bucket.hour)
            return max(0, min(per_minute, per_hour))
