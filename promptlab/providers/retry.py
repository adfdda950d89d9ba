# FILE: promptlab/providers/retry.py
"""
Retry-with-backoff policy shared by all provider adapters.

A RetryPolicy is parameterized by:
- max_retries: retries after the first attempt (default 3, so up to 4 calls)
- backoff:     attempt number (1-based) -> delay in seconds
- retryable:   outcome (result or exception) -> bool

Usage:
    policy = RetryPolicy(max_retries=3)
    response = await policy.execute(lambda: client.post(url, json=body))

When retries run out the last outcome is surfaced as-is: a retryable
result is returned, a retryable exception is re-raised. Non-retryable
exceptions propagate immediately. asyncio.CancelledError is never retried.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

T = TypeVar("T")

RETRYABLE_STATUS_CODES = {429}


def exponential_backoff(attempt: int) -> float:
    """2^attempt seconds: 2, 4, 8, ..."""
    return float(2 ** attempt)


def is_retryable_http_outcome(outcome: Any) -> bool:
    """Transport failures, 429 and 5xx are transient; other statuses are final."""
    if isinstance(outcome, BaseException):
        return isinstance(outcome, httpx.TransportError)
    status = getattr(outcome, "status_code", None)
    if status is None:
        return False
    return status in RETRYABLE_STATUS_CODES or status >= 500


@dataclass
class RetryPolicy:
    max_retries: int = 3
    backoff: Callable[[int], float] = exponential_backoff
    retryable: Callable[[Any], bool] = is_retryable_http_outcome
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    on_retry: Optional[Callable[[int, float, Any], None]] = None

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            try:
                outcome = await operation()
            except Exception as exc:
                if attempt >= self.max_retries or not self.retryable(exc):
                    raise
                await self._wait(attempt + 1, exc)
                attempt += 1
                continue

            if attempt >= self.max_retries or not self.retryable(outcome):
                return outcome
            await self._wait(attempt + 1, outcome)
            attempt += 1

    async def _wait(self, attempt: int, outcome: Any) -> None:
        delay = max(0.0, float(self.backoff(attempt)))
        if self.on_retry is not None:
            self.on_retry(attempt, delay, outcome)
        await self.sleep(delay)
