# FILE: promptlab/providers/base.py
"""
Provider adapter contract.

Every backend implements:
- generate(request)       -> LlmResponse (unsuccessful responses are data, not exceptions)
- estimate_tokens(text)   -> int
- is_available()          -> bool (live call, not just a key check)

Adapters hold only static configuration and one shared retry policy, so a
single instance is safe to use from many concurrent tasks.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

import httpx

from promptlab.config import ProviderConfig
from promptlab.providers.retry import RetryPolicy, exponential_backoff, is_retryable_http_outcome
from promptlab.schemas import LlmRequest, LlmResponse, ProviderKind

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens_by_length(text: str) -> int:
    """Rough token count for providers without a counting endpoint (~4 chars/token)."""
    if not text:
        return 0
    return len(text) // CHARS_PER_TOKEN


def calculate_cost(
    prompt_tokens: int,
    completion_tokens: int,
    input_cost_per_1k: Decimal,
    output_cost_per_1k: Decimal,
) -> Decimal:
    prompt_cost = (Decimal(max(0, prompt_tokens)) / Decimal(1000)) * input_cost_per_1k
    completion_cost = (Decimal(max(0, completion_tokens)) / Decimal(1000)) * output_cost_per_1k
    return max(Decimal("0"), prompt_cost + completion_cost)


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class LlmProvider(ABC):
    """Base class for HTTP-backed provider adapters."""

    provider: ProviderKind
    provider_name: str

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        if config is None:
            raise ValueError("config is required")
        self.config = config
        self._transport = transport
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=config.max_retries,
            backoff=exponential_backoff,
            retryable=is_retryable_http_outcome,
            on_retry=self._log_retry,
        )

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def generate(self, request: LlmRequest) -> LlmResponse:
        ...

    @abstractmethod
    async def estimate_tokens(self, text: str, model: Optional[str] = None) -> int:
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        ...

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout_seconds),
            transport=self._transport,
        )

    def calculate_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> Decimal:
        pricing = self.config.pricing_for(model)
        return calculate_cost(
            prompt_tokens,
            completion_tokens,
            pricing.input_cost_per_1k,
            pricing.output_cost_per_1k,
        )

    def _failure(self, model: str, message: str, started_ms: int) -> LlmResponse:
        return LlmResponse(
            model=model,
            content="",
            success=False,
            error_message=message,
            latency_ms=max(0, _now_ms() - started_ms),
        )

    def _log_retry(self, attempt: int, delay: float, outcome) -> None:
        if isinstance(outcome, BaseException):
            reason = f"{type(outcome).__name__}: {outcome}"
        else:
            reason = f"status {getattr(outcome, 'status_code', '?')}"
        logger.warning(
            "[%s] Request failed with %s. Waiting %.1fs before retry #%d",
            self.provider.value, reason, delay, attempt,
        )
