# FILE: promptlab/execution.py
"""
Prompt execution coordinator.

One call, one correlation id, stages strictly in order:

    prepare -> rate limit -> provider -> persist -> result

The rate check runs after preparation so a request rejected by validation
never spends budget. A provider response with success=False is turned into
ProviderExecutionError and nothing is written: history never contains an
empty assistant turn.

Every PromptLabError leaving this module carries the correlation id.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import List, Optional, Sequence
from uuid import uuid4

from sqlalchemy.orm import sessionmaker

from promptlab import config
from promptlab.errors import PromptLabError, ProviderExecutionError, RateLimitExceededError
from promptlab.memory import schemas as memory_schemas
from promptlab.memory import service as memory_service
from promptlab.memory.persistence import PromptPersistenceService
from promptlab.pipeline.preparation import RequestPreparationService
from promptlab.pipeline.validator import validate_prompt_request
from promptlab.providers.registry import ProviderRegistry
from promptlab.rate_limit import InMemoryRateLimiter
from promptlab.schemas import PromptExecutionResult, TokenEstimate

logger = logging.getLogger(__name__)


def new_correlation_id() -> str:
    return uuid4().hex


class PromptExecutionService:

    def __init__(
        self,
        preparation: RequestPreparationService,
        rate_limiter: InMemoryRateLimiter,
        registry: ProviderRegistry,
        persistence: PromptPersistenceService,
        session_factory: sessionmaker,
    ):
        self._preparation = preparation
        self._rate_limiter = rate_limiter
        self._registry = registry
        self._persistence = persistence
        self._session_factory = session_factory

    # =========================================================================
    # EXECUTE
    # =========================================================================

    async def execute_prompt(
        self,
        *,
        prompt: str,
        user_id: str,
        system_prompt: Optional[str] = None,
        conversation_id: Optional[str] = None,
        context_file_ids: Optional[Sequence[str]] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        provider: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> PromptExecutionResult:
        correlation_id = correlation_id or new_correlation_id()
        started = time.monotonic()

        logger.info(
            "[execution] Starting prompt execution. CorrelationId: %s, UserId: %s, ConversationId: %s",
            correlation_id, user_id, conversation_id,
        )

        try:
            prepared = await self._preparation.prepare(
                prompt=prompt,
                user_id=user_id,
                system_prompt=system_prompt,
                conversation_id=conversation_id,
                context_file_ids=context_file_ids,
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                provider=provider,
            )

            if not await self._rate_limiter.try_acquire(user_id):
                raise RateLimitExceededError(user_id)

            execution = await self._registry.execute(prepared, correlation_id)
            response = execution.response
            if not response.success:
                logger.error(
                    "[execution] Provider %s returned an unsuccessful response: %s. CorrelationId: %s",
                    execution.provider_name, response.error_message, correlation_id,
                )
                raise ProviderExecutionError(
                    response.error_message or "Provider returned no content",
                    provider=execution.provider.value,
                    model=execution.actual_model,
                )

            latency_ms = int((time.monotonic() - started) * 1000)

            persisted = await self._persistence.persist(
                prompt=prompt,
                system_prompt=system_prompt,
                conversation_id=conversation_id,
                execution_result=execution,
                user_id=user_id,
                latency_ms=latency_ms,
                correlation_id=correlation_id,
            )
        except PromptLabError as exc:
            if exc.correlation_id is None:
                exc.correlation_id = correlation_id
            logger.warning(
                "[execution] Prompt execution failed: %s: %s. CorrelationId: %s",
                type(exc).__name__, exc.message, correlation_id,
            )
            raise

        logger.info(
            "[execution] Prompt execution completed. CorrelationId: %s, PromptId: %s, "
            "Tokens: %d, Cost: %s, LatencyMs: %d",
            correlation_id, persisted.prompt_id, response.total_tokens, response.cost, latency_ms,
        )

        return PromptExecutionResult(
            prompt_id=persisted.prompt_id,
            response_id=persisted.response_id,
            conversation_id=persisted.conversation_id,
            content=response.content,
            input_tokens=max(0, response.prompt_tokens),
            output_tokens=max(0, response.completion_tokens),
            cost=max(Decimal("0"), response.cost),
            latency_ms=latency_ms,
            model=execution.actual_model,
            provider=execution.provider,
            created_at=persisted.created_at,
            is_new_conversation=persisted.is_new_conversation,
            correlation_id=correlation_id,
        )

    # =========================================================================
    # ESTIMATE
    # =========================================================================

    async def estimate_tokens(self, prompt: str, model: Optional[str] = None) -> TokenEstimate:
        """Token count for `prompt` on the provider serving `model`, priced as input tokens."""
        validate_prompt_request(prompt)

        model = model or config.DEFAULT_MODEL
        adapter = self._registry.select_provider(model)
        token_count = await adapter.estimate_tokens(prompt, model)
        estimated_cost = adapter.calculate_cost(model, token_count, 0)

        logger.debug("[execution] Estimated %d tokens for model %s", token_count, model)
        return TokenEstimate(token_count=token_count, model=model, estimated_cost=estimated_cost)

    # =========================================================================
    # READ
    # =========================================================================

    async def get_prompt(self, prompt_id: str) -> Optional[memory_schemas.PromptDetailOut]:
        return await asyncio.to_thread(self._get_prompt_sync, prompt_id)

    async def list_conversation_prompts(self, conversation_id: str) -> List[memory_schemas.PromptDetailOut]:
        return await asyncio.to_thread(self._list_conversation_prompts_sync, conversation_id)

    def _get_prompt_sync(self, prompt_id: str) -> Optional[memory_schemas.PromptDetailOut]:
        db = self._session_factory()
        try:
            row = memory_service.get_prompt(db, prompt_id)
            if row is None:
                return None
            return memory_schemas.PromptDetailOut.model_validate(row)
        finally:
            db.close()

    def _list_conversation_prompts_sync(self, conversation_id: str) -> List[memory_schemas.PromptDetailOut]:
        db = self._session_factory()
        try:
            rows = memory_service.list_prompts_for_conversation(db, conversation_id)
            return [memory_schemas.PromptDetailOut.model_validate(row) for row in rows]
        finally:
            db.close()
