# FILE: promptlab/memory/persistence.py
"""
Prompt persistence service.

Writes one exchange (conversation + prompt + response) in a single
transaction. Either all three rows become visible or none do. The
conversation's updated_at is refreshed in a separate, idempotent step
after the commit.

There is no application-level lock here: the database transaction is the
only consistency mechanism. Concurrent turns on one conversation may
interleave.

Cancelling persist() while the exchange write is in its worker thread does
not stop the thread. The caller sees CancelledError, but the transaction
still runs to completion and may commit. Callers that need to know whether
the exchange landed must look it up afterwards.
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from promptlab.errors import PersistenceError
from promptlab.memory import models
from promptlab.providers.base import estimate_tokens_by_length
from promptlab.schemas import LlmExecutionResult, PromptPersistenceResult

logger = logging.getLogger(__name__)

MAX_CONVERSATION_TITLE_LENGTH = 50
TRUNCATED_TITLE_LENGTH = 47


def conversation_title(prompt: str) -> str:
    """First prompt as title, cut to 47 chars + '...' when over 50."""
    if len(prompt) > MAX_CONVERSATION_TITLE_LENGTH:
        return prompt[:TRUNCATED_TITLE_LENGTH] + "..."
    return prompt


class PromptPersistenceService:

    def __init__(self, session_factory: sessionmaker):
        if session_factory is None:
            raise ValueError("session_factory is required")
        self._session_factory = session_factory

    async def persist(
        self,
        *,
        prompt: str,
        system_prompt: Optional[str],
        conversation_id: Optional[str],
        execution_result: LlmExecutionResult,
        user_id: str,
        latency_ms: int,
        correlation_id: str = "",
    ) -> PromptPersistenceResult:
        logger.info(
            "[persistence] Starting prompt persistence. CorrelationId: %s, ConversationId: %s",
            correlation_id, conversation_id,
        )

        prompt_id, response_id, actual_conversation_id, created_at, is_new = await asyncio.to_thread(
            self._save_exchange_sync,
            prompt,
            system_prompt,
            conversation_id,
            execution_result,
            user_id,
            latency_ms,
        )

        await self.touch_conversation(actual_conversation_id)

        logger.info(
            "[persistence] Prompt persistence completed. CorrelationId: %s, PromptId: %s, "
            "ResponseId: %s, ConversationId: %s, IsNew: %s",
            correlation_id, prompt_id, response_id, actual_conversation_id, is_new,
        )

        return PromptPersistenceResult(
            prompt_id=prompt_id,
            response_id=response_id,
            conversation_id=actual_conversation_id,
            created_at=created_at,
            is_new_conversation=is_new,
        )

    async def touch_conversation(self, conversation_id: str) -> None:
        """Refresh updated_at. Safe to repeat; unknown ids are ignored."""
        await asyncio.to_thread(self._touch_conversation_sync, conversation_id)

    # ------------------------------------------------------------------
    # Sync internals (run in a worker thread)
    # ------------------------------------------------------------------

    def _save_exchange_sync(
        self,
        prompt: str,
        system_prompt: Optional[str],
        conversation_id: Optional[str],
        execution_result: LlmExecutionResult,
        user_id: str,
        latency_ms: int,
    ) -> Tuple[str, str, str, datetime, bool]:
        db: Session = self._session_factory()
        try:
            conversation, is_new = self._locate_or_create_conversation(
                db, conversation_id, user_id, prompt
            )

            prompt_row = self._build_prompt(conversation.id, prompt, system_prompt, execution_result)
            db.add(prompt_row)
            db.flush()

            response_row = self._build_response(prompt_row.id, execution_result, latency_ms)
            db.add(response_row)

            db.commit()
            return prompt_row.id, response_row.id, conversation.id, response_row.created_at, is_new
        except Exception as exc:
            db.rollback()
            logger.error("[persistence] Exchange write rolled back: %s", exc)
            raise PersistenceError(f"Failed to persist prompt execution: {exc}") from exc
        finally:
            db.close()

    def _locate_or_create_conversation(
        self, db: Session, conversation_id: Optional[str], user_id: str, prompt: str
    ) -> Tuple[models.Conversation, bool]:
        if conversation_id:
            conversation = db.get(models.Conversation, conversation_id)
            if conversation is not None:
                return conversation, False

        now = datetime.utcnow()
        conversation = models.Conversation(
            user_id=user_id,
            title=conversation_title(prompt),
            created_at=now,
            updated_at=now,
        )
        if conversation_id:
            conversation.id = conversation_id
        db.add(conversation)
        db.flush()
        logger.info("[persistence] Created new conversation %s", conversation.id)
        return conversation, True

    def _build_prompt(
        self,
        conversation_id: str,
        prompt: str,
        system_prompt: Optional[str],
        execution_result: LlmExecutionResult,
    ) -> models.Prompt:
        response = execution_result.response
        return models.Prompt(
            conversation_id=conversation_id,
            user_prompt=prompt,
            system_prompt=system_prompt,
            context_file_id=execution_result.context_file_id,
            estimated_tokens=estimate_tokens_by_length(prompt),
            actual_tokens=max(0, response.total_tokens),
            created_at=datetime.utcnow(),
        )

    def _build_response(
        self,
        prompt_id: str,
        execution_result: LlmExecutionResult,
        latency_ms: int,
    ) -> models.Response:
        response = execution_result.response
        return models.Response(
            prompt_id=prompt_id,
            provider=execution_result.provider.value,
            model=execution_result.actual_model or response.model,
            content=response.content,
            tokens=max(0, response.total_tokens),
            cost=max(Decimal("0"), response.cost),
            latency_ms=max(0, int(latency_ms)),
            created_at=datetime.utcnow(),
        )

    def _touch_conversation_sync(self, conversation_id: str) -> None:
        db: Session = self._session_factory()
        try:
            conversation = db.get(models.Conversation, conversation_id)
            if conversation is None:
                return
            conversation.updated_at = datetime.utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
