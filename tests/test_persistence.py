# FILE: tests/test_persistence.py
"""
Tests for promptlab/memory/persistence.py
One exchange = one transaction (conversation + prompt + response).
"""

import asyncio
import threading
from datetime import datetime
from decimal import Decimal

import pytest

from promptlab.errors import PersistenceError
from promptlab.memory import models
from promptlab.memory.persistence import PromptPersistenceService, conversation_title
from promptlab.schemas import LlmExecutionResult, LlmResponse, ProviderKind


def _execution(content="4", prompt_tokens=5, completion_tokens=1, cost="0.00000175",
               provider=ProviderKind.GOOGLE, context_file_id=None):
    return LlmExecutionResult(
        response=LlmResponse(
            model="gemini-1.5-flash",
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=Decimal(cost),
            latency_ms=12,
        ),
        provider=provider,
        provider_name="Google Gemini",
        actual_model="gemini-1.5-flash",
        execution_timestamp=datetime.utcnow(),
        context_file_id=context_file_id,
    )


async def _persist(service, prompt="What is 2+2?", conversation_id=None, **kwargs):
    return await service.persist(
        prompt=prompt,
        system_prompt=kwargs.pop("system_prompt", None),
        conversation_id=conversation_id,
        execution_result=kwargs.pop("execution_result", _execution()),
        user_id=kwargs.pop("user_id", "user-1"),
        latency_ms=kwargs.pop("latency_ms", 42),
        correlation_id="corr-1",
    )


class TestConversationTitle:
    """Test title derivation from the first prompt."""

    def test_short_prompt_verbatim(self):
        assert conversation_title("What is 2+2?") == "What is 2+2?"

    def test_exactly_fifty_chars_verbatim(self):
        prompt = "x" * 50
        assert conversation_title(prompt) == prompt

    def test_long_prompt_truncated(self):
        title = conversation_title("y" * 51)
        assert title == "y" * 47 + "..."
        assert len(title) == 50


class TestPersistExchange:
    """Test the happy path."""

    @pytest.mark.asyncio
    async def test_new_conversation_created(self, session_factory, db):
        service = PromptPersistenceService(session_factory)

        result = await _persist(service)

        assert result.is_new_conversation is True
        conversation = db.get(models.Conversation, result.conversation_id)
        assert conversation.title == "What is 2+2?"
        assert conversation.user_id == "user-1"

        prompt = db.get(models.Prompt, result.prompt_id)
        assert prompt.conversation_id == result.conversation_id
        assert prompt.user_prompt == "What is 2+2?"
        assert prompt.actual_tokens == 6
        assert prompt.estimated_tokens == len("What is 2+2?") // 4

        response = db.get(models.Response, result.response_id)
        assert response.prompt_id == result.prompt_id
        assert response.content == "4"
        assert response.provider == "google"
        assert response.tokens == 6
        assert response.latency_ms == 42
        assert Decimal(response.cost) == Decimal("0.00000175")

    @pytest.mark.asyncio
    async def test_existing_conversation_reused(self, session_factory, db):
        service = PromptPersistenceService(session_factory)
        first = await _persist(service)

        second = await _persist(service, prompt="And 3+3?", conversation_id=first.conversation_id)

        assert second.is_new_conversation is False
        assert second.conversation_id == first.conversation_id
        assert db.query(models.Conversation).count() == 1
        assert db.query(models.Prompt).count() == 2

    @pytest.mark.asyncio
    async def test_unknown_supplied_id_is_created_with_that_id(self, session_factory, db):
        service = PromptPersistenceService(session_factory)

        result = await _persist(service, conversation_id="11111111-2222-3333-4444-555555555555")

        assert result.is_new_conversation is True
        assert result.conversation_id == "11111111-2222-3333-4444-555555555555"

    @pytest.mark.asyncio
    async def test_groq_provider_recorded(self, session_factory, db):
        service = PromptPersistenceService(session_factory)
        result = await _persist(service, execution_result=_execution(provider=ProviderKind.GROQ))
        assert db.get(models.Response, result.response_id).provider == "groq"


class TestPersistAtomicity:
    """Test that a failed write leaves nothing behind."""

    @pytest.mark.asyncio
    async def test_response_failure_rolls_back_everything(self, session_factory, db, monkeypatch):
        service = PromptPersistenceService(session_factory)

        def _boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(service, "_build_response", _boom)

        with pytest.raises(PersistenceError):
            await _persist(service)

        assert db.query(models.Conversation).count() == 0
        assert db.query(models.Prompt).count() == 0
        assert db.query(models.Response).count() == 0

    @pytest.mark.asyncio
    async def test_failure_on_existing_conversation_keeps_prior_turns(self, session_factory, db, monkeypatch):
        service = PromptPersistenceService(session_factory)
        first = await _persist(service)

        def _boom(*args, **kwargs):
            raise RuntimeError("constraint")

        monkeypatch.setattr(service, "_build_response", _boom)
        with pytest.raises(PersistenceError):
            await _persist(service, prompt="second", conversation_id=first.conversation_id)

        assert db.query(models.Prompt).count() == 1
        assert db.query(models.Response).count() == 1


class TestTouchConversation:
    """Test updated_at refresh."""

    @pytest.mark.asyncio
    async def test_refresh_is_idempotent(self, session_factory):
        service = PromptPersistenceService(session_factory)
        result = await _persist(service)

        def _snapshot():
            session = session_factory()
            try:
                conversation = session.get(models.Conversation, result.conversation_id)
                return conversation.title, conversation.updated_at
            finally:
                session.close()

        title_before, before = _snapshot()
        await service.touch_conversation(result.conversation_id)
        title_once, once = _snapshot()
        await service.touch_conversation(result.conversation_id)
        title_twice, twice = _snapshot()

        assert once >= before
        assert twice >= once
        assert title_once == title_before
        assert title_twice == title_before

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self, session_factory):
        await PromptPersistenceService(session_factory).touch_conversation("missing")


class _GatedPersistence(PromptPersistenceService):
    """Holds the worker thread inside the exchange write until released."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.entered = threading.Event()
        self.release = threading.Event()
        self.finished = threading.Event()

    def _save_exchange_sync(self, *args):
        self.entered.set()
        self.release.wait(5)
        try:
            return super()._save_exchange_sync(*args)
        finally:
            self.finished.set()


class TestCancellation:
    """Test what a cancelled persist() leaves behind."""

    @pytest.mark.asyncio
    async def test_cancel_during_write_still_commits(self, session_factory):
        service = _GatedPersistence(session_factory)

        task = asyncio.create_task(_persist(service))
        assert await asyncio.to_thread(service.entered.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        service.release.set()
        assert await asyncio.to_thread(service.finished.wait, 5)

        session = session_factory()
        try:
            assert session.query(models.Prompt).count() == 1
            assert session.query(models.Response).count() == 1
        finally:
            session.close()
