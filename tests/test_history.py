# FILE: tests/test_history.py
"""
Tests for promptlab/memory/history.py
Prior turns rebuilt as user/assistant messages, oldest first.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from promptlab.memory import models
from promptlab.memory.history import ConversationHistoryService


def _seed_conversation(db, turns):
    """turns: list of (prompt_text, [response_texts]) in creation order."""
    base = datetime(2024, 1, 1, 12, 0, 0)
    conversation = models.Conversation(user_id="u1", title="seed", created_at=base, updated_at=base)
    db.add(conversation)
    db.flush()
    conversation_id = conversation.id
    for i, (prompt_text, responses) in enumerate(turns):
        prompt = models.Prompt(
            conversation_id=conversation.id,
            user_prompt=prompt_text,
            created_at=base + timedelta(minutes=i),
        )
        db.add(prompt)
        db.flush()
        for j, content in enumerate(responses):
            db.add(models.Response(
                prompt_id=prompt.id,
                provider="google",
                model="gemini-1.5-flash",
                content=content,
                tokens=3,
                cost=Decimal("0.0001"),
                latency_ms=10,
                created_at=base + timedelta(minutes=i, seconds=j + 1),
            ))
    db.commit()
    return conversation_id


class TestLoadHistory:
    """Test history reconstruction."""

    @pytest.mark.asyncio
    async def test_alternating_turns_in_order(self, session_factory, db):
        """Each prompt yields a user turn followed by its assistant turn."""
        conversation_id = _seed_conversation(db, [("q1", ["a1"]), ("q2", ["a2"])])
        service = ConversationHistoryService(session_factory)

        history = await service.load_history(conversation_id)

        assert [(m.role, m.content) for m in history] == [
            ("user", "q1"), ("assistant", "a1"),
            ("user", "q2"), ("assistant", "a2"),
        ]

    @pytest.mark.asyncio
    async def test_latest_response_wins(self, session_factory, db):
        """With several responses only the most recent becomes the assistant turn."""
        conversation_id = _seed_conversation(db, [("q1", ["old", "new"])])
        history = await ConversationHistoryService(session_factory).load_history(conversation_id)
        assert [(m.role, m.content) for m in history] == [("user", "q1"), ("assistant", "new")]

    @pytest.mark.asyncio
    async def test_prompt_without_response(self, session_factory, db):
        """A prompt with no response contributes only its user turn."""
        conversation_id = _seed_conversation(db, [("q1", [])])
        history = await ConversationHistoryService(session_factory).load_history(conversation_id)
        assert [(m.role, m.content) for m in history] == [("user", "q1")]

    @pytest.mark.asyncio
    async def test_unknown_conversation_is_empty(self, session_factory):
        history = await ConversationHistoryService(session_factory).load_history("does-not-exist")
        assert history == []

    def test_requires_session_factory(self):
        with pytest.raises(ValueError):
            ConversationHistoryService(None)
