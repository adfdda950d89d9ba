# FILE: promptlab/memory/history.py
"""
Conversation history loader.

Rebuilds prior turns of a conversation as an ordered message list:

    user(prompt 1), assistant(latest response to prompt 1),
    user(prompt 2), assistant(latest response to prompt 2), ...

Oldest first. Read-only. The query runs in a worker thread so the event
loop is not blocked on the database.
"""

import asyncio
import logging
from typing import List

from sqlalchemy.orm import Session, selectinload, sessionmaker

from promptlab.memory import models
from promptlab.schemas import ConversationMessage

logger = logging.getLogger(__name__)


class ConversationHistoryService:

    def __init__(self, session_factory: sessionmaker):
        if session_factory is None:
            raise ValueError("session_factory is required")
        self._session_factory = session_factory

    async def load_history(self, conversation_id: str) -> List[ConversationMessage]:
        history = await asyncio.to_thread(self._load_history_sync, conversation_id)
        logger.info(
            "[history] Loaded %d previous messages from conversation %s",
            len(history), conversation_id,
        )
        return history

    def _load_history_sync(self, conversation_id: str) -> List[ConversationMessage]:
        db: Session = self._session_factory()
        try:
            prompts = (
                db.query(models.Prompt)
                .options(selectinload(models.Prompt.responses))
                .filter(models.Prompt.conversation_id == conversation_id)
                .order_by(models.Prompt.created_at.asc())
                .all()
            )

            history: List[ConversationMessage] = []
            for prompt in prompts:
                history.append(ConversationMessage(role="user", content=prompt.user_prompt))
                latest = _latest_response(prompt.responses)
                if latest is not None:
                    history.append(ConversationMessage(role="assistant", content=latest.content))
            return history
        finally:
            db.close()


def _latest_response(responses: List[models.Response]):
    if not responses:
        return None
    return max(responses, key=lambda r: r.created_at)
