# FILE: tests/conftest.py
"""
Pytest configuration for PromptLab test suite.

Configures:
- pytest-asyncio for async test support
- in-memory SQLite shared across threads (services run queries via asyncio.to_thread)
- provider configs with test keys
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def session_factory():
    """sessionmaker bound to a fresh in-memory database."""
    from promptlab.db import Base
    from promptlab.memory import models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gemini_config():
    from promptlab.config import GEMINI_MODELS, GeminiConfig
    return GeminiConfig(api_key="test-google-key", models=dict(GEMINI_MODELS))


@pytest.fixture
def groq_config():
    from promptlab.config import GROQ_MODELS, GroqConfig
    return GroqConfig(api_key="test-groq-key", models=dict(GROQ_MODELS))


@pytest.fixture
def no_sleep():
    """RetryPolicy sleep replacement that records requested delays."""
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def make_provider():
    """
    Factory for in-process adapters with canned behaviour.

        make_provider(ProviderKind.GOOGLE, content="4", prompt_tokens=5, completion_tokens=1)
        make_provider(ProviderKind.GROQ, success=False, error_message="down")
        make_provider(ProviderKind.GOOGLE, raises=RuntimeError("boom"))
    """
    from promptlab.config import GEMINI_MODELS, GROQ_MODELS, GeminiConfig, GroqConfig
    from promptlab.providers.base import LlmProvider
    from promptlab.schemas import LlmResponse, ProviderKind

    class ScriptedProvider(LlmProvider):

        def __init__(self, kind, content="ok", prompt_tokens=1, completion_tokens=1,
                     success=True, error_message=None, raises=None, available=True, api_key="key"):
            if kind == ProviderKind.GOOGLE:
                config = GeminiConfig(api_key=api_key, models=dict(GEMINI_MODELS))
                self.provider_name = "Google Gemini"
            else:
                config = GroqConfig(api_key=api_key, models=dict(GROQ_MODELS))
                self.provider_name = "Groq"
            super().__init__(config)
            self.provider = kind
            self.content = content
            self.prompt_tokens = prompt_tokens
            self.completion_tokens = completion_tokens
            self.success = success
            self.error_message = error_message
            self.raises = raises
            self.available = available
            self.requests = []

        async def generate(self, request):
            self.requests.append(request)
            if self.raises is not None:
                raise self.raises
            if not self.success:
                return LlmResponse(model=request.model, success=False, error_message=self.error_message)
            return LlmResponse(
                model=request.model,
                content=self.content,
                prompt_tokens=self.prompt_tokens,
                completion_tokens=self.completion_tokens,
                cost=self.calculate_cost(request.model, self.prompt_tokens, self.completion_tokens),
                latency_ms=3,
            )

        async def estimate_tokens(self, text, model=None):
            if not text or not text.strip():
                raise ValueError("Prompt cannot be empty")
            return len(text) // 4

        async def is_available(self):
            if isinstance(self.available, Exception):
                raise self.available
            return self.available

    def _make(kind, **kwargs):
        return ScriptedProvider(kind, **kwargs)

    return _make
