# FILE: main.py
"""
PromptLab Backend - FastAPI Application
Version: 0.4.0

Features:
- Prompt execution against Google Gemini and Groq
- Conversation memory with per-turn token usage, cost and latency
- Context file enrichment
- Per-caller rate limiting (minute + hour windows)
- Token estimation and provider health checks

Run:
    uvicorn main:app --reload
"""
import os
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

from promptlab import __version__
from promptlab.config import load_rate_limit_config
from promptlab.db import SessionLocal, init_db
from promptlab.execution import PromptExecutionService
from promptlab.memory.history import ConversationHistoryService
from promptlab.memory.persistence import PromptPersistenceService
from promptlab.pipeline import PromptEnricher, RequestPreparationService
from promptlab.providers import build_default_registry
from promptlab.rate_limit import InMemoryRateLimiter
from promptlab.router import register_exception_handlers, router as prompts_router

logging.basicConfig(
    level=os.getenv("PROMPTLAB_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(session_factory=None, registry=None, rate_limiter=None, init_database=True) -> FastAPI:
    session_factory = session_factory or SessionLocal
    registry = registry or build_default_registry()
    rate_limiter = rate_limiter or InMemoryRateLimiter(load_rate_limit_config())

    app = FastAPI(
        title="PromptLab",
        version=__version__,
        description="Prompt execution pipeline with multi-provider routing and conversation memory",
    )

    # ====== CORS ======

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://localhost:8000",
            "http://127.0.0.1:5173",
            "http://127.0.0.1:8000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Correlation-Id",
            "X-RateLimit-Limit-Minute",
            "X-RateLimit-Limit-Hour",
            "X-RateLimit-Remaining",
            "Retry-After",
        ],
    )

    # ====== SERVICES ======

    preparation = RequestPreparationService(
        ConversationHistoryService(session_factory),
        PromptEnricher(session_factory),
        registry=registry,
    )
    app.state.session_factory = session_factory
    app.state.registry = registry
    app.state.rate_limiter = rate_limiter
    app.state.execution_service = PromptExecutionService(
        preparation,
        rate_limiter,
        registry,
        PromptPersistenceService(session_factory),
        session_factory,
    )

    # ====== STARTUP ======

    @app.on_event("startup")
    def on_startup():
        if init_database:
            os.makedirs("data", exist_ok=True)
            init_db()

        logger.info("[startup] Checking environment variables...")
        for name in ("GOOGLE_API_KEY", "GROQ_API_KEY"):
            if os.getenv(name):
                logger.info("[startup] %s: [OK] set", name)
            else:
                logger.warning("[startup] %s: [X] NOT SET - provider will report unavailable", name)

        if rate_limiter.enabled:
            logger.info(
                "[startup] Rate limiting: [OK] %d/min, %d/hour",
                rate_limiter.config.requests_per_minute,
                rate_limiter.config.requests_per_hour,
            )
        else:
            logger.info("[startup] Rate limiting: [X] DISABLED")

    # ====== ROUTES ======

    app.include_router(prompts_router)
    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
