# FILE: tests/test_router.py
"""
Tests for promptlab/router.py
HTTP surface via FastAPI TestClient with scripted providers.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from promptlab.config import RateLimitConfig
from promptlab.rate_limit import InMemoryRateLimiter
from promptlab.providers.registry import ProviderRegistry
from promptlab.schemas import ProviderKind


@pytest.fixture
def make_client(session_factory, make_provider):
    from main import create_app

    def _make(providers=None, rate_limit=None, registry=None, raise_server_exceptions=True):
        providers = providers if providers is not None else [
            make_provider(ProviderKind.GOOGLE, content="4", prompt_tokens=5, completion_tokens=1),
            make_provider(ProviderKind.GROQ),
        ]
        app = create_app(
            session_factory=session_factory,
            registry=registry or ProviderRegistry(providers),
            rate_limiter=InMemoryRateLimiter(rate_limit or RateLimitConfig()),
            init_database=False,
        )
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    return _make


class TestExecuteEndpoint:
    """Test POST /api/prompts/execute."""

    def test_success(self, make_client):
        client = make_client()

        response = client.post(
            "/api/prompts/execute",
            json={"prompt": "What is 2+2?", "model": "gemini-1.5-flash"},
            headers={"X-User-Id": "alice"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["content"] == "4"
        assert body["input_tokens"] == 5
        assert body["output_tokens"] == 1
        assert body["provider"] == "google"
        assert body["is_new_conversation"] is True
        assert response.headers["X-Correlation-Id"] == body["correlation_id"]
        assert response.headers["X-RateLimit-Limit-Minute"] == "60"
        assert response.headers["X-RateLimit-Limit-Hour"] == "1000"
        assert response.headers["X-RateLimit-Remaining"] == "59"

    def test_validation_error(self, make_client):
        response = make_client().post("/api/prompts/execute", json={"prompt": "   "})

        assert response.status_code == 400
        body = response.json()
        assert body["field"] == "prompt"
        assert body["correlation_id"]
        assert body["correlation_id"] == response.headers["X-Correlation-Id"]

    def test_rate_limited(self, make_client):
        client = make_client(rate_limit=RateLimitConfig(requests_per_minute=1, requests_per_hour=10))

        assert client.post("/api/prompts/execute", json={"prompt": "one"}).status_code == 200
        response = client.post("/api/prompts/execute", json={"prompt": "two"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.json()["detail"] == "Rate limit exceeded. Please try again later."

    def test_anonymous_and_named_callers_have_separate_budgets(self, make_client):
        client = make_client(rate_limit=RateLimitConfig(requests_per_minute=1, requests_per_hour=10))
        assert client.post("/api/prompts/execute", json={"prompt": "one"}).status_code == 200
        response = client.post("/api/prompts/execute", json={"prompt": "one"}, headers={"X-User-Id": "bob"})
        assert response.status_code == 200

    def test_provider_failure_is_sanitized(self, make_client, make_provider):
        client = make_client([
            make_provider(ProviderKind.GOOGLE, success=False, error_message="API returned 500: secret upstream body"),
        ])

        response = client.post("/api/prompts/execute", json={"prompt": "hello"})

        assert response.status_code == 502
        assert "secret" not in response.text

    def test_unexpected_error_is_sanitized(self, make_client, make_provider):
        client = make_client([make_provider(ProviderKind.GOOGLE, raises=RuntimeError("internal detail"))])

        response = client.post("/api/prompts/execute", json={"prompt": "hello"})

        assert response.status_code == 500
        assert "internal detail" not in response.text
        assert response.json()["correlation_id"]

    def test_no_providers_configured(self, make_client):
        response = make_client([]).post("/api/prompts/execute", json={"prompt": "hello"})
        assert response.status_code == 500
        assert "gemini-1.5-flash" in response.json()["detail"]


class TestPromptReads:
    """Test GET endpoints for stored prompts."""

    def test_get_prompt_and_conversation(self, make_client):
        client = make_client()
        executed = client.post("/api/prompts/execute", json={"prompt": "What is 2+2?"}).json()

        detail = client.get(f"/api/prompts/{executed['prompt_id']}")
        assert detail.status_code == 200
        assert detail.json()["responses"][0]["content"] == "4"

        listing = client.get(f"/api/prompts/conversation/{executed['conversation_id']}")
        assert listing.status_code == 200
        assert [p["id"] for p in listing.json()] == [executed["prompt_id"]]

    def test_get_missing_prompt(self, make_client):
        response = make_client().get("/api/prompts/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "Not found"
        assert "missing" in body["detail"]
        assert body["correlation_id"]
        assert response.headers["X-Correlation-Id"] == body["correlation_id"]


class TestEstimateEndpoint:

    def test_estimate(self, make_client):
        response = make_client().post("/api/prompts/estimate", json={"prompt": "a" * 40, "model": "gemini-1.5-flash"})
        assert response.status_code == 200
        assert response.json()["token_count"] == 10

    def test_estimate_empty(self, make_client):
        assert make_client().post("/api/prompts/estimate", json={"prompt": ""}).status_code == 400


class TestProviderEndpoints:

    def test_list_providers(self, make_client):
        response = make_client().get("/api/providers")
        assert response.status_code == 200
        assert [p["provider"] for p in response.json()] == ["google", "groq"]

    def test_status(self, make_client):
        response = make_client().get("/api/providers/groq/status")
        assert response.status_code == 200
        assert response.json()["is_healthy"] is True

    def test_status_unknown(self, make_client):
        response = make_client().get("/api/providers/openai/status")
        assert response.status_code == 404
        assert "openai" in response.json()["detail"]

    def test_health(self, make_client):
        assert make_client().get("/health").json()["status"] == "ok"


class TestProviderChoice:
    """Test the optional provider field on POST /api/prompts/execute."""

    def test_unknown_provider_rejected(self, make_client):
        response = make_client().post(
            "/api/prompts/execute",
            json={"prompt": "hi", "provider": "no-such-provider", "model": "totally-unknown-model"},
        )

        assert response.status_code == 400
        assert response.json()["field"] == "provider"
        assert response.headers["X-Correlation-Id"] == response.json()["correlation_id"]

    def test_provider_without_model_uses_provider_default(self, make_client):
        response = make_client().post("/api/prompts/execute", json={"prompt": "hi", "provider": "groq"})

        assert response.status_code == 200
        assert response.json()["provider"] == "groq"
        assert response.json()["model"] == "llama-3.1-8b-instant"

    @pytest.mark.parametrize("model", ["llama-3.1-8b-instant", "totally-unknown-model"])
    def test_provider_model_mismatch_rejected(self, make_client, model):
        response = make_client().post(
            "/api/prompts/execute", json={"prompt": "hi", "provider": "google", "model": model},
        )
        assert response.status_code == 400
        assert response.json()["field"] == "model"

    def test_unconfigured_provider_rejected(self, make_client, make_provider):
        client = make_client([make_provider(ProviderKind.GOOGLE)])
        response = client.post("/api/prompts/execute", json={"prompt": "hi", "provider": "groq"})
        assert response.status_code == 400
        assert response.json()["field"] == "provider"


class TestErrorHandlers:
    """Test app-level handlers give every error a correlated body."""

    def test_request_body_validation_has_correlation_id(self, make_client):
        response = make_client().post("/api/prompts/execute", json={})

        assert response.status_code == 422
        body = response.json()
        assert body["field"] == "prompt"
        assert body["correlation_id"] == response.headers["X-Correlation-Id"]

    def test_unexpected_error_on_read_route_is_sanitized(self, make_client, make_provider):
        registry = ProviderRegistry([make_provider(ProviderKind.GOOGLE)])
        registry.describe_providers = AsyncMock(side_effect=RuntimeError("connection string with secret"))
        client = make_client(registry=registry, raise_server_exceptions=False)

        response = client.get("/api/providers")

        assert response.status_code == 500
        assert "secret" not in response.text
        body = response.json()
        assert body["error"] == "Internal server error"
        assert body["correlation_id"] == response.headers["X-Correlation-Id"]

    def test_unknown_provider_status_has_correlation_id(self, make_client):
        response = make_client().get("/api/providers/openai/status")
        assert response.status_code == 404
        assert response.json()["correlation_id"] == response.headers["X-Correlation-Id"]

    def test_oversized_estimate_rejected(self, make_client):
        response = make_client().post("/api/prompts/estimate", json={"prompt": "a" * 100_001})
        assert response.status_code == 400
        assert response.json()["field"] == "prompt"


class TestConversationEndpoints:
    """Test GET /api/conversations routes."""

    def test_list_is_scoped_to_caller(self, make_client):
        client = make_client()
        executed = client.post(
            "/api/prompts/execute", json={"prompt": "What is 2+2?"}, headers={"X-User-Id": "alice"},
        ).json()

        mine = client.get("/api/conversations", headers={"X-User-Id": "alice"})
        theirs = client.get("/api/conversations", headers={"X-User-Id": "bob"})

        assert mine.status_code == 200
        assert [c["id"] for c in mine.json()] == [executed["conversation_id"]]
        assert mine.json()[0]["user_id"] == "alice"
        assert theirs.json() == []

    def test_get_conversation(self, make_client):
        client = make_client()
        executed = client.post("/api/prompts/execute", json={"prompt": "What is 2+2?"}).json()

        response = client.get(f"/api/conversations/{executed['conversation_id']}")

        assert response.status_code == 200
        assert response.json()["title"]

    def test_get_missing_conversation(self, make_client):
        response = make_client().get("/api/conversations/nope")
        assert response.status_code == 404
        assert response.json()["correlation_id"]


class TestContextFileEndpoints:
    """Test /api/context-files registration, lookup and delete."""

    def test_register_get_delete(self, make_client, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("remember this")
        client = make_client()

        created = client.post(
            "/api/context-files",
            json={"file_name": "notes.txt", "storage_path": str(path), "file_size": 13},
        )
        assert created.status_code == 201
        file_id = created.json()["id"]
        assert created.json()["content_type"] == "text/plain"
        assert "storage_path" not in created.json()

        assert client.get(f"/api/context-files/{file_id}").json()["file_name"] == "notes.txt"
        assert client.delete(f"/api/context-files/{file_id}").status_code == 204
        assert client.get(f"/api/context-files/{file_id}").status_code == 404

    def test_delete_missing(self, make_client):
        response = make_client().delete("/api/context-files/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "Not found"

    def test_registered_file_enriches_prompt(self, make_client, make_provider, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("the answer is 4")
        gemini = make_provider(ProviderKind.GOOGLE)
        client = make_client([gemini])
        file_id = client.post(
            "/api/context-files", json={"file_name": "notes.txt", "storage_path": str(path)},
        ).json()["id"]

        response = client.post("/api/prompts/execute", json={"prompt": "What is 2+2?", "context_file_ids": [file_id]})

        assert response.status_code == 200
        assert "the answer is 4" in gemini.requests[0].prompt
