# FILE: promptlab/providers/groq.py
"""
Groq adapter (OpenAI-compatible chat completions).

Groq has no token counting endpoint, so estimate_tokens uses the
length heuristic from promptlab.providers.base.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from promptlab.config import GroqConfig
from promptlab.providers.base import LlmProvider, _now_ms, estimate_tokens_by_length
from promptlab.schemas import LlmRequest, LlmResponse, ProviderKind

logger = logging.getLogger(__name__)


class GroqProvider(LlmProvider):
    provider = ProviderKind.GROQ
    provider_name = "Groq"

    def __init__(self, config: GroqConfig, **kwargs: Any):
        super().__init__(config, **kwargs)

    def _url(self, path: str) -> str:
        base = self.config.base_url.rstrip("/")
        return f"{base}/{self.config.api_version}/{path}"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def build_payload(self, request: LlmRequest) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if request.system_prompt and request.system_prompt.strip():
            messages.append({"role": "system", "content": request.system_prompt})
        for message in request.conversation_history or []:
            role = message.role if message.role in ("user", "assistant") else "user"
            messages.append({"role": role, "content": message.content})
        messages.append({"role": "user", "content": request.prompt})

        payload: Dict[str, Any] = {
            "model": request.model or self.config.model,
            "messages": messages,
            "stream": False,
        }
        if request.temperature is not None:
            payload["temperature"] = float(request.temperature)
        if request.max_tokens is not None:
            payload["max_tokens"] = int(request.max_tokens)
        return payload

    async def generate(self, request: LlmRequest) -> LlmResponse:
        if request is None:
            raise ValueError("request is required")

        started = _now_ms()
        model = request.model or self.config.model

        try:
            logger.info("[groq] Generating content with model %s", model)
            payload = self.build_payload(request)
            url = self._url("chat/completions")
            headers = self._headers()

            async with self._client() as client:
                response = await self._retry_policy.execute(
                    lambda: client.post(url, headers=headers, json=payload)
                )

            if response.status_code >= 400:
                logger.error(
                    "[groq] API request failed with status %s: %s",
                    response.status_code, response.text[:500],
                )
                return self._failure(
                    model, f"API returned {response.status_code}: {response.text}", started
                )

            return self._parse_chat_response(response.json(), model, started)

        except httpx.HTTPError as exc:
            logger.error("[groq] Network error during API request: %s", exc)
            return self._failure(model, f"Network error: {exc}", started)
        except (json.JSONDecodeError, ValueError, TypeError, KeyError) as exc:
            logger.error("[groq] JSON parsing error: %s", exc)
            return self._failure(model, f"Failed to parse response: {exc}", started)
        except Exception as exc:
            logger.exception("[groq] Unexpected error during content generation")
            return self._failure(model, f"Unexpected error: {exc}", started)

    def _parse_chat_response(self, body: Dict[str, Any], model: str, started: int) -> LlmResponse:
        choices = body.get("choices") or []
        if not choices:
            logger.warning("[groq] No choices in response")
            return self._failure(model, "No content generated", started)

        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""
        usage = body.get("usage") or {}
        prompt_tokens = max(0, int(usage.get("prompt_tokens") or 0))
        completion_tokens = max(0, int(usage.get("completion_tokens") or 0))
        cost = self.calculate_cost(model, prompt_tokens, completion_tokens)
        latency_ms = max(0, _now_ms() - started)

        logger.info(
            "[groq] Content generated. Tokens: %d/%d, Cost: $%.6f, Latency: %dms",
            prompt_tokens, completion_tokens, cost, latency_ms,
        )

        return LlmResponse(
            model=model,
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=cost,
            latency_ms=latency_ms,
            finish_reason=choice.get("finish_reason"),
            success=True,
        )

    async def estimate_tokens(self, text: str, model: Optional[str] = None) -> int:
        if not text or not text.strip():
            raise ValueError("Prompt cannot be empty")
        estimated = estimate_tokens_by_length(text)
        logger.info("[groq] Estimated %d tokens for prompt length %d", estimated, len(text))
        return estimated

    async def is_available(self) -> bool:
        if not self.config.api_key:
            logger.warning("[groq] API key not configured")
            return False
        try:
            async with self._client() as client:
                response = await client.get(self._url("models"), headers=self._headers())
            available = response.status_code < 400
        except httpx.HTTPError as exc:
            logger.error("[groq] Error checking provider availability: %s", exc)
            available = False
        logger.info("[groq] Provider availability: %s", available)
        return available
