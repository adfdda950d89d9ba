# FILE: promptlab/providers/gemini.py
"""
Google Gemini adapter (REST, generateContent / countTokens).

Wire mapping:
- system prompt  -> leading "user" content
- history        -> "user" / "model" contents, oldest first
- prompt         -> final "user" content
- max_tokens / temperature -> generationConfig

Token counts come from usageMetadata; estimation uses the countTokens
endpoint, which is authoritative for Gemini models.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from promptlab.config import GeminiConfig
from promptlab.providers.base import LlmProvider, _now_ms
from promptlab.schemas import LlmRequest, LlmResponse, ProviderKind

logger = logging.getLogger(__name__)


class GoogleGeminiProvider(LlmProvider):
    provider = ProviderKind.GOOGLE
    provider_name = "Google Gemini"

    def __init__(self, config: GeminiConfig, **kwargs: Any):
        super().__init__(config, **kwargs)

    # ------------------------------------------------------------------
    # URLs / payloads
    # ------------------------------------------------------------------

    def _model_url(self, model: str, action: str) -> str:
        base = self.config.base_url.rstrip("/")
        return f"{base}/{self.config.api_version}/models/{model}:{action}"

    def build_payload(self, request: LlmRequest) -> Dict[str, Any]:
        contents: List[Dict[str, Any]] = []

        if request.system_prompt and request.system_prompt.strip():
            contents.append({"role": "user", "parts": [{"text": request.system_prompt}]})

        for message in request.conversation_history or []:
            role = "model" if message.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": message.content}]})

        contents.append({"role": "user", "parts": [{"text": request.prompt}]})

        payload: Dict[str, Any] = {"contents": contents}

        generation_config: Dict[str, Any] = {}
        if request.temperature is not None:
            generation_config["temperature"] = float(request.temperature)
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = int(request.max_tokens)
        if generation_config:
            payload["generationConfig"] = generation_config

        return payload

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def generate(self, request: LlmRequest) -> LlmResponse:
        if request is None:
            raise ValueError("request is required")

        started = _now_ms()
        model = request.model or self.config.model

        try:
            logger.info("[gemini] Generating content with model %s", model)
            payload = self.build_payload(request)
            url = self._model_url(model, "generateContent")
            params = {"key": self.config.api_key}

            async with self._client() as client:
                response = await self._retry_policy.execute(
                    lambda: client.post(url, params=params, json=payload)
                )

            if response.status_code >= 400:
                logger.error(
                    "[gemini] API request failed with status %s: %s",
                    response.status_code, response.text[:500],
                )
                return self._failure(
                    model, f"API returned {response.status_code}: {response.text}", started
                )

            body = response.json()
            return self._parse_generate_response(body, model, started)

        except httpx.HTTPError as exc:
            logger.error("[gemini] Network error during API request: %s", exc)
            return self._failure(model, f"Network error: {exc}", started)
        except (json.JSONDecodeError, ValueError, TypeError, KeyError) as exc:
            logger.error("[gemini] JSON parsing error: %s", exc)
            return self._failure(model, f"Failed to parse response: {exc}", started)
        except Exception as exc:
            logger.exception("[gemini] Unexpected error during content generation")
            return self._failure(model, f"Unexpected error: {exc}", started)

    def _parse_generate_response(self, body: Dict[str, Any], model: str, started: int) -> LlmResponse:
        candidates = body.get("candidates") or []
        if not candidates:
            logger.warning("[gemini] No candidates in response")
            return self._failure(model, "No content generated", started)

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        content = parts[0].get("text", "") if parts else ""

        usage = body.get("usageMetadata") or {}
        prompt_tokens = max(0, int(usage.get("promptTokenCount") or 0))
        completion_tokens = max(0, int(usage.get("candidatesTokenCount") or 0))
        cost = self.calculate_cost(model, prompt_tokens, completion_tokens)
        latency_ms = max(0, _now_ms() - started)

        logger.info(
            "[gemini] Content generated. Tokens: %d/%d, Cost: $%.6f, Latency: %dms",
            prompt_tokens, completion_tokens, cost, latency_ms,
        )

        return LlmResponse(
            model=model,
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=cost,
            latency_ms=latency_ms,
            finish_reason=candidate.get("finishReason"),
            success=True,
        )

    async def estimate_tokens(self, text: str, model: Optional[str] = None) -> int:
        if not text or not text.strip():
            raise ValueError("Prompt cannot be empty")

        model = model or self.config.model
        payload = {"contents": [{"parts": [{"text": text}]}]}

        try:
            async with self._client() as client:
                response = await client.post(
                    self._model_url(model, "countTokens"),
                    params={"key": self.config.api_key},
                    json=payload,
                )
            if response.status_code >= 400:
                logger.error(
                    "[gemini] Token estimation failed with status %s: %s",
                    response.status_code, response.text[:500],
                )
                return 0
            token_count = int(response.json().get("totalTokens") or 0)
            logger.info("[gemini] Estimated %d tokens", token_count)
            return max(0, token_count)
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            logger.error("[gemini] Error estimating tokens: %s", exc)
            return 0

    async def is_available(self) -> bool:
        if not self.config.api_key:
            logger.warning("[gemini] API key not configured")
            return False
        available = await self.estimate_tokens("test") > 0
        logger.info("[gemini] Provider availability: %s", available)
        return available
