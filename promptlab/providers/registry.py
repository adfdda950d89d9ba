# FILE: promptlab/providers/registry.py
"""
Provider Registry / Router

- select_provider(model): model-name prefix -> provider kind -> adapter
- execute(prepared):      runs the selected adapter's generate(); an explicit
                          prepared.provider bypasses prefix routing

Prefix table (case-insensitive):
    gemini*                -> Google Gemini
    gpt* / llama* / mixtral* -> Groq

No match (or blank model) falls back to the first registered adapter.
An empty registry is a configuration error, reported with the model name.

Adapter exceptions are logged and re-raised; they are never turned into
results here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from promptlab.errors import ProviderConfigurationError, UnknownProviderError
from promptlab.providers.base import LlmProvider
from promptlab.schemas import (
    LlmExecutionResult,
    PreparedPromptRequest,
    ProviderInfo,
    ProviderKind,
    ProviderStatus,
)

logger = logging.getLogger(__name__)


MODEL_PREFIXES: Tuple[Tuple[str, ProviderKind], ...] = (
    ("gemini", ProviderKind.GOOGLE),
    ("gpt", ProviderKind.GROQ),
    ("llama", ProviderKind.GROQ),
    ("mixtral", ProviderKind.GROQ),
)


def provider_kind_for_model(model: Optional[str]) -> Optional[ProviderKind]:
    m = (model or "").strip().lower()
    if not m:
        return None
    for prefix, kind in MODEL_PREFIXES:
        if m.startswith(prefix):
            return kind
    return None


class ProviderRegistry:

    def __init__(self, providers: Sequence[LlmProvider]):
        if providers is None:
            raise ValueError("providers is required")
        # Registration order matters: the first adapter is the fallback
        self._providers: List[LlmProvider] = list(providers)

    @property
    def providers(self) -> List[LlmProvider]:
        return list(self._providers)

    def get_provider(self, kind: ProviderKind) -> Optional[LlmProvider]:
        for adapter in self._providers:
            if adapter.provider == kind:
                return adapter
        return None

    def select_provider(self, model: Optional[str]) -> LlmProvider:
        if not self._providers:
            raise ProviderConfigurationError(model or "<default>")

        kind = provider_kind_for_model(model)
        if kind is not None:
            adapter = self.get_provider(kind)
            if adapter is not None:
                return adapter

        logger.warning(
            "[registry] No specific provider match for model %s, using first available provider",
            model,
        )
        return self._providers[0]

    async def execute(
        self,
        prepared: PreparedPromptRequest,
        correlation_id: str = "",
    ) -> LlmExecutionResult:
        if prepared is None:
            raise ValueError("prepared request is required")

        logger.info(
            "[registry] Executing LLM request with model %s. CorrelationId: %s",
            prepared.model, correlation_id,
        )

        try:
            adapter = self._adapter_for(prepared)
        except ProviderConfigurationError as exc:
            exc.correlation_id = correlation_id
            logger.error("[registry] %s. CorrelationId: %s", exc, correlation_id)
            raise

        logger.debug(
            "[registry] Selected provider %s for model %s. CorrelationId: %s",
            adapter.provider_name, prepared.model, correlation_id,
        )

        try:
            response = await adapter.generate(prepared.llm_request)
        except Exception:
            logger.exception(
                "[registry] LLM execution failed. Provider: %s, Model: %s, CorrelationId: %s",
                adapter.provider_name, prepared.model, correlation_id,
            )
            raise

        logger.info(
            "[registry] LLM execution completed. Provider: %s, Model: %s, Tokens: %d, "
            "Cost: %s, Latency: %dms, Success: %s, CorrelationId: %s",
            adapter.provider_name, response.model, response.total_tokens,
            response.cost, response.latency_ms, response.success, correlation_id,
        )

        return LlmExecutionResult(
            response=response,
            provider=adapter.provider,
            provider_name=adapter.provider_name,
            actual_model=response.model,
            execution_timestamp=datetime.utcnow(),
            context_file_id=prepared.context_file_id,
        )

    def _adapter_for(self, prepared: PreparedPromptRequest) -> LlmProvider:
        if prepared.provider is None:
            return self.select_provider(prepared.model)
        adapter = self.get_provider(prepared.provider)
        if adapter is None:
            raise ProviderConfigurationError(prepared.model)
        return adapter

    # ------------------------------------------------------------------
    # Provider catalog / health
    # ------------------------------------------------------------------

    async def describe_providers(self) -> List[ProviderInfo]:
        """Check every adapter in parallel and list its configured models."""

        async def _describe(adapter: LlmProvider) -> ProviderInfo:
            try:
                available = await adapter.is_available()
            except Exception as exc:
                logger.error("[registry] Availability check failed for %s: %s", adapter.provider_name, exc)
                available = False
            return ProviderInfo(
                provider=adapter.provider,
                name=adapter.provider_name,
                is_available=available,
                supported_models=sorted(adapter.config.models.keys()),
            )

        return list(await asyncio.gather(*(_describe(a) for a in self._providers)))

    async def get_provider_status(self, name: str) -> ProviderStatus:
        adapter = self._lookup_by_name(name)

        is_healthy = False
        error_message: Optional[str] = None
        if not adapter.config.api_key:
            error_message = "API key not configured"
            logger.warning("[registry] Provider %s unavailable: %s", name, error_message)
        else:
            try:
                is_healthy = await adapter.is_available()
                if not is_healthy:
                    error_message = "Provider health check failed"
            except Exception as exc:
                error_message = f"Health check error: {exc}"
                logger.error("[registry] Error checking provider %s status: %s", name, exc)

        return ProviderStatus(
            provider=adapter.provider,
            name=adapter.provider_name,
            is_healthy=is_healthy,
            error_message=error_message,
            last_checked=datetime.utcnow(),
        )

    def _lookup_by_name(self, name: str) -> LlmProvider:
        wanted = (name or "").strip().lower()
        by_name: Dict[str, LlmProvider] = {a.provider.value: a for a in self._providers}
        adapter = by_name.get(wanted)
        if adapter is None:
            raise UnknownProviderError(name, list(by_name.keys()))
        return adapter


def build_default_registry(transport=None) -> ProviderRegistry:
    """Registry with every built-in adapter, configured from the environment."""
    from promptlab.config import load_gemini_config, load_groq_config
    from promptlab.providers.gemini import GoogleGeminiProvider
    from promptlab.providers.groq import GroqProvider

    return ProviderRegistry([
        GoogleGeminiProvider(load_gemini_config(), transport=transport),
        GroqProvider(load_groq_config(), transport=transport),
    ])
