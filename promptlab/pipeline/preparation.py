# FILE: promptlab/pipeline/preparation.py
"""
Request preparation.

Fixed order, no parallel fan-out:
    1. validate          (no I/O; prompt bounds, provider/model pairing)
    2. load history      (only when a conversation id was supplied)
    3. enrich            (context files)
    4. build             (canonical LlmRequest)

Model resolution:
    explicit model                -> used as-is (must be servable by an explicit provider)
    explicit provider, no model   -> that provider's configured default model
    neither                       -> PROMPTLAB_DEFAULT_MODEL
"""

import logging
from typing import List, Optional, Sequence

from promptlab import config
from promptlab.errors import PromptValidationError
from promptlab.memory.history import ConversationHistoryService
from promptlab.pipeline.builder import build_request
from promptlab.pipeline.enricher import PromptEnricher
from promptlab.pipeline.validator import parse_provider, validate_prompt_request
from promptlab.providers.registry import ProviderRegistry, provider_kind_for_model
from promptlab.schemas import ConversationMessage, PreparedPromptRequest, ProviderKind

logger = logging.getLogger(__name__)


class RequestPreparationService:

    def __init__(
        self,
        history_service: ConversationHistoryService,
        enricher: PromptEnricher,
        default_model: Optional[str] = None,
        registry: Optional[ProviderRegistry] = None,
    ):
        if history_service is None:
            raise ValueError("history_service is required")
        if enricher is None:
            raise ValueError("enricher is required")
        self._history_service = history_service
        self._enricher = enricher
        self._default_model = default_model or config.DEFAULT_MODEL
        self._registry = registry

    async def prepare(
        self,
        *,
        prompt: str,
        user_id: str,
        system_prompt: Optional[str] = None,
        conversation_id: Optional[str] = None,
        context_file_ids: Optional[Sequence[str]] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        provider: Optional[str] = None,
    ) -> PreparedPromptRequest:
        validate_prompt_request(prompt, context_file_ids)
        provider_kind = parse_provider(provider)
        request_model = self.resolve_model(provider_kind, model)

        history: List[ConversationMessage] = []
        if conversation_id:
            history = await self._history_service.load_history(conversation_id)
        logger.info("[preparation] Loaded %d previous messages for request preparation", len(history))

        enriched_prompt, context_file_id = await self._enricher.enrich(prompt, context_file_ids)

        llm_request = build_request(
            enriched_prompt,
            system_prompt,
            request_model,
            history,
            max_tokens,
            temperature,
        )

        return PreparedPromptRequest(
            llm_request=llm_request,
            context_file_id=context_file_id,
            conversation_history=history,
            user_id=user_id,
            model=request_model,
            provider=provider_kind,
        )

    def resolve_model(self, provider_kind: Optional[ProviderKind], model: Optional[str]) -> str:
        model = (model or "").strip() or None
        if provider_kind is None:
            return model or self._default_model

        adapter = None
        if self._registry is not None:
            adapter = self._registry.get_provider(provider_kind)
            if adapter is None:
                raise PromptValidationError(
                    f"Provider '{provider_kind.value}' is not configured", field="provider"
                )

        if model is None:
            model = adapter.config.model if adapter is not None else self._default_model

        if not _can_serve(provider_kind, model, adapter):
            raise PromptValidationError(
                f"Provider '{provider_kind.value}' cannot serve model '{model}'", field="model"
            )
        return model


def _can_serve(kind: ProviderKind, model: str, adapter) -> bool:
    routed = provider_kind_for_model(model)
    if routed is not None:
        return routed == kind
    # No known prefix: only models listed in the provider's pricing table
    return adapter is not None and model in adapter.config.models
