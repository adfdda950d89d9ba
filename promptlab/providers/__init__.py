# FILE: promptlab/providers/__init__.py
"""Built-in language-model provider adapters and the model-name router."""

from .base import LlmProvider, calculate_cost, estimate_tokens_by_length
from .gemini import GoogleGeminiProvider
from .groq import GroqProvider
from .registry import ProviderRegistry, build_default_registry, provider_kind_for_model
from .retry import RetryPolicy, exponential_backoff, is_retryable_http_outcome

__all__ = [
    "LlmProvider",
    "calculate_cost",
    "estimate_tokens_by_length",
    "GoogleGeminiProvider",
    "GroqProvider",
    "ProviderRegistry",
    "build_default_registry",
    "provider_kind_for_model",
    "RetryPolicy",
    "exponential_backoff",
    "is_retryable_http_outcome",
]
