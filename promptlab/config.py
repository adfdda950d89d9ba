# FILE: promptlab/config.py
"""
PromptLab configuration.

All knobs are read from the environment (main.py loads .env first).
Each loader returns a frozen dataclass shared by every service.

Environment variables:
- PROMPTLAB_DEFAULT_MODEL            model used when the caller gives none
- PROMPTLAB_RATE_LIMIT_ENABLED       "1"/"true" to enforce budgets (default on)
- PROMPTLAB_RATE_LIMIT_PER_MINUTE    per-caller ceiling, one-minute window
- PROMPTLAB_RATE_LIMIT_PER_HOUR      per-caller ceiling, one-hour window
- GOOGLE_API_KEY / GEMINI_*          Google Gemini provider
- GROQ_API_KEY / GROQ_*              Groq provider
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional


DEFAULT_MODEL = os.getenv("PROMPTLAB_DEFAULT_MODEL", "gemini-1.5-flash")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_decimal(name: str, default: str) -> Decimal:
    return Decimal(os.getenv(name, default) or default)


# =============================================================================
# RATE LIMITING
# =============================================================================

@dataclass(frozen=True)
class RateLimitConfig:
    """Per-caller request budget."""
    requests_per_minute: int = 60
    requests_per_hour: int = 1000
    enabled: bool = True


def load_rate_limit_config() -> RateLimitConfig:
    return RateLimitConfig(
        requests_per_minute=_env_int("PROMPTLAB_RATE_LIMIT_PER_MINUTE", 60),
        requests_per_hour=_env_int("PROMPTLAB_RATE_LIMIT_PER_HOUR", 1000),
        enabled=_env_bool("PROMPTLAB_RATE_LIMIT_ENABLED", True),
    )


# =============================================================================
# PROVIDERS
# =============================================================================

@dataclass(frozen=True)
class ModelPricing:
    """USD cost per 1K tokens for one model."""
    name: str
    display_name: str
    max_tokens: int
    input_cost_per_1k: Decimal
    output_cost_per_1k: Decimal


@dataclass(frozen=True)
class ProviderConfig:
    """
    Settings shared by every HTTP-backed provider.

    Rates given here apply to models that have no entry in `models`.
    """
    api_key: str = ""
    base_url: str = ""
    api_version: str = "v1"
    model: str = ""
    max_retries: int = 3
    timeout_seconds: int = 30
    input_cost_per_1k: Decimal = Decimal("0")
    output_cost_per_1k: Decimal = Decimal("0")
    models: Dict[str, ModelPricing] = field(default_factory=dict)

    def pricing_for(self, model: Optional[str]) -> ModelPricing:
        name = model or self.model
        if name in self.models:
            return self.models[name]
        return ModelPricing(
            name=name,
            display_name=name,
            max_tokens=0,
            input_cost_per_1k=self.input_cost_per_1k,
            output_cost_per_1k=self.output_cost_per_1k,
        )


@dataclass(frozen=True)
class GeminiConfig(ProviderConfig):
    base_url: str = "https://generativelanguage.googleapis.com"
    api_version: str = "v1"
    model: str = "gemini-1.5-flash"
    input_cost_per_1k: Decimal = Decimal("0.00025")
    output_cost_per_1k: Decimal = Decimal("0.0005")


@dataclass(frozen=True)
class GroqConfig(ProviderConfig):
    base_url: str = "https://api.groq.com/openai"
    api_version: str = "v1"
    model: str = "llama-3.1-8b-instant"


GEMINI_MODELS: Dict[str, ModelPricing] = {
    "gemini-1.5-flash": ModelPricing(
        "gemini-1.5-flash", "Gemini 1.5 Flash", 8192, Decimal("0.00025"), Decimal("0.0005")
    ),
    "gemini-1.5-pro": ModelPricing(
        "gemini-1.5-pro", "Gemini 1.5 Pro", 8192, Decimal("0.00125"), Decimal("0.005")
    ),
    "gemini-2.0-flash": ModelPricing(
        "gemini-2.0-flash", "Gemini 2.0 Flash", 8192, Decimal("0.0001"), Decimal("0.0004")
    ),
}

GROQ_MODELS: Dict[str, ModelPricing] = {
    "llama-3.1-8b-instant": ModelPricing(
        "llama-3.1-8b-instant", "Llama 3.1 8B Instant", 8192, Decimal("0.00005"), Decimal("0.00008")
    ),
    "llama-3.3-70b-versatile": ModelPricing(
        "llama-3.3-70b-versatile", "Llama 3.3 70B Versatile", 32768, Decimal("0.00059"), Decimal("0.00079")
    ),
    "mixtral-8x7b-32768": ModelPricing(
        "mixtral-8x7b-32768", "Mixtral 8x7B", 32768, Decimal("0.00024"), Decimal("0.00024")
    ),
}


def load_gemini_config() -> GeminiConfig:
    return GeminiConfig(
        api_key=os.getenv("GOOGLE_API_KEY", "").strip(),
        base_url=os.getenv("GEMINI_BASE_URL", GeminiConfig.base_url),
        api_version=os.getenv("GEMINI_API_VERSION", GeminiConfig.api_version),
        model=os.getenv("GEMINI_MODEL", GeminiConfig.model),
        max_retries=_env_int("GEMINI_MAX_RETRIES", 3),
        timeout_seconds=_env_int("GEMINI_TIMEOUT_SECONDS", 30),
        input_cost_per_1k=_env_decimal("GEMINI_INPUT_COST_PER_1K", "0.00025"),
        output_cost_per_1k=_env_decimal("GEMINI_OUTPUT_COST_PER_1K", "0.0005"),
        models=dict(GEMINI_MODELS),
    )


def load_groq_config() -> GroqConfig:
    return GroqConfig(
        api_key=os.getenv("GROQ_API_KEY", "").strip(),
        base_url=os.getenv("GROQ_BASE_URL", GroqConfig.base_url),
        api_version=os.getenv("GROQ_API_VERSION", GroqConfig.api_version),
        model=os.getenv("GROQ_MODEL", GroqConfig.model),
        max_retries=_env_int("GROQ_MAX_RETRIES", 3),
        timeout_seconds=_env_int("GROQ_TIMEOUT_SECONDS", 30),
        input_cost_per_1k=_env_decimal("GROQ_INPUT_COST_PER_1K", "0"),
        output_cost_per_1k=_env_decimal("GROQ_OUTPUT_COST_PER_1K", "0"),
        models=dict(GROQ_MODELS),
    )
