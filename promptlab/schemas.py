# FILE: promptlab/schemas.py
"""
Pipeline data transfer objects.

These are plain dataclasses passed between stages:

    validated input -> LlmRequest -> LlmResponse -> LlmExecutionResult
                    -> PromptPersistenceResult -> PromptExecutionResult

Nothing here touches the database or the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class ProviderKind(str, Enum):
    """Closed set of built-in provider backends."""
    GOOGLE = "google"
    GROQ = "groq"


@dataclass
class ConversationMessage:
    role: str  # "user" | "assistant"
    content: str


@dataclass
class LlmRequest:
    """Provider-agnostic request. Built once, consumed once."""
    prompt: str
    model: str
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    conversation_history: List[ConversationMessage] = field(default_factory=list)


@dataclass
class LlmResponse:
    model: str
    content: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: Decimal = Decimal("0")
    latency_ms: int = 0
    finish_reason: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class PreparedPromptRequest:
    llm_request: LlmRequest
    context_file_id: Optional[str]
    conversation_history: List[ConversationMessage]
    user_id: str
    model: str
    # Explicit caller choice; None routes by model name
    provider: Optional[ProviderKind] = None


@dataclass
class LlmExecutionResult:
    response: LlmResponse
    provider: ProviderKind
    provider_name: str
    actual_model: str
    execution_timestamp: datetime
    context_file_id: Optional[str] = None


@dataclass
class PromptPersistenceResult:
    prompt_id: str
    response_id: str
    conversation_id: str
    created_at: datetime
    is_new_conversation: bool


@dataclass
class PromptExecutionResult:
    prompt_id: str
    response_id: str
    conversation_id: str
    content: str
    input_tokens: int
    output_tokens: int
    cost: Decimal
    latency_ms: int
    model: str
    provider: ProviderKind
    created_at: datetime
    is_new_conversation: bool = False
    correlation_id: Optional[str] = None


@dataclass
class TokenEstimate:
    token_count: int
    model: str
    estimated_cost: Decimal = Decimal("0")


@dataclass
class ProviderInfo:
    provider: ProviderKind
    name: str
    is_available: bool
    supported_models: List[str] = field(default_factory=list)


@dataclass
class ProviderStatus:
    provider: ProviderKind
    name: str
    is_healthy: bool
    last_checked: datetime
    error_message: Optional[str] = None
