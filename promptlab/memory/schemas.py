# FILE: promptlab/memory/schemas.py
"""
Pydantic schemas for the HTTP surface.

Pipeline stages pass dataclasses (promptlab.schemas); these models only
exist at the request/response boundary.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============== CONTEXT FILE ==============

class ContextFileCreate(BaseModel):
    file_name: str
    storage_path: str
    file_size: int = 0
    content_type: str = "text/plain"


class ContextFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    file_size: int
    content_type: str
    uploaded_at: datetime


# ============== CONVERSATION ==============

class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime


# ============== PROMPT / RESPONSE ==============

class ResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: str
    model: str
    content: str
    tokens: int
    cost: Decimal
    latency_ms: int
    created_at: datetime


class PromptDetailOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    user_prompt: str
    system_prompt: Optional[str] = None
    context_file_id: Optional[str] = None
    estimated_tokens: int
    actual_tokens: int
    created_at: datetime
    responses: List[ResponseOut] = []


# ============== EXECUTION ==============

class ExecutePromptRequest(BaseModel):
    prompt: str
    # "google" | "groq"; omitted routes by model name
    provider: Optional[str] = None
    system_prompt: Optional[str] = None
    conversation_id: Optional[str] = None
    context_file_ids: Optional[List[str]] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)


class ExecutePromptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    prompt_id: str
    response_id: str
    conversation_id: str
    content: str
    input_tokens: int
    output_tokens: int
    cost: Decimal
    latency_ms: int
    model: str
    provider: str
    created_at: datetime
    is_new_conversation: bool
    correlation_id: Optional[str] = None


class EstimateTokensRequest(BaseModel):
    prompt: str
    model: Optional[str] = None


class EstimateTokensResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    token_count: int
    model: str
    estimated_cost: Decimal


# ============== PROVIDERS ==============

class ProviderInfoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider: str
    name: str
    is_available: bool
    supported_models: List[str] = []


class ProviderStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider: str
    name: str
    is_healthy: bool
    last_checked: datetime
    error_message: Optional[str] = None


class ErrorOut(BaseModel):
    error: str
    detail: str
    correlation_id: Optional[str] = None
    field: Optional[str] = None
