# FILE: promptlab/router.py
"""
HTTP surface for prompt execution, stored conversations and provider introspection.

Endpoints:
    POST   /api/prompts/execute
    POST   /api/prompts/estimate
    GET    /api/prompts/{prompt_id}
    GET    /api/prompts/conversation/{conversation_id}
    GET    /api/conversations                    (caller's conversations)
    GET    /api/conversations/{conversation_id}
    POST   /api/context-files                    (register an uploaded file)
    GET    /api/context-files/{file_id}
    DELETE /api/context-files/{file_id}
    GET    /api/providers
    GET    /api/providers/{name}/status

Caller identity comes from the X-User-Id header ("anonymous" when absent).
Services live on app.state (wired in main.py) so tests can swap them.

Error bodies: {"error", "detail", "correlation_id"[, "field"]}, with the id
echoed in X-Correlation-Id. register_exception_handlers() applies this to
every route, including validation and unexpected errors. Provider,
persistence and unexpected failures never echo internal messages.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from promptlab.errors import (
    PersistenceError,
    PromptLabError,
    PromptValidationError,
    ProviderConfigurationError,
    ProviderExecutionError,
    RateLimitExceededError,
    ResourceNotFoundError,
    UnknownProviderError,
)
from promptlab.execution import PromptExecutionService, new_correlation_id
from promptlab.memory import schemas, service
from promptlab.providers.registry import ProviderRegistry
from promptlab.rate_limit import InMemoryRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["prompts"])

ANONYMOUS_USER = "anonymous"
CORRELATION_HEADER = "X-Correlation-Id"


# ============== DEPENDENCIES ==============

def get_execution_service(request: Request) -> PromptExecutionService:
    return request.app.state.execution_service


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_rate_limiter(request: Request) -> InMemoryRateLimiter:
    return request.app.state.rate_limiter


def get_db(request: Request):
    """Yields a session from the app's session factory and closes it after the request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    return (x_user_id or "").strip() or ANONYMOUS_USER


# ============== ERROR MAPPING ==============

_STATUS_BY_ERROR = (
    (PromptValidationError, 400, "Validation failed"),
    (ResourceNotFoundError, 404, "Not found"),
    (UnknownProviderError, 404, "Unknown provider"),
    (RateLimitExceededError, 429, "Rate limit exceeded"),
    (ProviderConfigurationError, 500, "Provider configuration error"),
    (ProviderExecutionError, 502, "Provider error"),
    (PersistenceError, 500, "Persistence error"),
)

# Messages of these types may carry upstream or database internals
_SANITIZED_DETAIL = {
    ProviderExecutionError: "The language model provider failed to produce a response.",
    PersistenceError: "The exchange could not be saved.",
}


def _error_json(status_code: int, body: schemas.ErrorOut, headers: Optional[dict] = None) -> JSONResponse:
    all_headers = {CORRELATION_HEADER: body.correlation_id}
    all_headers.update(headers or {})
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=all_headers,
    )


def error_response(exc: PromptLabError, correlation_id: str) -> JSONResponse:
    status_code, error, detail = 500, "Internal server error", "An unexpected error occurred."
    for error_type, code, label in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code, error = code, label
            detail = _SANITIZED_DETAIL.get(error_type, exc.message)
            break

    headers = {}
    if isinstance(exc, RateLimitExceededError):
        headers["Retry-After"] = str(exc.retry_after_seconds)
    body = schemas.ErrorOut(
        error=error,
        detail=detail,
        correlation_id=correlation_id,
        field=exc.field if isinstance(exc, PromptValidationError) else None,
    )
    return _error_json(status_code, body, headers)


def unexpected_error_response(correlation_id: str) -> JSONResponse:
    return _error_json(500, schemas.ErrorOut(
        error="Internal server error",
        detail="An unexpected error occurred.",
        correlation_id=correlation_id,
    ))


def register_exception_handlers(app: FastAPI) -> None:
    """Give every error leaving the app the same correlated body."""

    @app.exception_handler(PromptLabError)
    async def _handle_pipeline_error(request: Request, exc: PromptLabError):
        return error_response(exc, exc.correlation_id or new_correlation_id())

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = ".".join(str(p) for p in errors[0].get("loc", ())[1:]) if errors else None
        return _error_json(422, schemas.ErrorOut(
            error="Validation failed",
            detail=errors[0].get("msg", "Invalid request") if errors else "Invalid request",
            correlation_id=new_correlation_id(),
            field=field or None,
        ))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        correlation_id = new_correlation_id()
        logger.exception(
            "[router] Unhandled error on %s %s. CorrelationId: %s",
            request.method, request.url.path, correlation_id,
        )
        return unexpected_error_response(correlation_id)


async def _apply_rate_limit_headers(response: Response, limiter: InMemoryRateLimiter, user_id: str) -> None:
    if not limiter.enabled:
        return
    response.headers["X-RateLimit-Limit-Minute"] = str(limiter.config.requests_per_minute)
    response.headers["X-RateLimit-Limit-Hour"] = str(limiter.config.requests_per_hour)
    response.headers["X-RateLimit-Remaining"] = str(await limiter.remaining(user_id))


# ============== PROMPTS ==============

@router.post("/prompts/execute", response_model=schemas.ExecutePromptResponse)
async def execute_prompt(
    data: schemas.ExecutePromptRequest,
    user_id: str = Depends(get_user_id),
    execution: PromptExecutionService = Depends(get_execution_service),
    limiter: InMemoryRateLimiter = Depends(get_rate_limiter),
):
    correlation_id = new_correlation_id()
    try:
        result = await execution.execute_prompt(
            prompt=data.prompt,
            user_id=user_id,
            system_prompt=data.system_prompt,
            conversation_id=data.conversation_id,
            context_file_ids=data.context_file_ids,
            model=data.model,
            max_tokens=data.max_tokens,
            temperature=data.temperature,
            provider=data.provider,
            correlation_id=correlation_id,
        )
    except PromptLabError as exc:
        response = error_response(exc, exc.correlation_id or correlation_id)
    except Exception:
        logger.exception("[router] Unhandled error executing prompt. CorrelationId: %s", correlation_id)
        response = unexpected_error_response(correlation_id)
    else:
        body = schemas.ExecutePromptResponse(
            prompt_id=result.prompt_id,
            response_id=result.response_id,
            conversation_id=result.conversation_id,
            content=result.content,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            cost=result.cost,
            latency_ms=result.latency_ms,
            model=result.model,
            provider=result.provider.value,
            created_at=result.created_at,
            is_new_conversation=result.is_new_conversation,
            correlation_id=result.correlation_id,
        )
        response = JSONResponse(
            content=body.model_dump(mode="json"),
            headers={CORRELATION_HEADER: correlation_id},
        )

    await _apply_rate_limit_headers(response, limiter, user_id)
    return response


@router.post("/prompts/estimate", response_model=schemas.EstimateTokensResponse)
async def estimate_tokens(
    data: schemas.EstimateTokensRequest,
    execution: PromptExecutionService = Depends(get_execution_service),
):
    estimate = await execution.estimate_tokens(data.prompt, data.model)
    return schemas.EstimateTokensResponse(
        token_count=estimate.token_count,
        model=estimate.model,
        estimated_cost=estimate.estimated_cost,
    )


# Declared before /prompts/{prompt_id} so "conversation" is not taken as an id
@router.get("/prompts/conversation/{conversation_id}", response_model=List[schemas.PromptDetailOut])
async def list_conversation_prompts(
    conversation_id: str,
    execution: PromptExecutionService = Depends(get_execution_service),
):
    return await execution.list_conversation_prompts(conversation_id)


@router.get("/prompts/{prompt_id}", response_model=schemas.PromptDetailOut)
async def get_prompt(
    prompt_id: str,
    execution: PromptExecutionService = Depends(get_execution_service),
):
    prompt = await execution.get_prompt(prompt_id)
    if prompt is None:
        raise ResourceNotFoundError("Prompt", prompt_id)
    return prompt


# ============== CONVERSATIONS ==============

@router.get("/conversations", response_model=List[schemas.ConversationOut], tags=["conversations"])
def list_conversations(
    limit: int = 50,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return service.list_conversations(db, user_id, limit=max(1, min(limit, 200)))


@router.get("/conversations/{conversation_id}", response_model=schemas.ConversationOut, tags=["conversations"])
def get_conversation(conversation_id: str, db: Session = Depends(get_db)):
    conversation = service.get_conversation(db, conversation_id)
    if not conversation:
        raise ResourceNotFoundError("Conversation", conversation_id)
    return conversation


# ============== CONTEXT FILES ==============

@router.post("/context-files", response_model=schemas.ContextFileOut, status_code=201, tags=["context-files"])
def register_context_file(data: schemas.ContextFileCreate, db: Session = Depends(get_db)):
    return service.create_context_file(db, data)


@router.get("/context-files/{file_id}", response_model=schemas.ContextFileOut, tags=["context-files"])
def get_context_file(file_id: str, db: Session = Depends(get_db)):
    context_file = service.get_context_file(db, file_id)
    if not context_file:
        raise ResourceNotFoundError("Context file", file_id)
    return context_file


@router.delete("/context-files/{file_id}", status_code=204, tags=["context-files"])
def delete_context_file(file_id: str, db: Session = Depends(get_db)):
    if not service.delete_context_file(db, file_id):
        raise ResourceNotFoundError("Context file", file_id)
    return Response(status_code=204)


# ============== PROVIDERS ==============

@router.get("/providers", response_model=List[schemas.ProviderInfoOut], tags=["providers"])
async def list_providers(registry: ProviderRegistry = Depends(get_registry)):
    infos = await registry.describe_providers()
    return [
        schemas.ProviderInfoOut(
            provider=info.provider.value,
            name=info.name,
            is_available=info.is_available,
            supported_models=info.supported_models,
        )
        for info in infos
    ]


@router.get("/providers/{name}/status", response_model=schemas.ProviderStatusOut, tags=["providers"])
async def provider_status(name: str, registry: ProviderRegistry = Depends(get_registry)):
    status = await registry.get_provider_status(name)
    return schemas.ProviderStatusOut(
        provider=status.provider.value,
        name=status.name,
        is_healthy=status.is_healthy,
        last_checked=status.last_checked,
        error_message=status.error_message,
    )
