# FILE: promptlab/errors.py
"""
Exception taxonomy for the prompt execution pipeline.

Client faults (bad input, unknown provider, exhausted budget) are raised
before any external call. Provider and persistence faults are raised after
the failing stage has cleaned up; the HTTP layer sanitizes their messages.
"""
from typing import Optional


class PromptLabError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message: str, correlation_id: Optional[str] = None):
        self.message = message
        self.correlation_id = correlation_id
        super().__init__(message)


# =============================================================================
# CLIENT FAULTS
# =============================================================================

class PromptValidationError(PromptLabError):
    """Raised when a prompt request is malformed (empty, too long, too many files)."""

    def __init__(self, message: str, field: str, correlation_id: Optional[str] = None):
        self.field = field
        super().__init__(message, correlation_id)


class ResourceNotFoundError(PromptLabError):
    """Raised when a stored prompt, conversation or context file does not exist."""

    def __init__(self, resource: str, resource_id: str, correlation_id: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}", correlation_id)


class UnknownProviderError(PromptLabError):
    """Raised when an unknown provider name is requested."""

    def __init__(self, provider: str, available: list[str]):
        self.provider = provider
        self.available = available
        super().__init__(
            f"Unknown provider: '{provider}'. Available: {', '.join(sorted(available))}"
        )


class RateLimitExceededError(PromptLabError):
    """Raised when the caller has exhausted their request budget."""

    def __init__(self, key: str, retry_after_seconds: int = 60, correlation_id: Optional[str] = None):
        self.key = key
        self.retry_after_seconds = retry_after_seconds
        super().__init__("Rate limit exceeded. Please try again later.", correlation_id)


# =============================================================================
# SERVER FAULTS
# =============================================================================

class ProviderConfigurationError(PromptLabError):
    """Raised when no provider adapter can serve the requested model."""

    def __init__(self, model: str, correlation_id: Optional[str] = None):
        self.model = model
        super().__init__(f"No provider found for model: {model}", correlation_id)


class ProviderExecutionError(PromptLabError):
    """Raised when a provider could not produce a response after retries."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ):
        self.provider = provider
        self.model = model
        super().__init__(message, correlation_id)


class PersistenceError(PromptLabError):
    """Raised after a failed exchange write has been rolled back."""
    pass
