# FILE: promptlab/pipeline/validator.py
"""Cheap input checks that run before any I/O."""

from typing import Optional, Sequence

from promptlab.errors import PromptValidationError
from promptlab.schemas import ProviderKind

MAX_PROMPT_LENGTH = 100_000  # characters
MAX_CONTEXT_FILES_COUNT = 10


def validate_prompt_request(prompt: Optional[str], context_file_ids: Optional[Sequence[str]] = None) -> None:
    if prompt is None or not prompt.strip():
        raise PromptValidationError("User prompt cannot be empty", field="prompt")

    if len(prompt) > MAX_PROMPT_LENGTH:
        raise PromptValidationError(
            f"User prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters",
            field="prompt",
        )

    if context_file_ids is not None and len(context_file_ids) > MAX_CONTEXT_FILES_COUNT:
        raise PromptValidationError(
            f"Cannot attach more than {MAX_CONTEXT_FILES_COUNT} context files",
            field="context_file_ids",
        )


def parse_provider(value) -> Optional[ProviderKind]:
    """Caller's provider name -> ProviderKind. Blank means "route by model"."""
    if value is None or isinstance(value, ProviderKind):
        return value
    name = str(value).strip().lower()
    if not name:
        return None
    for kind in ProviderKind:
        if kind.value == name:
            return kind
    available = ", ".join(k.value for k in ProviderKind)
    raise PromptValidationError(f"Unknown provider: '{value}'. Available: {available}", field="provider")
