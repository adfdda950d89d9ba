# FILE: promptlab/pipeline/__init__.py
"""Request preparation: validate -> history -> enrich -> build."""

from .builder import build_request
from .enricher import PromptEnricher
from .preparation import RequestPreparationService
from .validator import MAX_CONTEXT_FILES_COUNT, MAX_PROMPT_LENGTH, validate_prompt_request

__all__ = [
    "build_request",
    "PromptEnricher",
    "RequestPreparationService",
    "validate_prompt_request",
    "MAX_PROMPT_LENGTH",
    "MAX_CONTEXT_FILES_COUNT",
]
