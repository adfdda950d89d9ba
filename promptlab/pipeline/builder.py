# FILE: promptlab/pipeline/builder.py
from typing import List, Optional

from promptlab.schemas import ConversationMessage, LlmRequest


def build_request(
    prompt: str,
    system_prompt: Optional[str],
    model: str,
    conversation_history: Optional[List[ConversationMessage]] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
) -> LlmRequest:
    """Assemble the canonical request. No validation, no I/O."""
    return LlmRequest(
        prompt=prompt,
        system_prompt=system_prompt,
        model=model,
        conversation_history=list(conversation_history or []),
        max_tokens=max_tokens,
        temperature=temperature,
    )
