# FILE: tests/test_builder.py
"""
Tests for promptlab/pipeline/builder.py
"""

from promptlab.pipeline.builder import build_request
from promptlab.schemas import ConversationMessage


class TestBuildRequest:
    """Test canonical request assembly."""

    def test_all_fields_carried(self):
        history = [ConversationMessage("user", "hi"), ConversationMessage("assistant", "hello")]
        request = build_request("prompt", "be brief", "gemini-1.5-flash", history, 256, 0.2)

        assert request.prompt == "prompt"
        assert request.system_prompt == "be brief"
        assert request.model == "gemini-1.5-flash"
        assert request.max_tokens == 256
        assert request.temperature == 0.2
        assert [m.content for m in request.conversation_history] == ["hi", "hello"]

    def test_history_defaults_to_empty_list(self):
        """Missing history becomes [] rather than None."""
        request = build_request("prompt", None, "llama-3.1-8b-instant")
        assert request.conversation_history == []
        assert request.max_tokens is None
        assert request.temperature is None

    def test_history_is_copied(self):
        """Mutating the caller's list afterwards does not change the request."""
        history = [ConversationMessage("user", "hi")]
        request = build_request("prompt", None, "m", history)
        history.append(ConversationMessage("assistant", "later"))
        assert len(request.conversation_history) == 1
