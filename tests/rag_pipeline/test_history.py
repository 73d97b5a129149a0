"""Unit tests for conversation history helpers."""

import json

import pytest
from pydantic_ai.messages import ModelRequest, ModelResponse, TextPart, UserPromptPart

from src.rag_pipeline.history import format_history, recent_history, to_model_messages
from src.rag_pipeline.schemas import ChatTurn


@pytest.fixture
def turns() -> list[ChatTurn]:
    """Create alternating user and assistant turns."""
    return [
        ChatTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn-{i}")
        for i in range(8)
    ]


@pytest.mark.unit
class TestRecentHistory:
    """Test recent_history."""

    def test_keeps_last_turns_in_order(self, turns: list[ChatTurn]) -> None:
        """Test the window keeps the newest turns, oldest first."""
        result = recent_history(turns, 5)

        assert [turn.content for turn in result] == [f"turn-{i}" for i in range(3, 8)]

    def test_short_history(self, turns: list[ChatTurn]) -> None:
        """Test a history shorter than the window."""
        assert recent_history(turns[:2], 5) == turns[:2]

    def test_zero_window(self, turns: list[ChatTurn]) -> None:
        """Test that a zero window drops everything."""
        assert recent_history(turns, 0) == []


@pytest.mark.unit
class TestFormatHistory:
    """Test format_history."""

    def test_renders_json(self, turns: list[ChatTurn]) -> None:
        """Test JSON rendering of turns."""
        rendered = json.loads(format_history(turns[:1]))

        assert rendered == [{"role": "user", "content": "turn-0"}]

    def test_empty(self) -> None:
        """Test empty history."""
        assert format_history([]) == "[]"


@pytest.mark.unit
class TestToModelMessages:
    """Test to_model_messages."""

    def test_maps_roles(self, turns: list[ChatTurn]) -> None:
        """Test user turns become requests and assistant turns become responses."""
        messages = to_model_messages(turns[:2])

        assert isinstance(messages[0], ModelRequest)
        assert isinstance(messages[0].parts[0], UserPromptPart)
        assert messages[0].parts[0].content == "turn-0"
        assert isinstance(messages[1], ModelResponse)
        assert isinstance(messages[1].parts[0], TextPart)
        assert messages[1].parts[0].content == "turn-1"
