"""Helpers for passing conversation history to model calls."""

import json

from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    TextPart,
    UserPromptPart,
)

from .schemas import ChatTurn


def recent_history(history: list[ChatTurn], window: int) -> list[ChatTurn]:
    """Return the last `window` turns, oldest first.

    Examples:
        >>> len(recent_history(turns, 5))  # turns has 8 entries
        5
    """
    if window <= 0:
        return []
    return list(history[-window:])


def format_history(history: list[ChatTurn]) -> str:
    """Render turns as a JSON array for inclusion in a prompt."""
    return json.dumps([turn.model_dump() for turn in history], ensure_ascii=False)


def to_model_messages(history: list[ChatTurn]) -> list[ModelMessage]:
    """Convert chat turns to Pydantic AI message history.

    User turns become requests and assistant turns become text responses, so
    the answer agent sees the conversation as its own prior exchanges.
    """
    messages: list[ModelMessage] = []
    for turn in history:
        if turn.role == "user":
            messages.append(ModelRequest(parts=[UserPromptPart(content=turn.content)]))
        else:
            messages.append(ModelResponse(parts=[TextPart(content=turn.content)]))
    return messages
