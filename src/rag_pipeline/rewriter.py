"""Query rewriter turning terse questions into domain-specific search queries."""

from pydantic_ai import Agent

from src.utils.logging import get_logger

from .errors import RewriteError
from .history import format_history, recent_history
from .schemas import ChatTurn

logger = get_logger(__name__)

_ECHO_PREFIX = "rewritten query:"


def clean_rewrite(raw_output: str | None) -> str:
    """Strip an echoed "Rewritten query:" label and surrounding quotes."""
    text = (raw_output or "").strip()
    if text.lower().startswith(_ECHO_PREFIX):
        text = text[len(_ECHO_PREFIX) :].strip()
    return text.strip("\"'").strip()


class QueryRewriter:
    """Expands a question using conversation context to improve recall.

    rewrite() never fails the request: on any error it hands back the
    original question.
    """

    def __init__(self, agent: Agent, history_window: int = 5):
        self.agent = agent
        self.history_window = history_window

    async def rewrite(self, question: str, history: list[ChatTurn]) -> str:
        """Rewrite a question into a search query.

        Args:
            question: Raw user question.
            history: Full conversation history, oldest first.

        Returns:
            The rewritten query, or the original question if rewriting fails
            or yields nothing.
        """
        if not question.strip():
            return question

        try:
            rewritten = await self._rewrite(question, history)
        except RewriteError:
            logger.warning("query_rewrite_fallback", question=question)
            return question

        if not rewritten:
            logger.warning("query_rewrite_empty", question=question)
            return question

        logger.info("query_rewritten", original=question, rewritten=rewritten)
        return rewritten

    async def _rewrite(self, question: str, history: list[ChatTurn]) -> str:
        turns = recent_history(history, self.history_window)
        prompt = (
            f"Original query: {question}\n"
            f"Chat history: {format_history(turns)}\n\n"
            "Rewritten query:"
        )

        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            logger.exception("query_rewrite_failed", error_type=type(e).__name__)
            raise RewriteError(str(e)) from e

        return clean_rewrite(result.output)
