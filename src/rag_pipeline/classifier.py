"""Relevance classifier deciding whether a question enters the RAG path."""

from pydantic_ai import Agent

from src.utils.logging import get_logger

from .errors import ClassificationError
from .history import format_history, recent_history
from .schemas import ChatTurn, RelevanceLabel

logger = get_logger(__name__)


def parse_relevance_label(raw_output: str | None) -> RelevanceLabel:
    """Map raw model output onto a RelevanceLabel.

    Unrecognized output fails closed to NOT_RELEVANT.

    Examples:
        >>> parse_relevance_label(" relevant\\n")
        <RelevanceLabel.RELEVANT: 'RELEVANT'>
        >>> parse_relevance_label("NOT RELEVANT")
        <RelevanceLabel.NOT_RELEVANT: 'NOT_RELEVANT'>
    """
    if not raw_output:
        return RelevanceLabel.NOT_RELEVANT

    normalized = raw_output.strip().strip(".\"'`*").strip().upper().replace(" ", "_")
    try:
        return RelevanceLabel(normalized)
    except ValueError:
        return RelevanceLabel.NOT_RELEVANT


class RelevanceClassifier:
    """Labels question intent with one of the four RelevanceLabel values."""

    def __init__(self, agent: Agent, history_window: int = 5):
        self.agent = agent
        self.history_window = history_window

    async def classify(
        self, question: str, history: list[ChatTurn]
    ) -> RelevanceLabel:
        """Classify a question given recent conversation history.

        Args:
            question: Raw user text; may be empty.
            history: Full conversation history, oldest first.

        Returns:
            The detected label. Empty questions are NOT_RELEVANT without a
            model call.

        Raises:
            ClassificationError: If the model call fails.
        """
        if not question or not question.strip():
            logger.info("relevance_check_skipped", reason="empty_question")
            return RelevanceLabel.NOT_RELEVANT

        turns = recent_history(history, self.history_window)
        prompt = (
            f"Chat History: {format_history(turns)}\n"
            f"Current Question: {question}\n\n"
            "Response (GREETING, RELEVANT, INAPPROPRIATE, or NOT_RELEVANT):"
        )

        logger.info(
            "relevance_check_started",
            question_length=len(question),
            history_turns=len(turns),
        )

        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            logger.exception("relevance_check_failed", error_type=type(e).__name__)
            raise ClassificationError(str(e)) from e

        label = parse_relevance_label(result.output)
        logger.info("relevance_check_completed", raw=result.output, label=label.value)
        return label
