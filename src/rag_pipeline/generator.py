"""Streaming answer generation and short-circuit replies."""

from collections.abc import AsyncIterator

from pydantic_ai import Agent
from pydantic_ai.result import StreamedRunResult
from pydantic_ai.messages import ModelMessage, ModelResponse

from src.utils.logging import get_logger

from .errors import GenerationCutOff, GenerationError, GenerationNoResponse
from .history import recent_history, to_model_messages
from .schemas import ChatTurn, RelevanceLabel, RetrievedDocument

logger = get_logger(__name__)

SHORT_CIRCUIT_PROMPTS: dict[RelevanceLabel, str] = {
    RelevanceLabel.GREETING: (
        "The following message is a greeting or casual message. "
        "Please provide a friendly and engaging response: {question}"
    ),
    RelevanceLabel.INAPPROPRIATE: (
        "Please provide a polite response indicating that inappropriate "
        "content or language is not allowed."
    ),
    RelevanceLabel.NOT_RELEVANT: (
        "The following message is not related to woodworking or our services. "
        "Please politely redirect the conversation: {question}"
    ),
}


def build_context(documents: list[RetrievedDocument]) -> str:
    """Concatenate retrieved documents with source attribution."""
    return "\n\n".join(
        f"Source: {doc.title}\nURL: {doc.url}\nContent: {doc.text}" for doc in documents
    )


def _final_response(result: StreamedRunResult) -> ModelResponse | None:
    """Return the last model response of a finished streamed run."""
    for message in reversed(result.all_messages()):
        if isinstance(message, ModelResponse):
            return message
    return None


def stopped_naturally(response: ModelResponse | None) -> bool:
    """Check whether the provider reported a natural end of the response.

    A response cut by the length limit, or one whose stream ended without the
    provider ever sending a finish reason, did not stop naturally.
    """
    if response is None or response.finish_reason == "length":
        return False
    return bool((response.provider_details or {}).get("finish_reason"))


async def stream_agent_text(
    agent: Agent,
    prompt: str,
    stage: str,
    message_history: list[ModelMessage] | None = None,
) -> AsyncIterator[str]:
    """Stream text deltas from an agent, classifying incomplete output.

    Args:
        agent: Agent to run.
        prompt: User prompt for this run.
        stage: Name used in log events ("answer" or "short_circuit").
        message_history: Optional prior conversation.

    Yields:
        Non-empty text deltas as they arrive.

    Raises:
        GenerationNoResponse: If the model produced no text at all.
        GenerationCutOff: If text was already yielded when the stream ended
            without a natural stop.
        GenerationError: If the upstream call failed before any text arrived.
    """
    produced: list[str] = []

    try:
        async with agent.run_stream(prompt, message_history=message_history) as result:
            async for delta in result.stream_text(delta=True):
                if not delta:
                    continue
                produced.append(delta)
                yield delta
            response = _final_response(result)
    except Exception as e:
        partial_text = "".join(produced)
        logger.exception(
            "generation_failed",
            stage=stage,
            chars_streamed=len(partial_text),
            error_type=type(e).__name__,
        )
        if partial_text:
            raise GenerationCutOff(
                f"The {stage} stream broke off: {e}", partial_text=partial_text
            ) from e
        raise GenerationError(str(e)) from e

    text = "".join(produced)
    if not text.strip():
        logger.error("generation_no_response", stage=stage)
        raise GenerationNoResponse(f"The model returned no content for {stage}")

    finish_reason = response.finish_reason if response else None
    if not stopped_naturally(response):
        logger.error(
            "generation_cut_off",
            stage=stage,
            chars_streamed=len(text),
            finish_reason=finish_reason,
        )
        raise GenerationCutOff(f"The {stage} stream was cut off", partial_text=text)

    logger.info(
        "generation_completed",
        stage=stage,
        chars_streamed=len(text),
        finish_reason=finish_reason,
    )


class AnswerGenerator:
    """Streams a grounded answer with inline video tags."""

    def __init__(self, agent: Agent, history_window: int = 5):
        self.agent = agent
        self.history_window = history_window

    def generate(
        self,
        documents: list[RetrievedDocument],
        rewritten_query: str,
        history: list[ChatTurn],
    ) -> AsyncIterator[str]:
        """Stream an answer grounded in the retrieved documents.

        Args:
            documents: Retrieved passages, most relevant first.
            rewritten_query: Search-ready form of the user's question.
            history: Full conversation history, oldest first.

        Returns:
            Finite, non-restartable async iterator of text chunks.
        """
        prompt = (
            f"Context:\n{build_context(documents)}\n\n"
            f"Question: {rewritten_query}"
        )
        message_history = to_model_messages(recent_history(history, self.history_window))

        logger.info(
            "answer_generation_started",
            documents=len(documents),
            history_turns=len(message_history),
        )
        return stream_agent_text(
            self.agent,
            prompt,
            stage="answer",
            message_history=message_history or None,
        )


class ShortCircuitResponder:
    """Streams the canned-style reply for greetings, abuse and off-topic messages."""

    def __init__(self, agent: Agent):
        self.agent = agent

    def respond(self, label: RelevanceLabel, question: str) -> AsyncIterator[str]:
        """Stream a reply appropriate to a non-RELEVANT label.

        Raises:
            ValueError: If called with RELEVANT.
        """
        if label not in SHORT_CIRCUIT_PROMPTS:
            raise ValueError(f"No short-circuit reply for {label.value}")

        prompt = SHORT_CIRCUIT_PROMPTS[label].format(question=question)
        logger.info("short_circuit_started", label=label.value)
        return stream_agent_text(self.agent, prompt, stage="short_circuit")
