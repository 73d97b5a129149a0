"""Exception taxonomy for the chat pipeline.

Component errors carry the diagnostic distinction; callers of the pipeline
only ever see ChatRequestFailed.
"""


class AssistantError(Exception):
    """Base class for all pipeline errors."""


class ClassificationError(AssistantError):
    """The relevance classification call failed."""


class RewriteError(AssistantError):
    """The query rewrite call failed. Never leaves the rewriter."""


class EmbeddingError(AssistantError):
    """Embedding generation failed or timed out."""


class RetrievalError(AssistantError):
    """The vector store could not be queried."""


class GenerationError(AssistantError):
    """Answer generation failed."""


class GenerationNoResponse(GenerationError):
    """The model returned no content at all."""


class GenerationCutOff(GenerationError):
    """The stream ended before a natural stopping point."""

    def __init__(self, message: str, partial_text: str = ""):
        super().__init__(message)
        self.partial_text = partial_text


class ProductMatchError(AssistantError):
    """The product catalog lookup failed. Degrades to no products."""


class ChatRequestFailed(AssistantError):
    """Uniform failure signal raised at the pipeline boundary.

    Attributes:
        stage: Pipeline state that was active when the failure happened.
        reason: Short machine-readable reason, e.g. "retrieval_failed".
    """

    def __init__(self, stage: str, reason: str):
        super().__init__(f"Chat request failed during {stage}: {reason}")
        self.stage = stage
        self.reason = reason

    @property
    def is_cut_off(self) -> bool:
        """True when a partial answer was streamed before the failure."""
        return isinstance(self.__cause__, GenerationCutOff)
