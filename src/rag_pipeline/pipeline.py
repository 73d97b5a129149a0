"""Chat pipeline orchestrator.

Sequences classification, retrieval, generation, video extraction and
product matching for one question as an explicit state machine.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from src.agent.deps import AssistantDeps
from src.utils.logging import get_logger

from .classifier import RelevanceClassifier
from .config import RAGConfig, get_config
from .embedding_service import EmbeddingService
from .errors import (
    AssistantError,
    ChatRequestFailed,
    ClassificationError,
    EmbeddingError,
    GenerationCutOff,
    GenerationError,
    GenerationNoResponse,
    RetrievalError,
)
from .generator import AnswerGenerator, ShortCircuitResponder
from .product_matcher import ProductMatcher
from .rewriter import QueryRewriter
from .schemas import (
    ChatRequest,
    ChatResponse,
    MediaResponse,
    Product,
    RelevanceLabel,
    RetrievedDocument,
    VideoReference,
)
from .storage_service import DocumentStore, ProductStore
from .video_references import extract_video_references, index_video_references

logger = get_logger(__name__)


class PipelineState(StrEnum):
    """States of a single chat request."""

    CLASSIFYING = "classifying"
    SHORT_CIRCUIT_RESPONDING = "short_circuit_responding"
    RETRIEVING = "retrieving"
    REWRITING = "rewriting"
    EMBEDDING = "embedding"
    SEARCHING = "searching"
    GENERATING = "generating"
    EXTRACTING_MEDIA = "extracting_media"
    MATCHING_PRODUCTS = "matching_products"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ShortCircuit:
    """Route for messages answered without retrieval."""

    label: RelevanceLabel


@dataclass(frozen=True)
class FullPipeline:
    """Route for woodworking questions answered from retrieved documents."""


Route = ShortCircuit | FullPipeline


def route_for(label: RelevanceLabel) -> Route:
    """Pick the route for a classification label."""
    if label is RelevanceLabel.RELEVANT:
        return FullPipeline()
    return ShortCircuit(label)


# States whose handler yields text instead of returning the next state
_STREAMING_STATES = {PipelineState.SHORT_CIRCUIT_RESPONDING, PipelineState.GENERATING}

# Where stream() hands control back to the caller
_STREAM_END_STATES = {PipelineState.EXTRACTING_MEDIA, PipelineState.DONE}

_AFTER_STREAM = {
    PipelineState.SHORT_CIRCUIT_RESPONDING: PipelineState.DONE,
    PipelineState.GENERATING: PipelineState.EXTRACTING_MEDIA,
}

_FAILURE_REASONS: list[tuple[type[AssistantError], str]] = [
    (ClassificationError, "classification_failed"),
    (EmbeddingError, "embedding_failed"),
    (RetrievalError, "retrieval_failed"),
    (GenerationNoResponse, "generation_no_response"),
    (GenerationCutOff, "generation_cut_off"),
    (GenerationError, "generation_failed"),
]


def failure_reason(error: BaseException) -> str:
    """Map a component error onto the reason reported by ChatRequestFailed."""
    if isinstance(error, TimeoutError):
        return "request_timeout"
    for error_type, reason in _FAILURE_REASONS:
        if isinstance(error, error_type):
            return reason
    return "internal_error"


class ChatRun:
    """One question/answer exchange moving through the pipeline states.

    stream() runs everything up to and including the streamed answer;
    finish() then derives video references and products from the completed
    text. A run is single-use.
    """

    def __init__(self, pipeline: "ChatPipeline", request: ChatRequest):
        self.pipeline = pipeline
        self.request = request
        self.state = PipelineState.CLASSIFYING
        self.route: Route | None = None
        self.rewritten_query: str | None = None
        self.query_embedding: list[float] | None = None
        self.documents: list[RetrievedDocument] = []
        self.answer_parts: list[str] = []
        self.video_references: list[VideoReference] = []
        self.related_products: list[Product] = []

        self._deadline = (
            asyncio.get_running_loop().time() + pipeline.config.request_timeout_seconds
        )
        self._handlers: dict[PipelineState, Callable[[], Awaitable[PipelineState]]] = {
            PipelineState.CLASSIFYING: self._classify,
            PipelineState.RETRIEVING: self._retrieve,
            PipelineState.REWRITING: self._rewrite,
            PipelineState.EMBEDDING: self._embed,
            PipelineState.SEARCHING: self._search,
            PipelineState.EXTRACTING_MEDIA: self._extract_media,
            PipelineState.MATCHING_PRODUCTS: self._match_products,
        }
        self._streams: dict[PipelineState, Callable[[], AsyncIterator[str]]] = {
            PipelineState.SHORT_CIRCUIT_RESPONDING: self._short_circuit,
            PipelineState.GENERATING: self._generate,
        }

    @property
    def label(self) -> RelevanceLabel | None:
        if isinstance(self.route, ShortCircuit):
            return self.route.label
        if isinstance(self.route, FullPipeline):
            return RelevanceLabel.RELEVANT
        return None

    @property
    def answer_text(self) -> str:
        return "".join(self.answer_parts)

    # ------------------------------------------------------------------
    # Public phases
    # ------------------------------------------------------------------

    async def stream(self) -> AsyncIterator[str]:
        """Run the pipeline up to the end of the answer stream.

        Yields:
            Answer text chunks as they are generated.

        Raises:
            ChatRequestFailed: On any fatal step failure or request timeout.
        """
        if self.state is not PipelineState.CLASSIFYING:
            raise RuntimeError("ChatRun.stream() can only be consumed once")

        logger.info(
            "chat_request_started",
            question_length=len(self.request.question),
            history_turns=len(self.request.history),
        )

        try:
            while self.state not in _STREAM_END_STATES:
                if self.state in _STREAMING_STATES:
                    async for chunk in self._bounded_stream(self._streams[self.state]()):
                        self.answer_parts.append(chunk)
                        yield chunk
                    self._transition(_AFTER_STREAM[self.state])
                else:
                    next_state = await self._bounded(self._handlers[self.state]())
                    self._transition(next_state)
        except (AssistantError, TimeoutError) as e:
            raise self._fail(e) from e

    async def finish(self) -> ChatResponse:
        """Extract media from the completed answer and build the response.

        Raises:
            RuntimeError: If stream() has not been fully consumed.
        """
        if self.state not in _STREAM_END_STATES:
            raise RuntimeError(
                f"ChatRun.finish() called in state {self.state.value}; consume stream() first"
            )

        while self.state is not PipelineState.DONE:
            self._transition(await self._handlers[self.state]())

        response = ChatResponse(
            relevance=self.label or RelevanceLabel.NOT_RELEVANT,
            answer_text=self.answer_text,
            video_references=index_video_references(self.video_references),
            related_products=self.related_products,
        )
        logger.info(
            "chat_request_completed",
            relevance=response.relevance.value,
            answer_length=len(response.answer_text),
            video_references=len(response.video_references),
            related_products=len(response.related_products),
        )
        return response

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    async def _classify(self) -> PipelineState:
        label = await self.pipeline.classifier.classify(
            self.request.question, self.request.history
        )
        self.route = route_for(label)
        if isinstance(self.route, ShortCircuit):
            return PipelineState.SHORT_CIRCUIT_RESPONDING
        return PipelineState.RETRIEVING

    async def _retrieve(self) -> PipelineState:
        logger.debug("retrieval_started")
        return PipelineState.REWRITING

    async def _rewrite(self) -> PipelineState:
        self.rewritten_query = await self.pipeline.rewriter.rewrite(
            self.request.question, self.request.history
        )
        return PipelineState.EMBEDDING

    async def _embed(self) -> PipelineState:
        self.query_embedding = await self.pipeline.embedding_service.embed_text(
            self.rewritten_query or self.request.question
        )
        return PipelineState.SEARCHING

    async def _search(self) -> PipelineState:
        self.documents = await self.pipeline.document_store.search(
            self.query_embedding or [], self.pipeline.config.top_k
        )
        return PipelineState.GENERATING

    def _short_circuit(self) -> AsyncIterator[str]:
        route = self.route
        if not isinstance(route, ShortCircuit):
            raise RuntimeError(f"No short-circuit route in state {self.state.value}")
        return self.pipeline.short_circuit.respond(route.label, self.request.question)

    def _generate(self) -> AsyncIterator[str]:
        return self.pipeline.generator.generate(
            self.documents,
            self.rewritten_query or self.request.question,
            self.request.history,
        )

    async def _extract_media(self) -> PipelineState:
        self.video_references = extract_video_references(self.answer_text)
        logger.info("video_references_extracted", count=len(self.video_references))
        return PipelineState.MATCHING_PRODUCTS

    async def _match_products(self) -> PipelineState:
        titles = [reference.video_title for reference in self.video_references]
        try:
            self.related_products = await self._bounded(
                self.pipeline.product_matcher.match(titles)
            )
        except TimeoutError:
            logger.warning("product_match_timeout", titles=titles)
            self.related_products = []
        return PipelineState.DONE

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, next_state: PipelineState) -> None:
        logger.debug("pipeline_transition", from_state=self.state.value, to_state=next_state.value)
        self.state = next_state

    def _remaining(self) -> float:
        remaining = self._deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise TimeoutError("Chat request deadline exceeded")
        return remaining

    async def _bounded(self, awaitable: Awaitable):  # type: ignore[no-untyped-def]
        try:
            remaining = self._remaining()
        except TimeoutError:
            # never started; close the coroutine to avoid a "never awaited" warning
            close = getattr(awaitable, "close", None)
            if close is not None:
                close()
            raise
        return await asyncio.wait_for(awaitable, timeout=remaining)

    async def _bounded_stream(self, chunks: AsyncIterator[str]) -> AsyncIterator[str]:
        iterator = aiter(chunks)
        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(anext(iterator), timeout=self._remaining())
                except StopAsyncIteration:
                    return
                yield chunk
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    def _fail(self, error: BaseException) -> ChatRequestFailed:
        stage = self.state.value
        reason = failure_reason(error)
        self.state = PipelineState.FAILED
        logger.error(
            "chat_request_failed",
            stage=stage,
            reason=reason,
            error_type=type(error).__name__,
            chars_streamed=len(self.answer_text),
        )
        return ChatRequestFailed(stage=stage, reason=reason)


class ChatPipeline:
    """Entry point answering woodworking questions.

    Holds no per-request state; every call to start() creates an
    independent ChatRun, so concurrent requests never share mutable state.
    """

    def __init__(
        self,
        classifier: RelevanceClassifier,
        rewriter: QueryRewriter,
        embedding_service: EmbeddingService,
        document_store: DocumentStore,
        generator: AnswerGenerator,
        short_circuit: ShortCircuitResponder,
        product_matcher: ProductMatcher,
        config: RAGConfig | None = None,
    ):
        self.config = config or get_config()
        self.classifier = classifier
        self.rewriter = rewriter
        self.embedding_service = embedding_service
        self.document_store = document_store
        self.generator = generator
        self.short_circuit = short_circuit
        self.product_matcher = product_matcher

    @classmethod
    def from_deps(
        cls, deps: AssistantDeps, config: RAGConfig | None = None
    ) -> "ChatPipeline":
        """Wire every pipeline service from shared dependency handles."""
        config = config or get_config()
        agents = deps.agents

        pipeline = cls(
            classifier=RelevanceClassifier(agents.classifier, config.history_window),
            rewriter=QueryRewriter(agents.rewriter, config.history_window),
            embedding_service=EmbeddingService(config, deps.embedding_client),
            document_store=DocumentStore(config, deps.supabase),
            generator=AnswerGenerator(agents.answer, config.history_window),
            short_circuit=ShortCircuitResponder(agents.short_circuit),
            product_matcher=ProductMatcher(ProductStore(config, deps.supabase)),
            config=config,
        )
        logger.info(
            "pipeline_initialized",
            top_k=config.top_k,
            history_window=config.history_window,
            request_timeout_seconds=config.request_timeout_seconds,
        )
        return pipeline

    def start(self, request: ChatRequest) -> ChatRun:
        """Begin a new run for one question. Must be called inside an event loop."""
        return ChatRun(self, request)

    async def answer(self, request: ChatRequest) -> ChatResponse:
        """Run both phases and return the merged response.

        Raises:
            ChatRequestFailed: On any fatal step failure.
        """
        run = self.start(request)
        async for _ in run.stream():
            pass
        return await run.finish()

    async def collect_media(
        self,
        answer_text: str,
        relevance: RelevanceLabel | None = None,
    ) -> MediaResponse:
        """Compute video references and related products for a finished answer.

        Args:
            answer_text: Complete streamed answer.
            relevance: Label reported with the answer; anything other than
                RELEVANT yields empty collections.

        Returns:
            MediaResponse with ordinal-keyed references and matched products.
        """
        if relevance is not None and relevance is not RelevanceLabel.RELEVANT:
            return MediaResponse()

        references = extract_video_references(answer_text)
        products = await self.product_matcher.match(
            [reference.video_title for reference in references]
        )
        logger.info(
            "media_collected",
            video_references=len(references),
            related_products=len(products),
        )
        return MediaResponse(
            video_references=index_video_references(references),
            related_products=products,
        )
