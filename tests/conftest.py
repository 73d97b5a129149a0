"""Shared fixtures for chat pipeline tests."""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.rag_pipeline.config import RAGConfig
from src.rag_pipeline.pipeline import ChatPipeline
from src.rag_pipeline.product_matcher import ProductMatcher
from src.rag_pipeline.schemas import Product, RelevanceLabel, RetrievedDocument
from tests.helpers import TAGGED_ANSWER, async_iter


@pytest.fixture
def rag_config() -> RAGConfig:
    """Create test configuration."""
    return RAGConfig(
        embedding_api_key="test-key",
        embedding_model="text-embedding-ada-002",
        embedding_timeout_seconds=5,
        request_timeout_seconds=5,
        top_k=5,
        history_window=5,
        supabase_url="https://test.supabase.co",
        supabase_key="test_key",
    )


@pytest.fixture
def sample_documents() -> list[RetrievedDocument]:
    """Create retrieved documents in descending similarity order."""
    return [
        RetrievedDocument(
            id="doc-1",
            text="Clamp the workpiece to the bench before cutting.",
            title="Clamping Basics",
            url="https://youtube.com/watch?v=clamp1",
            chunk_id="0",
            similarity_score=0.92,
        ),
        RetrievedDocument(
            id="doc-2",
            text="A sacrificial fence keeps small parts steady on the table saw.",
            title="Table Saw Basics",
            url="https://youtube.com/watch?v=saw1",
            chunk_id="3",
            similarity_score=0.81,
        ),
    ]


@pytest.fixture
def sample_products() -> list[Product]:
    """Create a small catalog in id order."""
    return [
        Product(id="1", title="Bench Clamp", tags=["Clamping Basics", "clamps"], link="https://shop/clamp"),
        Product(id="2", title="Push Block", tags=["Table Saw Safety", "saw"], link="https://shop/push"),
        Product(id="3", title="Finishing Oil", tags=["Finishing"], link="https://shop/oil"),
    ]


@pytest.fixture
def make_pipeline(
    rag_config: RAGConfig,
    sample_documents: list[RetrievedDocument],
    sample_products: list[Product],
) -> Callable[..., ChatPipeline]:
    """Build a ChatPipeline whose external collaborators are mocked.

    Keyword overrides:
        label: RelevanceLabel returned by the classifier.
        answer_chunks: Chunks streamed by the answer generator.
        short_circuit_chunks: Chunks streamed for non-RELEVANT labels.
        products: Catalog returned by the product store.
        Any component name (classifier, rewriter, ...) to replace it outright.
    """

    def factory(**overrides: Any) -> ChatPipeline:
        label = overrides.pop("label", RelevanceLabel.RELEVANT)
        answer_chunks = overrides.pop("answer_chunks", [TAGGED_ANSWER[:40], TAGGED_ANSWER[40:]])
        short_circuit_chunks = overrides.pop("short_circuit_chunks", ["Hello! ", "Ask me about woodworking."])
        products = overrides.pop("products", sample_products)

        classifier = MagicMock()
        classifier.classify = AsyncMock(return_value=label)

        rewriter = MagicMock()
        rewriter.rewrite = AsyncMock(return_value="how to clamp a workpiece securely")

        embedding_service = MagicMock()
        embedding_service.embed_text = AsyncMock(return_value=[0.1, 0.2, 0.3])

        document_store = MagicMock()
        document_store.search = AsyncMock(return_value=sample_documents)

        generator = MagicMock()
        generator.generate = MagicMock(side_effect=lambda *args, **kwargs: async_iter(answer_chunks))

        short_circuit = MagicMock()
        short_circuit.respond = MagicMock(
            side_effect=lambda *args, **kwargs: async_iter(short_circuit_chunks)
        )

        product_store = MagicMock()
        product_store.find_by_titles = AsyncMock(return_value=products)

        components: dict[str, Any] = {
            "classifier": classifier,
            "rewriter": rewriter,
            "embedding_service": embedding_service,
            "document_store": document_store,
            "generator": generator,
            "short_circuit": short_circuit,
            "product_matcher": ProductMatcher(product_store),
        }
        components.update(overrides)
        return ChatPipeline(config=rag_config, **components)

    return factory
