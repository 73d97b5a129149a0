"""Embedding service for generating query embeddings via OpenAI-compatible APIs."""

import asyncio

from openai import AsyncOpenAI

from src.utils.logging import get_logger

from .config import RAGConfig
from .errors import EmbeddingError

logger = get_logger(__name__)


class EmbeddingService:
    """Service for turning a search query into an embedding vector.

    The call is bounded by config.embedding_timeout_seconds; a timeout is
    reported the same way as any other embedding failure.
    """

    def __init__(self, config: RAGConfig, client: AsyncOpenAI):
        """Initialize embedding service.

        Args:
            config: Configuration object with embedding model and timeout.
            client: Shared AsyncOpenAI client.
        """
        self.config = config
        self.client = client

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text content to embed.

        Returns:
            Embedding vector as a list of floats.

        Raises:
            EmbeddingError: If the API call fails, times out, or returns no vector.
        """
        try:
            response = await asyncio.wait_for(
                self.client.embeddings.create(
                    input=[text],
                    model=self.config.embedding_model,
                ),
                timeout=self.config.embedding_timeout_seconds,
            )
        except TimeoutError as e:
            logger.error(
                "embedding_timeout",
                text_length=len(text),
                timeout_seconds=self.config.embedding_timeout_seconds,
            )
            raise EmbeddingError(
                f"Embedding timed out after {self.config.embedding_timeout_seconds}s"
            ) from e
        except Exception as e:
            logger.exception(
                "embedding_failed",
                text_length=len(text),
                error_type=type(e).__name__,
            )
            raise EmbeddingError(str(e)) from e

        if not response.data or not response.data[0].embedding:
            logger.error("embedding_empty", text_length=len(text))
            raise EmbeddingError("Embedding response contained no vector")

        embedding = list(response.data[0].embedding)
        logger.info(
            "embedding_generated",
            model=self.config.embedding_model,
            text_length=len(text),
            embedding_dim=len(embedding),
        )
        return embedding
