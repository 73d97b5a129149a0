"""Client initialization utilities.

Provides functions for initializing the external service clients
(Supabase, OpenAI) and bundling them into AssistantDeps.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from openai import AsyncOpenAI
from pydantic_ai.models import Model
from supabase import Client, create_client

from src.agent.agent import build_agents
from src.agent.config import get_model
from src.agent.deps import AssistantDeps
from src.rag_pipeline.config import RAGConfig
from src.utils.logging import get_logger

logger = get_logger(__name__)


def get_clients(config: RAGConfig) -> tuple[AsyncOpenAI, Client]:
    """Initialize and return embedding and Supabase clients.

    Args:
        config: Pipeline configuration with credentials.

    Returns:
        Tuple of (AsyncOpenAI embedding client, Supabase client).

    Raises:
        ValueError: If required settings are missing.
    """
    if not config.embedding_api_key:
        raise ValueError("EMBEDDING_API_KEY environment variable is required")

    embedding_client = AsyncOpenAI(
        base_url=config.embedding_base_url,
        api_key=config.embedding_api_key,
    )

    if not config.supabase_url or not config.supabase_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables are required")

    supabase = create_client(config.supabase_url, config.supabase_key)

    return embedding_client, supabase


@asynccontextmanager
async def open_dependencies(
    config: RAGConfig, model: Model | None = None
) -> AsyncIterator[AssistantDeps]:
    """Acquire all pipeline dependencies and release them on exit.

    Every client opened here is closed when the block exits. A model passed
    in by the caller stays open.

    Args:
        config: Pipeline configuration with credentials.
        model: Optional model override for every agent.

    Yields:
        AssistantDeps shared by all requests served inside the block.
    """
    embedding_client, supabase = get_clients(config)
    chat_model = None if model else get_model()
    deps = AssistantDeps(
        supabase=supabase,
        embedding_client=embedding_client,
        agents=build_agents(model or chat_model),
    )
    logger.info("dependencies_opened", supabase_url=config.supabase_url)

    try:
        yield deps
    finally:
        await embedding_client.close()
        supabase.postgrest.session.close()
        if chat_model is not None:
            await chat_model.client.close()
        logger.info("dependencies_closed")
