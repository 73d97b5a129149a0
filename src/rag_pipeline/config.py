"""Configuration module for the woodshop chat pipeline."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


class RAGConfig(BaseModel):
    """Configuration for the retrieval-augmented chat pipeline.

    Every setting can be overridden via environment variables or passed
    explicitly (tests do the latter).
    """

    # Embedding settings
    embedding_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_BASE_URL", "https://api.openai.com/v1"
        )
    )
    embedding_api_key: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_API_KEY", "")
    )
    embedding_model: str = Field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_MODEL_CHOICE", "text-embedding-ada-002"
        )
    )
    embedding_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "5"))
    )

    # Request settings
    request_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_SECONDS", "60"))
    )
    top_k: int = Field(default_factory=lambda: int(os.getenv("RAG_TOP_K", "5")))
    history_window: int = Field(
        default_factory=lambda: int(os.getenv("HISTORY_WINDOW", "5"))
    )

    # Database settings
    supabase_url: str = Field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_KEY", "")
    )
    documents_match_function: str = Field(
        default_factory=lambda: os.getenv("DOCUMENTS_MATCH_FUNCTION", "match_documents")
    )
    products_match_function: str = Field(
        default_factory=lambda: os.getenv("PRODUCTS_MATCH_FUNCTION", "match_products")
    )
    # Supabase caps each response at max_rows (1000 by default)
    products_page_size: int = Field(
        default_factory=lambda: int(os.getenv("PRODUCTS_PAGE_SIZE", "1000"))
    )


def get_config() -> RAGConfig:
    """Get validated configuration instance.

    Returns:
        RAGConfig: Validated configuration object with all settings.

    Raises:
        ValidationError: If an environment value cannot be parsed.
    """
    return RAGConfig()
