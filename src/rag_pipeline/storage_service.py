"""Storage services for document vector search and the product catalog in Supabase."""

import asyncio
from typing import Any

from supabase import Client

from src.utils.logging import get_logger

from .config import RAGConfig
from .errors import RetrievalError
from .schemas import Product, RetrievedDocument

logger = get_logger(__name__)


def _row_to_document(row: dict[str, Any]) -> RetrievedDocument | None:
    """Build a RetrievedDocument from an RPC row.

    Rows without a similarity score come from documents without an embedding
    and are not candidates.
    """
    similarity = row.get("similarity_score", row.get("similarity"))
    if similarity is None:
        return None

    chunk_id = row.get("chunk_id")
    return RetrievedDocument(
        id=str(row["id"]),
        text=row.get("text") or "",
        title=row.get("title") or "",
        url=row.get("url") or "",
        chunk_id=str(chunk_id) if chunk_id is not None else None,
        similarity_score=float(similarity),
    )


def parse_tags(raw_tags: Any) -> list[str]:
    """Normalize a tags column stored either as text "a, b" or as an array.

    Examples:
        >>> parse_tags("Table Saw, Safety ")
        ['Table Saw', 'Safety']
        >>> parse_tags(None)
        []
    """
    if not raw_tags:
        return []
    if isinstance(raw_tags, str):
        items = raw_tags.split(",")
    else:
        items = [str(tag) for tag in raw_tags]
    return [tag.strip() for tag in items if tag and tag.strip()]


class DocumentStore:
    """Nearest-neighbour search over pre-embedded woodworking documents.

    Search runs through a Postgres function (see sql/match_documents.sql)
    that only considers rows with an embedding and orders by cosine distance,
    then by id.
    """

    def __init__(self, config: RAGConfig, client: Client):
        self.config = config
        self.client = client

    async def search(
        self, query_embedding: list[float], top_k: int | None = None
    ) -> list[RetrievedDocument]:
        """Search for the documents closest to a query embedding.

        Args:
            query_embedding: Query embedding vector.
            top_k: Maximum number of results (default: config.top_k).

        Returns:
            Up to top_k documents, strictly descending by similarity. Ties keep
            the order returned by the store.

        Raises:
            RetrievalError: If the store cannot be queried.
        """
        match_count = top_k if top_k is not None else self.config.top_k

        try:
            response = await asyncio.to_thread(
                self.client.rpc(
                    self.config.documents_match_function,
                    {
                        "query_embedding": query_embedding,
                        "match_count": match_count,
                    },
                ).execute
            )
        except Exception as e:
            logger.exception(
                "vector_search_failed",
                function=self.config.documents_match_function,
                error_type=type(e).__name__,
            )
            raise RetrievalError(str(e)) from e

        rows: list[dict[str, Any]] = response.data or []
        documents = [doc for doc in map(_row_to_document, rows) if doc is not None]

        # sorted() is stable, so equal scores keep store order
        documents = sorted(documents, key=lambda doc: doc.similarity_score, reverse=True)
        documents = documents[:match_count]

        logger.info(
            "vector_search_completed",
            rows=len(rows),
            results=len(documents),
            match_count=match_count,
        )
        return documents


class ProductStore:
    """Read access to the product catalog."""

    def __init__(self, config: RAGConfig, client: Client):
        self.config = config
        self.client = client

    async def find_by_titles(self, titles: list[str]) -> list[Product]:
        """Fetch candidate products whose tags overlap any of the titles.

        The overlap test runs in the database (see sql/match_products.sql) and
        results are read page by page, so catalogs larger than one API
        response are searched completely.

        Args:
            titles: Non-blank video titles.

        Returns:
            Candidate products with parsed tags, ordered by product id.

        Raises:
            Exception: Propagates any database error to the caller.
        """
        page_size = self.config.products_page_size
        products: list[Product] = []
        start = 0

        while True:
            response = await asyncio.to_thread(
                self.client.rpc(
                    self.config.products_match_function,
                    {"titles": titles},
                )
                .range(start, start + page_size - 1)
                .execute
            )
            rows: list[dict[str, Any]] = response.data or []
            products.extend(
                Product(
                    id=str(row["id"]),
                    title=row.get("title") or "",
                    tags=parse_tags(row.get("tags")),
                    link=row.get("link") or "",
                )
                for row in rows
            )
            if len(rows) < page_size:
                break
            start += page_size

        logger.debug(
            "product_candidates_loaded",
            titles=len(titles),
            count=len(products),
            pages=start // page_size + 1,
        )
        return products
