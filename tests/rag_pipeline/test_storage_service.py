"""Unit tests for the document and product stores."""

from unittest.mock import MagicMock

import pytest

from src.rag_pipeline.config import RAGConfig
from src.rag_pipeline.errors import RetrievalError
from src.rag_pipeline.storage_service import DocumentStore, ProductStore, parse_tags


def _rpc_client(rows: list[dict]) -> MagicMock:
    """Create a mock Supabase client whose rpc().execute() returns rows."""
    mock_response = MagicMock()
    mock_response.data = rows
    client = MagicMock()
    client.rpc.return_value.execute.return_value = mock_response
    return client


@pytest.mark.unit
class TestParseTags:
    """Test parse_tags helper function."""

    def test_comma_separated_text(self) -> None:
        """Test tags stored as comma-separated text."""
        assert parse_tags("Table Saw, Safety ,") == ["Table Saw", "Safety"]

    def test_array_column(self) -> None:
        """Test tags stored as an array."""
        assert parse_tags(["Router", " Bits "]) == ["Router", "Bits"]

    def test_empty(self) -> None:
        """Test missing tags."""
        assert parse_tags(None) == []
        assert parse_tags("") == []


@pytest.mark.unit
class TestDocumentStore:
    """Test suite for DocumentStore class."""

    @pytest.mark.asyncio
    async def test_search_maps_rows(self, rag_config: RAGConfig) -> None:
        """Test that RPC rows become RetrievedDocuments."""
        client = _rpc_client(
            [
                {
                    "id": 7,
                    "text": "Use a holdfast.",
                    "title": "Workholding",
                    "url": "https://youtube.com/watch?v=w1",
                    "chunk_id": 2,
                    "similarity": 0.9,
                }
            ]
        )
        store = DocumentStore(rag_config, client)

        result = await store.search([0.1, 0.2], top_k=5)

        assert len(result) == 1
        assert result[0].id == "7"
        assert result[0].chunk_id == "2"
        assert result[0].similarity_score == 0.9
        client.rpc.assert_called_once_with(
            "match_documents",
            {"query_embedding": [0.1, 0.2], "match_count": 5},
        )

    @pytest.mark.asyncio
    async def test_search_orders_by_descending_similarity(self, rag_config: RAGConfig) -> None:
        """Test ordering, with ties kept in store order."""
        client = _rpc_client(
            [
                {"id": "a", "text": "A", "similarity": 0.5},
                {"id": "b", "text": "B", "similarity": 0.8},
                {"id": "c", "text": "C", "similarity": 0.5},
            ]
        )
        store = DocumentStore(rag_config, client)

        result = await store.search([0.1])

        assert [doc.id for doc in result] == ["b", "a", "c"]

    @pytest.mark.asyncio
    async def test_search_excludes_rows_without_similarity(self, rag_config: RAGConfig) -> None:
        """Test that rows with no score (no embedding) are not candidates."""
        client = _rpc_client(
            [
                {"id": "a", "text": "A", "similarity": None},
                {"id": "b", "text": "B", "similarity": 0.3},
            ]
        )
        store = DocumentStore(rag_config, client)

        result = await store.search([0.1])

        assert [doc.id for doc in result] == ["b"]

    @pytest.mark.asyncio
    async def test_search_returns_fewer_than_top_k(self, rag_config: RAGConfig) -> None:
        """Test that results are not padded."""
        client = _rpc_client([{"id": "a", "text": "A", "similarity": 0.4}])
        store = DocumentStore(rag_config, client)

        result = await store.search([0.1], top_k=5)

        assert len(result) == 1

    @pytest.mark.asyncio
    async def test_search_truncates_to_top_k(self, rag_config: RAGConfig) -> None:
        """Test that extra rows are dropped."""
        rows = [{"id": str(i), "text": "T", "similarity": 1 - i / 10} for i in range(4)]
        store = DocumentStore(rag_config, _rpc_client(rows))

        result = await store.search([0.1], top_k=2)

        assert [doc.id for doc in result] == ["0", "1"]

    @pytest.mark.asyncio
    async def test_search_empty(self, rag_config: RAGConfig) -> None:
        """Test that no data yields an empty list."""
        store = DocumentStore(rag_config, _rpc_client(None))  # type: ignore[arg-type]

        assert await store.search([0.1]) == []

    @pytest.mark.asyncio
    async def test_search_failure_raises_retrieval_error(self, rag_config: RAGConfig) -> None:
        """Test that connectivity errors become RetrievalError."""
        client = MagicMock()
        client.rpc.return_value.execute.side_effect = Exception("connection refused")
        store = DocumentStore(rag_config, client)

        with pytest.raises(RetrievalError, match="connection refused"):
            await store.search([0.1])

        client.rpc.return_value.execute.assert_called_once()


@pytest.mark.unit
class TestProductStore:
    """Test suite for ProductStore class."""

    @staticmethod
    def _paged_client(pages: list[list[dict]]) -> MagicMock:
        """Create a mock client whose rpc().range().execute() returns successive pages."""
        responses = []
        for rows in pages:
            response = MagicMock()
            response.data = rows
            responses.append(response)
        client = MagicMock()
        client.rpc.return_value.range.return_value.execute.side_effect = responses
        return client

    @pytest.mark.asyncio
    async def test_find_by_titles_filters_in_database(self, rag_config: RAGConfig) -> None:
        """Test that titles are sent to the match function and rows are parsed."""
        client = self._paged_client(
            [
                [
                    {"id": 1, "title": "Push Block", "tags": "Table Saw Safety, saw", "link": "https://shop/push"},
                    {"id": 2, "title": "Glue", "tags": None, "link": None},
                ]
            ]
        )
        store = ProductStore(rag_config, client)

        result = await store.find_by_titles(["Table Saw Basics"])

        assert [product.id for product in result] == ["1", "2"]
        assert result[0].tags == ["Table Saw Safety", "saw"]
        assert result[1].tags == []
        assert result[1].link == ""
        client.rpc.assert_called_once_with("match_products", {"titles": ["Table Saw Basics"]})
        client.rpc.return_value.range.assert_called_once_with(0, 999)

    @pytest.mark.asyncio
    async def test_find_by_titles_reads_every_page(self, rag_config: RAGConfig) -> None:
        """Test that matches beyond the first response page are not lost."""
        rag_config.products_page_size = 2
        client = self._paged_client(
            [
                [{"id": 1, "title": "A", "tags": "saw"}, {"id": 2, "title": "B", "tags": "saw"}],
                [{"id": 3, "title": "C", "tags": "saw"}, {"id": 4, "title": "D", "tags": "saw"}],
                [{"id": 1200, "title": "Push Block", "tags": "Table Saw Safety"}],
            ]
        )
        store = ProductStore(rag_config, client)

        result = await store.find_by_titles(["table saw"])

        assert [product.id for product in result] == ["1", "2", "3", "4", "1200"]
        ranges = [call.args for call in client.rpc.return_value.range.call_args_list]
        assert ranges == [(0, 1), (2, 3), (4, 5)]

    @pytest.mark.asyncio
    async def test_find_by_titles_stops_on_empty_page(self, rag_config: RAGConfig) -> None:
        """Test that an exactly full last page ends with one empty request."""
        rag_config.products_page_size = 1
        client = self._paged_client([[{"id": 1, "title": "A", "tags": "saw"}], []])
        store = ProductStore(rag_config, client)

        result = await store.find_by_titles(["saw"])

        assert [product.id for product in result] == ["1"]
        assert client.rpc.return_value.range.call_count == 2

    @pytest.mark.asyncio
    async def test_find_by_titles_propagates_errors(self, rag_config: RAGConfig) -> None:
        """Test that database errors are left to the matcher."""
        client = MagicMock()
        client.rpc.side_effect = Exception("Database Error")
        store = ProductStore(rag_config, client)

        with pytest.raises(Exception, match="Database Error"):
            await store.find_by_titles(["saw"])
