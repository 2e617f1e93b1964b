"""
Unit Tests — KnowledgeBase (ingest + search)

Real vector store on the in-memory backend, mocked document processor,
deterministic fake embeddings.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.embeddings import Embeddings
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ragsearch.processing.layout_parser import parse_analyze_result
from ragsearch.rag.knowledge_base import KnowledgeBase


class KeywordEmbeddings(Embeddings):
    """3-d embedding: (mentions revenue, mentions appendix, length bucket)."""

    def _embed(self, text: str) -> list[float]:
        lower = text.lower()
        return [
            1.0 if "revenue" in lower else 0.0,
            1.0 if "appendix" in lower else 0.0,
            min(len(text), 100) / 100.0,
        ]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)


@pytest.fixture
def processor(sample_analyze_result):
    proc = MagicMock()
    proc.process_url = AsyncMock(return_value=parse_analyze_result(sample_analyze_result, "prebuilt-layout"))
    proc.close = AsyncMock()
    return proc


@pytest.fixture
def kb(store, processor):
    return KnowledgeBase(
        store=store,
        processor=processor,
        embeddings=KeywordEmbeddings(),
        splitter=RecursiveCharacterTextSplitter(chunk_size=20, chunk_overlap=0),
    )


@pytest.mark.unit
class TestKnowledgeBase:

    async def test_ingest_creates_index_and_upserts_chunks(self, kb, store, backend):
        result = await kb.ingest_url("https://example.com/report.pdf", index_name="reports", metadata={"team": "fin"})

        assert result.chunks_ingested == 3
        assert len(result.vector_ids) == 3
        assert result.page_count == 2

        stats = await store.describe_index("reports")
        assert (stats.dimension, stats.count) == (3, 3)

        stored = {
            r.metadata["text"]: r.metadata
            for r in await store.query("reports", [1.0, 1.0, 0.5], top_k=10)
        }
        assert stored["Appendix"]["pageNumber"] == 2
        assert stored["Revenue grew 12%."]["pageNumber"] == 1
        assert stored["Revenue grew 12%."]["source"] == "https://example.com/report.pdf"
        assert stored["Revenue grew 12%."]["team"] == "fin"
        assert sorted(m["chunkIndex"] for m in stored.values()) == [0, 1, 2]

    async def test_existing_index_not_recreated(self, kb, store):
        await kb.ingest_url("https://example.com/report.pdf", index_name="reports")
        store.create_index = AsyncMock(wraps=store.create_index)

        await kb.ingest_url("https://example.com/report.pdf", index_name="reports")

        store.create_index.assert_not_awaited()
        assert (await store.describe_index("reports")).count == 6

    async def test_empty_document_ingests_nothing(self, kb, store, processor, backend):
        processor.process_url.return_value = parse_analyze_result({"content": "   "}, "prebuilt-layout")

        result = await kb.ingest_url("https://example.com/blank.pdf", index_name="reports")

        assert result.chunks_ingested == 0
        assert result.vector_ids == []
        assert "reports" not in await store.list_indexes()

    async def test_search_returns_best_match_first(self, kb):
        await kb.ingest_url("https://example.com/report.pdf", index_name="reports")

        hits = await kb.search("How much did revenue grow?", index_name="reports", top_k=2)

        assert len(hits) == 2
        assert hits[0].text == "Revenue grew 12%."
        assert hits[0].source == "https://example.com/report.pdf"
        assert hits[0].page_number == 1

    async def test_close_releases_processor_and_store(self, kb, processor, backend):
        await kb.close()
        processor.close.assert_awaited_once()
        assert backend.index_client.closed is True
