"""
Knowledge Base — ingestion and retrieval over the vector store

Ingestion (ingest_url):
  1. Analyze the document with Document Intelligence
  2. Split the full text with a recursive character splitter
  3. Embed every chunk in one call
  4. Create the index on first use (dimension taken from the embeddings)
  5. Upsert chunks with {text, source, pageNumber, chunkIndex, **metadata}

Retrieval (search):
  Embed the query, run a nearest-neighbour query, return text + score +
  provenance per hit.

The embedding model and splitter are injected; any langchain_core
Embeddings implementation works.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from langchain_core.embeddings import Embeddings
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ragsearch.core.config import settings
from ragsearch.processing.document_intelligence import AzureDocumentProcessor
from ragsearch.processing.documents import ProcessedDocument
from ragsearch.vectorstore.base import DistanceMetric, IndexSpec, VectorStoreBase

logger = logging.getLogger(__name__)

# Characters of a chunk used to locate its page
_PAGE_PROBE_CHARS = 40


@dataclass
class IngestionResult:
    document_url:    str
    index_name:      str
    chunks_ingested: int
    vector_ids:      list[str] = field(default_factory=list)
    page_count:      int = 0


@dataclass
class SearchHit:
    text:        str
    score:       float
    source:      str | None
    page_number: int | None
    metadata:    dict


def default_embeddings() -> Embeddings:
    from langchain_openai import OpenAIEmbeddings
    return OpenAIEmbeddings(model=settings.embedding_model, api_key=settings.openai_api_key)


def _page_for_chunk(chunk: str, document: ProcessedDocument) -> int:
    """First page whose text contains the start of the chunk; else the first page."""
    probe = chunk.strip()[:_PAGE_PROBE_CHARS]
    for page in document.pages:
        if probe and probe in page.content:
            return page.page_number
    return document.pages[0].page_number if document.pages else 1


class KnowledgeBase:

    def __init__(
        self,
        store: VectorStoreBase,
        processor: AzureDocumentProcessor,
        embeddings: Embeddings | None = None,
        splitter: RecursiveCharacterTextSplitter | None = None,
    ) -> None:
        self._store = store
        self._processor = processor
        self._embeddings = embeddings or default_embeddings()
        self._splitter = splitter or RecursiveCharacterTextSplitter(
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
        )

    @property
    def store(self) -> VectorStoreBase:
        return self._store

    async def ingest_url(
        self,
        document_url: str,
        index_name: str = "documents",
        metadata: Mapping[str, Any] | None = None,
    ) -> IngestionResult:
        document = await self._processor.process_url(document_url)
        chunks = [c for c in self._splitter.split_text(document.content) if c.strip()]

        if not chunks:
            logger.warning("Ingest produced no chunks | url=%s index=%s", document_url, index_name)
            return IngestionResult(
                document_url=document_url,
                index_name=index_name,
                chunks_ingested=0,
                page_count=document.metadata.page_count,
            )

        vectors = await self._embeddings.aembed_documents(chunks)

        if index_name not in await self._store.list_indexes():
            await self._store.create_index(
                IndexSpec(name=index_name, dimension=len(vectors[0]), metric=DistanceMetric.COSINE)
            )

        chunk_metadata = [
            {
                "text":       chunk,
                "source":     document_url,
                "pageNumber": _page_for_chunk(chunk, document),
                "chunkIndex": i,
                **(metadata or {}),
            }
            for i, chunk in enumerate(chunks)
        ]
        ids = await self._store.upsert(index_name, vectors, metadata=chunk_metadata)

        logger.info(
            "Ingest complete | url=%s index=%s pages=%d chunks=%d",
            document_url, index_name, document.metadata.page_count, len(ids),
        )
        return IngestionResult(
            document_url=document_url,
            index_name=index_name,
            chunks_ingested=len(chunks),
            vector_ids=ids,
            page_count=document.metadata.page_count,
        )

    async def search(
        self,
        query: str,
        index_name: str = "documents",
        top_k: int = 5,
    ) -> list[SearchHit]:
        vector = await self._embeddings.aembed_query(query)
        results = await self._store.query(index_name, vector, top_k=top_k)

        hits = [
            SearchHit(
                text=str(r.metadata.get("text", "")),
                score=r.score,
                source=r.metadata.get("source"),
                page_number=r.metadata.get("pageNumber"),
                metadata=r.metadata,
            )
            for r in results
        ]
        logger.debug("Search | index=%s top_k=%d hits=%d", index_name, top_k, len(hits))
        return hits

    async def close(self) -> None:
        await self._processor.close()
        close = getattr(self._store, "close", None)
        if close is not None:
            await close()
