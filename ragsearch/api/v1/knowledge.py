"""
Knowledge API — ingestion and semantic search

POST /api/v1/documents/ingest   → analyze + chunk + embed + index a document URL
POST /api/v1/search             → nearest-neighbour search over an index

Error mapping is done by the app-level exception handlers (see main.py).
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, HttpUrl

from ragsearch.core.config import settings
from ragsearch.rag.knowledge_base import KnowledgeBase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Knowledge"])

# ---------------------------------------------------------------------------
# Shared singleton
# ---------------------------------------------------------------------------

_knowledge_base: KnowledgeBase | None = None


def get_knowledge_base() -> KnowledgeBase:
    global _knowledge_base
    if _knowledge_base is None:
        from ragsearch.processing.document_intelligence import AzureDocumentProcessor
        from ragsearch.vectorstore.factory import get_vector_store

        _knowledge_base = KnowledgeBase(
            store=get_vector_store(),
            processor=AzureDocumentProcessor(
                endpoint=settings.azure_doc_intelligence_endpoint,
                api_key=settings.azure_doc_intelligence_key,
                model_id=settings.doc_intelligence_model_id,
            ),
        )
    return _knowledge_base


async def close_knowledge_base() -> None:
    global _knowledge_base
    if _knowledge_base is not None:
        await _knowledge_base.close()
        _knowledge_base = None


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------

class IngestRequest(BaseModel):
    document_url: HttpUrl = Field(..., description="URL of the document to ingest (PDF, image, ...).")
    index_name: str = Field(
        default_factory=lambda: settings.default_index_name,
        min_length=1,
        max_length=128,
        description="Vector index to store the document in.",
    )
    metadata: dict[str, Any] | None = Field(
        default=None,
        description="Extra metadata attached to every chunk.",
    )


class IngestResponse(BaseModel):
    success:         bool = True
    document_url:    str
    index_name:      str
    chunks_ingested: int
    vector_ids:      list[str]
    page_count:      int


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2_000, examples=["What is our refund policy?"])
    index_name: str = Field(default_factory=lambda: settings.default_index_name, min_length=1)
    top_k: int = Field(default=5, ge=1, le=50, description="Number of results to return (1-50).")


class SearchHitOut(BaseModel):
    text:        str
    score:       float
    source:      str | None = None
    page_number: int | None = None


class SearchResponse(BaseModel):
    query:   str
    results: list[SearchHitOut]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/documents/ingest", response_model=IngestResponse)
async def ingest_document(
    body: IngestRequest,
    kb: Annotated[KnowledgeBase, Depends(get_knowledge_base)],
) -> IngestResponse:
    result = await kb.ingest_url(
        str(body.document_url),
        index_name=body.index_name,
        metadata=body.metadata,
    )
    return IngestResponse(
        document_url=result.document_url,
        index_name=result.index_name,
        chunks_ingested=result.chunks_ingested,
        vector_ids=result.vector_ids,
        page_count=result.page_count,
    )


@router.post("/search", response_model=SearchResponse)
async def search_documents(
    body: SearchRequest,
    kb: Annotated[KnowledgeBase, Depends(get_knowledge_base)],
) -> SearchResponse:
    hits = await kb.search(body.query, index_name=body.index_name, top_k=body.top_k)
    return SearchResponse(
        query=body.query,
        results=[
            SearchHitOut(
                text=h.text,
                score=h.score,
                source=h.source,
                page_number=h.page_number if isinstance(h.page_number, int) else None,
            )
            for h in hits
        ],
    )
