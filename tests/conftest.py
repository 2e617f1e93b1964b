"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Environment strategy:
  - Settings are read from env vars set BEFORE any package import.
  - Azure AI Search is replaced by an in-memory fake (FakeSearchBackend)
    that implements the subset of the async SDK the store calls:
      SearchIndexClient : create_or_update_index, get_index, delete_index,
                          list_index_names, close
      SearchClient      : upload/merge/delete_documents, search,
                          get_document_count, close
  - Filters are opaque strings; tests register a Python predicate per
    filter string with backend.register_filter().

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only
  pytest -m integration           # HTTP-level tests
"""

from __future__ import annotations

import json
import math
import os
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from azure.core.exceptions import ResourceNotFoundError, ServiceRequestError

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any package imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("AZURE_SEARCH_ENDPOINT",           "https://fake-search.search.windows.net")
os.environ.setdefault("AZURE_SEARCH_API_KEY",            "test-search-key")
os.environ.setdefault("AZURE_DOC_INTELLIGENCE_ENDPOINT", "https://fake-di.cognitiveservices.azure.com")
os.environ.setdefault("AZURE_DOC_INTELLIGENCE_KEY",      "test-di-key")
os.environ.setdefault("OPENAI_API_KEY",                  "sk-test-key")
os.environ.setdefault("APP_ENV",                         "development")


# ─────────────────────────────────────────────────────────────────────────────
# In-memory search backend
# ─────────────────────────────────────────────────────────────────────────────

def _result(key: str, succeeded: bool = True, status_code: int = 200, error: str | None = None):
    return SimpleNamespace(key=key, succeeded=succeeded, status_code=status_code, error_message=error)


def _similarity(a: list[float], b: list[float]) -> float:
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(x * x for x in b))
    if na == 0 or nb == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (na * nb)


class _AsyncResults:
    def __init__(self, docs: list[dict]) -> None:
        self._docs = docs

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._docs:
            yield doc


class FakeSearchBackend:
    """Shared state for the fake index client and every fake search client."""

    def __init__(self) -> None:
        self.indexes:   dict[str, Any] = {}
        self.documents: dict[str, dict[str, dict]] = {}
        self.filters:   dict[str, Callable[[dict], bool]] = {}

        # call log: (operation, index_name, batch_size)
        self.calls: list[tuple[str, str, int]] = []
        self.searches: list[dict] = []
        self.clients_created: list[str] = []

        # failure injection
        self.fail_upload_call: int | None = None     # 1-based upload call that raises
        self.fail_delete_call: int | None = None
        self.fail_merge_call:  int | None = None
        self.reject_keys: set[str] = set()
        self._upload_calls = 0
        self._delete_calls = 0
        self._merge_calls = 0

        self.index_client = FakeIndexClient(self)

    def register_filter(self, expression: str, predicate: Callable[[dict], bool]) -> str:
        self.filters[expression] = predicate
        return expression

    def search_client(self, index_name: str) -> "FakeSearchClient":
        self.clients_created.append(index_name)
        return FakeSearchClient(self, index_name)

    def docs(self, index_name: str) -> dict[str, dict]:
        if index_name not in self.documents:
            raise ResourceNotFoundError(f"The index '{index_name}' was not found.")
        return self.documents[index_name]

    def batch_sizes(self, operation: str) -> list[int]:
        return [size for op, _, size in self.calls if op == operation]


class FakeIndexClient:

    def __init__(self, backend: FakeSearchBackend) -> None:
        self._backend = backend
        self.closed = False

    async def create_or_update_index(self, index):
        self._backend.indexes[index.name] = index
        self._backend.documents.setdefault(index.name, {})
        return index

    async def get_index(self, name: str):
        if name not in self._backend.indexes:
            raise ResourceNotFoundError(f"No index with the name '{name}' was found")
        return self._backend.indexes[name]

    async def delete_index(self, name: str) -> None:
        if name not in self._backend.indexes:
            raise ResourceNotFoundError(f"No index with the name '{name}' was found")
        del self._backend.indexes[name]
        del self._backend.documents[name]

    def list_index_names(self):
        names = list(self._backend.indexes)

        async def _pages():
            for name in names:
                yield name
        return _pages()

    async def close(self) -> None:
        self.closed = True


class FakeSearchClient:

    def __init__(self, backend: FakeSearchBackend, index_name: str) -> None:
        self._backend = backend
        self.index_name = index_name
        self.closed = False

    async def upload_documents(self, documents: list[dict]):
        b = self._backend
        b._upload_calls += 1
        b.calls.append(("upload", self.index_name, len(documents)))
        if b.fail_upload_call == b._upload_calls:
            raise ServiceRequestError("connection reset by peer")
        docs = b.docs(self.index_name)
        results = []
        for doc in documents:
            if doc["id"] in b.reject_keys:
                results.append(_result(doc["id"], False, 400, "Invalid document"))
                continue
            docs[doc["id"]] = dict(doc)
            results.append(_result(doc["id"], True, 201))
        return results

    async def merge_documents(self, documents: list[dict]):
        b = self._backend
        b._merge_calls += 1
        b.calls.append(("merge", self.index_name, len(documents)))
        if b.fail_merge_call == b._merge_calls:
            raise ServiceRequestError("connection reset by peer")
        docs = b.docs(self.index_name)
        results = []
        for doc in documents:
            if doc["id"] not in docs:
                results.append(_result(doc["id"], False, 404, "Document not found."))
                continue
            docs[doc["id"]].update(doc)
            results.append(_result(doc["id"], True, 200))
        return results

    async def delete_documents(self, documents: list[dict]):
        b = self._backend
        b._delete_calls += 1
        b.calls.append(("delete", self.index_name, len(documents)))
        if b.fail_delete_call == b._delete_calls:
            raise ServiceRequestError("connection reset by peer")
        docs = b.docs(self.index_name)
        for doc in documents:
            docs.pop(doc["id"], None)
        return [_result(doc["id"], True, 200) for doc in documents]

    async def get_document_count(self) -> int:
        return len(self._backend.docs(self.index_name))

    async def search(self, search_text=None, *, vector_queries=None, filter=None, top=None, select=None):
        b = self._backend
        b.searches.append({
            "index": self.index_name, "filter": filter, "top": top, "select": select,
            "vector_queries": vector_queries,
        })
        docs = list(b.docs(self.index_name).values())
        if filter is not None:
            docs = [d for d in docs if b.filters[filter](d)]

        k = top or 50
        query_vector = None
        if vector_queries:
            vq = vector_queries[0]
            query_vector = vq.vector
            k = min(k, vq.k_nearest_neighbors)

        scored = [
            (_similarity(query_vector, d.get("vector") or []) if query_vector else 1.0, d)
            for d in docs
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)

        hits = []
        for score, doc in scored[:k]:
            hit = {f: doc.get(f) for f in (select or doc.keys())}
            hit["@search.score"] = score
            hits.append(hit)
        return _AsyncResults(hits)

    async def close(self) -> None:
        self.closed = True


def metadata_of(doc: dict) -> dict:
    """Decode the stored metadata blob of a fake document."""
    return json.loads(doc.get("metadata") or "{}")


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def backend() -> FakeSearchBackend:
    return FakeSearchBackend()


@pytest.fixture
def store(backend):
    """AzureAISearchVectorStore wired to the in-memory backend."""
    from ragsearch.vectorstore.azure_search_store import AzureAISearchVectorStore
    return AzureAISearchVectorStore(
        endpoint="https://fake-search.search.windows.net",
        api_key="test-search-key",
        index_client=backend.index_client,
        search_client_factory=backend.search_client,
    )


@pytest.fixture
def index_spec():
    from ragsearch.vectorstore.base import DistanceMetric, IndexSpec
    return IndexSpec(name="documents", dimension=3, metric=DistanceMetric.COSINE)


@pytest.fixture
async def documents_index(store, index_spec):
    """Store with an empty 3-dimensional cosine index named 'documents'."""
    await store.create_index(index_spec)
    return store


@pytest.fixture
def sample_analyze_result() -> dict:
    """REST-shaped layout result: two pages (out of order), one 2×3 table."""
    return {
        "content": "Quarterly Report\nRevenue grew 12%.\nAppendix",
        "pages": [
            {
                "pageNumber": 2,
                "width": 8.5,
                "height": 11,
                "lines": [{"content": "Appendix"}],
            },
            {
                "pageNumber": 1,
                "width": 8.5,
                "height": 11,
                "lines": [{"content": "Quarterly Report"}, {"content": "Revenue grew 12%."}],
            },
        ],
        "tables": [
            {
                "rowCount": 2,
                "columnCount": 3,
                "cells": [
                    {"rowIndex": 0, "columnIndex": 0, "content": "Region"},
                    {"rowIndex": 0, "columnIndex": 1, "content": "Q1"},
                    {"rowIndex": 0, "columnIndex": 2, "content": "Q2"},
                    {"rowIndex": 1, "columnIndex": 0, "content": "EMEA"},
                    {"rowIndex": 1, "columnIndex": 2, "content": "14"},
                ],
                "boundingRegions": [{"pageNumber": 1, "polygon": [0, 0, 1, 0, 1, 1, 0, 1]}],
            }
        ],
    }
