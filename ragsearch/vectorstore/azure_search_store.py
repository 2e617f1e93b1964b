"""
Azure AI Search Vector Store

Maps the generic VectorStoreBase contract onto Azure AI Search's document
model. Every record is one search document:

  { "id": <key>, "vector": [...], "metadata": "<json>", "text": "<plain text>" }

  - metadata is serialised to an opaque JSON string (Azure fields are
    schema-rigid; arbitrary caller metadata cannot be typed per index)
  - metadata["text"] is promoted to its own searchable field so the
    backend's full-text search can use it; on read it is folded back in

Composition:
  schema.py          IndexSpec ⇄ SearchIndex translation
  batching.py        sequential 1000-record batches
  filter_mutator.py  filter → id-set resolution for update/delete by filter
  client_cache.py    one SearchClient per index, dropped on create/delete

Consistency caveats (inherited from the backend, not strengthened here):
  - Azure indexing is near-real-time: a query issued right after an upsert
    may not see the new records yet.
  - upsert(delete_filter=...) is a filtered delete FOLLOWED BY an upload:
    two independent calls. A reader in between may see neither the old nor
    the new records. If the delete fails, the upload is not attempted.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Mapping, Sequence

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import ResourceNotFoundError
from azure.search.documents.aio import SearchClient
from azure.search.documents.indexes.aio import SearchIndexClient

from ragsearch.vectorstore.base import (
    ById,
    ByIds,
    IndexSpec,
    IndexStats,
    QueryResult,
    SearchFilter,
    VectorRecord,
    VectorStoreBase,
    VectorUpdate,
    resolve_target,
)
from ragsearch.vectorstore.batching import send_in_batches
from ragsearch.vectorstore.client_cache import ClientFactory, SearchClientCache
from ragsearch.vectorstore.errors import (
    IndexNotFoundError,
    InvalidArgumentError,
    RecordNotFoundError,
    SchemaMismatchError,
    VectorStoreError,
)
from ragsearch.vectorstore.filter_mutator import delete_by_filter, knn_query, merge_by_filter
from ragsearch.vectorstore.schema import (
    ID_FIELD,
    METADATA_FIELD,
    TEXT_FIELD,
    VECTOR_FIELD,
    from_backend_schema,
    to_backend_schema,
)

logger = logging.getLogger(__name__)

SCORE_FIELD = "@search.score"


def _load_metadata(raw: Any, record_id: str) -> dict:
    """Deserialise the stored metadata blob; anything unreadable becomes {}."""
    if not raw:
        return {}
    if not isinstance(raw, str):
        logger.warning("Metadata is not a string | id=%s type=%s", record_id, type(raw).__name__)
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Malformed metadata, returning empty mapping | id=%s", record_id)
        return {}
    if not isinstance(value, dict):
        logger.warning("Metadata is not an object | id=%s", record_id)
        return {}
    return value


def _dump_metadata(metadata: Mapping[str, Any]) -> str:
    return json.dumps(dict(metadata), default=str)


def _promoted_text(metadata: Mapping[str, Any]) -> str:
    value = metadata.get("text")
    return "" if value is None else str(value)


class AzureAISearchVectorStore(VectorStoreBase):
    """
    Vector store backed by an Azure AI Search service.

    One instance per credential. The index client is shared by all
    lifecycle calls; document calls go through a per-index SearchClient
    from this instance's own cache.

    `index_client` and `search_client_factory` are injectable so tests can
    substitute an in-memory backend.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        store_id: str = "azure-ai-search",
        index_client: Any | None = None,
        search_client_factory: ClientFactory | None = None,
    ) -> None:
        self.id = store_id
        self._endpoint   = endpoint
        self._credential = AzureKeyCredential(api_key)
        self._index_client = index_client or SearchIndexClient(endpoint, self._credential)
        self._handles = SearchClientCache(search_client_factory or self._new_search_client)
        # evicted clients may still be in use by in-flight calls; closed in close()
        self._retired: list[Any] = []

    def _new_search_client(self, index_name: str) -> SearchClient:
        return SearchClient(self._endpoint, index_name, self._credential)

    def _client(self, index_name: str) -> Any:
        return self._handles.get(index_name).client

    def _evict(self, index_name: str) -> None:
        handle = self._handles.invalidate(index_name)
        if handle is not None:
            self._retired.append(handle.client)

    async def _dimension(self, index_name: str) -> int:
        """Vector dimension of the index, read once per cached handle."""
        handle = self._handles.get(index_name)
        if handle.dimension is None:
            try:
                index = await self._index_client.get_index(index_name)
            except ResourceNotFoundError as exc:
                raise IndexNotFoundError(index_name) from exc
            dimension, _ = from_backend_schema(index)
            if dimension <= 0:
                raise SchemaMismatchError(
                    f"Index '{index_name}' has no '{VECTOR_FIELD}' field with a dimension"
                )
            handle.dimension = dimension
        return handle.dimension

    @staticmethod
    def _check_dimensions(index_name: str, vectors: Sequence[Sequence[float]], dimension: int) -> None:
        bad = [i for i, v in enumerate(vectors) if len(v) != dimension]
        if bad:
            raise SchemaMismatchError(
                f"{len(bad)} vector(s) do not match index '{index_name}' dimension "
                f"{dimension} (positions {bad[:20]})",
                positions=bad,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        clients = self._retired + [h.client for h in self._handles.drain()]
        self._retired = []
        for client in clients:
            await client.close()
        await self._index_client.close()

    async def __aenter__(self) -> "AzureAISearchVectorStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Index operations
    # ------------------------------------------------------------------

    async def create_index(self, spec: IndexSpec) -> None:
        await self._index_client.create_or_update_index(to_backend_schema(spec))
        # Schema may have changed; the next call rebuilds the handle
        self._evict(spec.name)
        logger.info(
            "AzureSearch create_index | index=%s dimension=%d metric=%s",
            spec.name, spec.dimension, spec.metric.value,
        )

    async def list_indexes(self) -> list[str]:
        names: list[str] = []
        async for name in self._index_client.list_index_names():
            names.append(name)
        return names

    async def describe_index(self, index_name: str) -> IndexStats:
        try:
            index = await self._index_client.get_index(index_name)
        except ResourceNotFoundError as exc:
            raise IndexNotFoundError(index_name) from exc

        dimension, metric = from_backend_schema(index)
        handle = self._handles.get(index_name)
        handle.dimension = dimension or None
        count = await handle.client.get_document_count()

        return IndexStats(dimension=dimension, count=count, metric=metric)

    async def delete_index(self, index_name: str) -> None:
        try:
            await self._index_client.delete_index(index_name)
        except ResourceNotFoundError as exc:
            raise IndexNotFoundError(index_name) from exc
        finally:
            self._evict(index_name)
        logger.info("AzureSearch delete_index | index=%s", index_name)

    # ------------------------------------------------------------------
    # Vector operations
    # ------------------------------------------------------------------

    async def upsert(
        self,
        index_name: str,
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[Mapping[str, Any] | None] | None = None,
        ids: Sequence[str | None] | None = None,
        delete_filter: SearchFilter | None = None,
    ) -> list[str]:
        """
        Upload records in sequential batches of 1000 and return their ids in
        input order. Missing ids are generated (uuid4). On a mid-run failure
        the BatchFailureError carries the ids already committed.
        """
        metadata = list(metadata or [])
        ids = list(ids or [])
        if len(metadata) > len(vectors) or len(ids) > len(vectors):
            raise InvalidArgumentError(
                f"Got {len(vectors)} vectors but {len(metadata)} metadata entries "
                f"and {len(ids)} ids"
            )
        if any(i == "" for i in ids):
            raise InvalidArgumentError("Record ids must be non-empty strings")

        if not vectors and not delete_filter:
            return []

        records = [
            VectorRecord(
                id=ids[i] if i < len(ids) and ids[i] is not None else str(uuid.uuid4()),
                vector=list(vector),
                metadata=dict(metadata[i] or {}) if i < len(metadata) else {},
            )
            for i, vector in enumerate(vectors)
        ]

        # Validate everything before the first mutation
        dimension = await self._dimension(index_name)
        self._check_dimensions(index_name, [r.vector for r in records], dimension)

        if delete_filter:
            await self.delete_vectors(index_name, filter=delete_filter)

        if not records:
            return []

        documents = [
            {
                ID_FIELD:       r.id,
                VECTOR_FIELD:   r.vector,
                METADATA_FIELD: _dump_metadata(r.metadata),
                TEXT_FIELD:     r.text,
            }
            for r in records
        ]

        client = self._client(index_name)
        uploaded = await send_in_batches(
            lambda batch: client.upload_documents(documents=batch),
            documents,
            operation="upload",
            index_name=index_name,
        )
        logger.info("AzureSearch upsert | index=%s count=%d", index_name, len(uploaded))
        return uploaded

    async def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        filter: SearchFilter | None = None,
        include_vector: bool = False,
    ) -> list[QueryResult]:
        if top_k <= 0:
            raise InvalidArgumentError(f"top_k must be positive, got {top_k}")

        handle = self._handles.get(index_name)
        if handle.dimension is not None:
            self._check_dimensions(index_name, [query_vector], handle.dimension)

        select = [ID_FIELD, METADATA_FIELD, TEXT_FIELD]
        if include_vector:
            select.append(VECTOR_FIELD)

        matches: list[QueryResult] = []
        try:
            results = await handle.client.search(
                search_text=None,
                vector_queries=[knn_query(list(query_vector), top_k)],
                filter=filter,
                top=top_k,
                select=select,
            )
            async for doc in results:
                record_id = doc[ID_FIELD]
                meta = _load_metadata(doc.get(METADATA_FIELD), record_id)
                if doc.get(TEXT_FIELD):
                    meta["text"] = doc[TEXT_FIELD]
                matches.append(QueryResult(
                    id=record_id,
                    score=doc.get(SCORE_FIELD) or 0.0,
                    metadata=meta,
                    vector=list(doc.get(VECTOR_FIELD) or []) if include_vector else None,
                ))
        except ResourceNotFoundError as exc:
            raise IndexNotFoundError(index_name) from exc

        logger.debug(
            "AzureSearch query | index=%s top_k=%d filtered=%s results=%d",
            index_name, top_k, filter is not None, len(matches),
        )
        return matches

    async def update_vector(
        self,
        index_name: str,
        update: VectorUpdate,
        *,
        id: str | None = None,
        filter: SearchFilter | None = None,
    ) -> None:
        target = resolve_target(id=id, filter=filter)

        fields: dict[str, Any] = {}
        if update.vector is not None:
            dimension = await self._dimension(index_name)
            self._check_dimensions(index_name, [update.vector], dimension)
            fields[VECTOR_FIELD] = list(update.vector)
        if update.metadata is not None:
            fields[METADATA_FIELD] = _dump_metadata(update.metadata)
            fields[TEXT_FIELD] = _promoted_text(update.metadata)

        client = self._client(index_name)

        if isinstance(target, ById):
            try:
                results = await client.merge_documents(documents=[{ID_FIELD: target.id, **fields}])
            except ResourceNotFoundError as exc:
                raise IndexNotFoundError(index_name) from exc
            for r in results:
                if r.succeeded:
                    continue
                if r.status_code == 404:
                    raise RecordNotFoundError(index_name, target.id)
                raise VectorStoreError(
                    f"Update of '{target.id}' on index '{index_name}' rejected: "
                    f"{r.error_message or r.status_code}"
                )
            logger.debug("AzureSearch update | index=%s id=%s", index_name, target.id)
            return

        dimension = await self._dimension(index_name)
        await merge_by_filter(client, target.filter, fields, dimension, index_name=index_name)

    async def delete_vector(self, index_name: str, id: str) -> None:
        if not id:
            raise InvalidArgumentError("id must be a non-empty string")
        try:
            results = await self._client(index_name).delete_documents(documents=[{ID_FIELD: id}])
        except ResourceNotFoundError as exc:
            raise IndexNotFoundError(index_name) from exc
        for r in results:
            if not r.succeeded:
                raise VectorStoreError(
                    f"Delete of '{id}' on index '{index_name}' rejected: "
                    f"{r.error_message or r.status_code}"
                )
        logger.info("AzureSearch delete | index=%s id=%s", index_name, id)

    async def delete_vectors(
        self,
        index_name: str,
        *,
        ids: Sequence[str] | None = None,
        filter: SearchFilter | None = None,
    ) -> None:
        target = resolve_target(ids=ids, filter=filter)
        client = self._client(index_name)

        if isinstance(target, ByIds):
            if not target.ids:
                return
            try:
                deleted = await send_in_batches(
                    lambda batch: client.delete_documents(documents=batch),
                    [{ID_FIELD: record_id} for record_id in target.ids],
                    operation="delete",
                    index_name=index_name,
                )
            except ResourceNotFoundError as exc:
                raise IndexNotFoundError(index_name) from exc
            logger.info("AzureSearch delete | index=%s count=%d", index_name, len(deleted))
            return

        dimension = await self._dimension(index_name)
        await delete_by_filter(client, target.filter, dimension, index_name=index_name)
