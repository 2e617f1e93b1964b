"""
Filter-Driven Mutator — "mutate by predicate" on top of "mutate by id"

Azure AI Search has no filtered bulk update/delete. A filtered mutation is
therefore a two-step protocol:

  1. resolve_filter_ids(): run a vector query with the filter, a zero
     (neutral) query vector of the index dimension and k = 10,000; collect
     the ids of every hit.
  2. Apply the mutation (merge fields, or delete) to exactly that id set,
     in sequential batches of 1000.

Scale limit: at most FILTER_QUERY_LIMIT records are resolved. Matches
beyond the cap are silently left untouched: a known bound, not an error.

Zero matches short-circuit: the mutation endpoint is never contacted.
"""

from __future__ import annotations

import logging
from typing import Any

from azure.search.documents.models import VectorizedQuery

from ragsearch.vectorstore.base import SearchFilter
from ragsearch.vectorstore.batching import send_in_batches
from ragsearch.vectorstore.schema import ID_FIELD, VECTOR_FIELD

logger = logging.getLogger(__name__)

FILTER_QUERY_LIMIT = 10_000


def knn_query(vector: list[float], k: int) -> VectorizedQuery:
    """Nearest-neighbour clause over the index's vector field."""
    return VectorizedQuery(vector=vector, k_nearest_neighbors=k, fields=VECTOR_FIELD)


async def resolve_filter_ids(
    client: Any,
    filter: SearchFilter,
    dimension: int,
    *,
    limit: int = FILTER_QUERY_LIMIT,
    index_name: str = "",
) -> list[str]:
    """Ids of the records matching `filter`, capped at `limit`."""
    results = await client.search(
        search_text=None,
        vector_queries=[knn_query([0.0] * dimension, limit)],
        filter=filter,
        top=limit,
        select=[ID_FIELD],
    )
    ids = [doc[ID_FIELD] async for doc in results]

    if len(ids) >= limit:
        logger.warning(
            "Filter resolution hit cap | index=%s limit=%d; matches beyond the cap are skipped",
            index_name, limit,
        )
    logger.debug("Filter resolved | index=%s matches=%d", index_name, len(ids))
    return ids


async def merge_by_filter(
    client: Any,
    filter: SearchFilter,
    fields: dict,
    dimension: int,
    *,
    index_name: str = "",
) -> list[str]:
    """Merge `fields` into every record matching `filter`. Returns merged ids."""
    ids = await resolve_filter_ids(client, filter, dimension, index_name=index_name)
    if not ids:
        return []

    documents = [{ID_FIELD: record_id, **fields} for record_id in ids]
    merged = await send_in_batches(
        lambda batch: client.merge_documents(documents=batch),
        documents,
        operation="merge",
        index_name=index_name,
    )
    logger.info("Merge by filter | index=%s count=%d", index_name, len(merged))
    return merged


async def delete_by_filter(
    client: Any,
    filter: SearchFilter,
    dimension: int,
    *,
    index_name: str = "",
) -> list[str]:
    """Delete every record matching `filter`. Returns deleted ids."""
    ids = await resolve_filter_ids(client, filter, dimension, index_name=index_name)
    if not ids:
        return []

    deleted = await send_in_batches(
        lambda batch: client.delete_documents(documents=batch),
        [{ID_FIELD: record_id} for record_id in ids],
        operation="delete",
        index_name=index_name,
    )
    logger.info("Delete by filter | index=%s count=%d", index_name, len(deleted))
    return deleted
