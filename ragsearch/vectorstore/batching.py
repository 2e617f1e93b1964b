"""
Batch Uploader — sequential fixed-size batches against the search backend

Azure AI Search accepts at most 1000 actions per indexing request, so every
multi-record write (upload, merge, delete) is split into batches of
BATCH_SIZE and sent ONE AT A TIME, in input order.

Failure semantics:
  - Batches before the failing one are committed; their ids are returned
    on the raised BatchFailureError (`confirmed_ids`).
  - Records the backend rejected inside a batch (IndexingResult.succeeded
    False) fail that batch; accepted siblings are still counted confirmed.
  - An exception on the very first batch, before anything was committed,
    propagates unchanged.
  - Cancellation mid-run is not rolled back; already-sent batches stay.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from ragsearch.vectorstore.errors import BatchFailureError
from ragsearch.vectorstore.schema import ID_FIELD

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000

# async (documents) -> list[IndexingResult]
SendBatch = Callable[[list[dict]], Awaitable[Sequence[Any]]]


def split_batches(items: Sequence[Any], batch_size: int = BATCH_SIZE) -> list[list[Any]]:
    """Split `items` into consecutive lists of at most `batch_size`."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


def _rejected(results: Sequence[Any]) -> dict[str, str]:
    """{key: reason} for every IndexingResult the backend did not accept."""
    failures: dict[str, str] = {}
    for r in results:
        if not r.succeeded:
            reason = r.error_message or f"status {r.status_code}"
            failures[str(r.key)] = reason
    return failures


async def send_in_batches(
    send: SendBatch,
    documents: Sequence[dict],
    *,
    batch_size: int = BATCH_SIZE,
    operation: str = "upload",
    index_name: str = "",
) -> list[str]:
    """
    Send `documents` through `send` in sequential batches.
    Returns the ids of every confirmed document, in input order.
    """
    batches = split_batches(documents, batch_size)
    confirmed: list[str] = []

    for batch_no, batch in enumerate(batches):
        try:
            results = await send(batch)
        except asyncio.CancelledError:
            logger.warning(
                "Batch %s cancelled | index=%s batch=%d/%d committed=%d",
                operation, index_name, batch_no + 1, len(batches), len(confirmed),
            )
            raise
        except Exception as exc:
            if not confirmed:
                raise
            raise BatchFailureError(
                f"{operation} batch {batch_no + 1}/{len(batches)} failed on index "
                f"'{index_name}' after {len(confirmed)} records were committed: {exc}",
                confirmed_ids=confirmed,
                batches_confirmed=batch_no,
            ) from exc

        failures = _rejected(results)
        confirmed.extend(doc[ID_FIELD] for doc in batch if doc[ID_FIELD] not in failures)

        if failures:
            logger.error(
                "Batch %s rejected records | index=%s batch=%d/%d rejected=%d",
                operation, index_name, batch_no + 1, len(batches), len(failures),
            )
            raise BatchFailureError(
                f"{operation} batch {batch_no + 1}/{len(batches)} on index '{index_name}' "
                f"rejected {len(failures)} record(s)",
                confirmed_ids=confirmed,
                batches_confirmed=batch_no,
                failures=failures,
            )

        logger.debug(
            "Batch %s | index=%s batch=%d/%d size=%d total=%d",
            operation, index_name, batch_no + 1, len(batches), len(batch), len(confirmed),
        )

    return confirmed
