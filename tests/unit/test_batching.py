"""
Unit Tests — Batch Uploader
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from azure.core.exceptions import ServiceRequestError

from ragsearch.vectorstore.batching import BATCH_SIZE, send_in_batches, split_batches
from ragsearch.vectorstore.errors import BatchFailureError


def _docs(n: int) -> list[dict]:
    return [{"id": f"doc-{i}"} for i in range(n)]


def _accept_all(batch):
    return [SimpleNamespace(key=d["id"], succeeded=True, status_code=200, error_message=None) for d in batch]


@pytest.mark.unit
@pytest.mark.vectorstore
class TestSplitBatches:

    def test_exact_multiple(self):
        assert [len(b) for b in split_batches(list(range(2000)))] == [1000, 1000]

    def test_remainder_batch(self):
        assert [len(b) for b in split_batches(list(range(1001)))] == [1000, 1]

    def test_empty(self):
        assert split_batches([]) == []

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            split_batches([1, 2], batch_size=0)


@pytest.mark.unit
@pytest.mark.vectorstore
class TestSendInBatches:

    async def test_sequential_batches_in_input_order(self):
        send = AsyncMock(side_effect=_accept_all)
        docs = _docs(BATCH_SIZE + 1)

        confirmed = await send_in_batches(send, docs)

        assert send.await_count == 2
        assert len(send.await_args_list[0].args[0]) == 1000
        assert len(send.await_args_list[1].args[0]) == 1
        assert confirmed == [d["id"] for d in docs]

    async def test_no_documents_no_calls(self):
        send = AsyncMock(side_effect=_accept_all)
        assert await send_in_batches(send, []) == []
        send.assert_not_awaited()

    async def test_first_batch_error_propagates_unchanged(self):
        send = AsyncMock(side_effect=ServiceRequestError("unreachable"))
        with pytest.raises(ServiceRequestError):
            await send_in_batches(send, _docs(3))

    async def test_later_batch_error_carries_confirmed_ids(self):
        calls = {"n": 0}

        async def send(batch):
            calls["n"] += 1
            if calls["n"] == 2:
                raise ServiceRequestError("connection reset")
            return _accept_all(batch)

        docs = _docs(25)
        with pytest.raises(BatchFailureError) as info:
            await send_in_batches(send, docs, batch_size=10, index_name="docs")

        err = info.value
        assert err.batches_confirmed == 1
        assert err.confirmed_ids == [d["id"] for d in docs[:10]]
        assert isinstance(err.__cause__, ServiceRequestError)
        assert calls["n"] == 2   # third batch never sent

    async def test_rejected_records_fail_batch(self):
        async def send(batch):
            return [
                SimpleNamespace(
                    key=d["id"],
                    succeeded=d["id"] != "doc-1",
                    status_code=400 if d["id"] == "doc-1" else 200,
                    error_message="bad vector" if d["id"] == "doc-1" else None,
                )
                for d in batch
            ]

        with pytest.raises(BatchFailureError) as info:
            await send_in_batches(send, _docs(3))

        assert info.value.failures == {"doc-1": "bad vector"}
        assert info.value.confirmed_ids == ["doc-0", "doc-2"]
        assert info.value.batches_confirmed == 0

    async def test_cancellation_is_not_wrapped(self):
        async def send(batch):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await send_in_batches(send, _docs(2))
