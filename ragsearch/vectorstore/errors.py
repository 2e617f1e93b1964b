"""
Vector Store — Error Taxonomy

  VectorStoreError
  ├── InvalidArgumentError   bad call shape, raised before any network call
  ├── IndexNotFoundError     describe/delete on an index that does not exist
  ├── RecordNotFoundError    update-by-id on a record that does not exist
  ├── SchemaMismatchError    vector length != index dimension, unknown metric
  └── BatchFailureError      a batch in a multi-batch upload/delete failed

Transport failures (azure.core.exceptions.ServiceRequestError and friends)
are NOT wrapped; they propagate unchanged to the caller.
"""

from __future__ import annotations

from typing import Sequence


class VectorStoreError(Exception):
    """Base class for every error raised by the vector store layer."""


class InvalidArgumentError(VectorStoreError, ValueError):
    """The call itself is malformed (e.g. both `id` and `filter` supplied)."""


class IndexNotFoundError(VectorStoreError, LookupError):
    def __init__(self, index_name: str) -> None:
        super().__init__(f"Index '{index_name}' does not exist")
        self.index_name = index_name


class RecordNotFoundError(VectorStoreError, LookupError):
    def __init__(self, index_name: str, record_id: str) -> None:
        super().__init__(f"Record '{record_id}' does not exist in index '{index_name}'")
        self.index_name = index_name
        self.record_id  = record_id


class SchemaMismatchError(VectorStoreError, ValueError):
    """
    Raised when records do not fit the index schema.

    positions : input positions of the offending records (empty when the
                mismatch is not record-specific, e.g. an unknown metric)
    """

    def __init__(self, message: str, positions: Sequence[int] = ()) -> None:
        super().__init__(message)
        self.positions = list(positions)


class BatchFailureError(VectorStoreError):
    """
    A batch within a multi-batch operation failed; remaining batches were
    not sent.

    confirmed_ids     : ids the backend acknowledged before the failure,
                        in input order; these are committed
    batches_confirmed : number of batches that fully succeeded
    failures          : {key: error message} for records rejected in the
                        failing batch (empty if the whole call raised)
    """

    def __init__(
        self,
        message: str,
        confirmed_ids: Sequence[str],
        batches_confirmed: int,
        failures: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.confirmed_ids     = list(confirmed_ids)
        self.batches_confirmed = batches_confirmed
        self.failures          = dict(failures or {})
