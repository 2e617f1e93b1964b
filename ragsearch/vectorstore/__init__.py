from ragsearch.vectorstore.base import (
    DistanceMetric,
    IndexSpec,
    IndexStats,
    QueryResult,
    VectorRecord,
    VectorStoreBase,
    VectorUpdate,
)
from ragsearch.vectorstore.errors import (
    BatchFailureError,
    IndexNotFoundError,
    InvalidArgumentError,
    RecordNotFoundError,
    SchemaMismatchError,
    VectorStoreError,
)
from ragsearch.vectorstore.factory import get_vector_store

__all__ = [
    "VectorStoreBase",
    "VectorRecord",
    "QueryResult",
    "IndexSpec",
    "IndexStats",
    "DistanceMetric",
    "VectorUpdate",
    "VectorStoreError",
    "InvalidArgumentError",
    "IndexNotFoundError",
    "RecordNotFoundError",
    "SchemaMismatchError",
    "BatchFailureError",
    "get_vector_store",
]
