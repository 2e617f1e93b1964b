"""
Vector Store — Abstract Base

Every concrete vector store backend implements this interface. The
ingestion and retrieval code only speaks this protocol, so backends are
swappable without changing RAG or API code.

Contract summary:
  - Index lifecycle : create_index / list_indexes / describe_index / delete_index
  - Vector CRUD     : upsert / query / update_vector / delete_vector / delete_vectors
  - Filters are opaque backend-native predicates (Azure: an OData string);
    the store forwards them and never interprets them.
  - update_vector / delete_vectors address records EITHER by id OR by
    filter, never both, never neither (see resolve_target).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence, Union

from ragsearch.vectorstore.errors import InvalidArgumentError, SchemaMismatchError

# Backend-native predicate, e.g. "search.in(id, 'a,b,c')"
SearchFilter = str


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

class DistanceMetric(str, Enum):
    COSINE      = "cosine"
    EUCLIDEAN   = "euclidean"
    DOT_PRODUCT = "dotproduct"


@dataclass(frozen=True)
class IndexSpec:
    """What the caller wants the index to look like."""
    name:      str
    dimension: int
    metric:    DistanceMetric = DistanceMetric.COSINE

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise InvalidArgumentError("Index name must be a non-empty string")
        if isinstance(self.dimension, bool) or not isinstance(self.dimension, int) or self.dimension <= 0:
            raise InvalidArgumentError(
                f"Index dimension must be a positive integer, got {self.dimension!r}"
            )
        try:
            metric = DistanceMetric(self.metric)
        except ValueError:
            raise SchemaMismatchError(
                f"Unrecognised distance metric {self.metric!r}; "
                f"expected one of {[m.value for m in DistanceMetric]}"
            ) from None
        object.__setattr__(self, "metric", metric)


@dataclass
class VectorRecord:
    """A single embedding record to upsert into the vector store."""
    id:       str
    vector:   list[float]
    metadata: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Plain text promoted out of metadata for full-text search."""
        value = self.metadata.get("text")
        return "" if value is None else str(value)


@dataclass
class QueryResult:
    """One result returned from a similarity search."""
    id:       str
    score:    float                     # backend-defined scale, higher = more similar
    metadata: dict
    vector:   list[float] | None = None  # only populated when include_vector=True


@dataclass(frozen=True)
class IndexStats:
    dimension: int
    count:     int
    metric:    DistanceMetric


@dataclass(frozen=True)
class VectorUpdate:
    """
    Field delta applied by update_vector.
    Both parts are full replacements: `metadata` replaces the stored
    metadata mapping (and the promoted text field) wholesale.
    """
    vector:   list[float] | None = None
    metadata: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.vector is None and self.metadata is None:
            raise InvalidArgumentError("Update must carry a vector, metadata, or both")


# ---------------------------------------------------------------------------
# Id-or-filter addressing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ById:
    id: str


@dataclass(frozen=True)
class ByIds:
    ids: tuple[str, ...]


@dataclass(frozen=True)
class ByFilter:
    filter: SearchFilter


MutationTarget = Union[ById, ByIds, ByFilter]


def resolve_target(
    *,
    id: str | None = None,
    ids: Sequence[str] | None = None,
    filter: SearchFilter | None = None,
) -> MutationTarget:
    """
    Turn the mutually-exclusive keyword arguments of update/delete calls
    into exactly one addressing mode. Supplying none, or more than one,
    is an InvalidArgumentError.
    """
    supplied = [name for name, value in (("id", id), ("ids", ids), ("filter", filter)) if value is not None]
    if len(supplied) != 1:
        raise InvalidArgumentError(
            f"Exactly one of id/ids/filter must be supplied, got {supplied or 'none'}"
        )
    if id is not None:
        if not id:
            raise InvalidArgumentError("id must be a non-empty string")
        return ById(id)
    if ids is not None:
        return ByIds(tuple(ids))
    if not filter:
        raise InvalidArgumentError("filter must be a non-empty predicate")
    return ByFilter(filter)


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class VectorStoreBase(ABC):
    """
    Index-lifecycle and vector-CRUD interface.
    Every method is a network round trip; none of them retry.
    """

    @abstractmethod
    async def create_index(self, spec: IndexSpec) -> None:
        """Create or replace an index. Re-creation overwrites the schema."""

    @abstractmethod
    async def list_indexes(self) -> list[str]:
        """Names of every index visible to the credential."""

    @abstractmethod
    async def describe_index(self, index_name: str) -> IndexStats:
        """Live dimension / document count / metric. Raises IndexNotFoundError."""

    @abstractmethod
    async def delete_index(self, index_name: str) -> None:
        """Drop an index. Raises IndexNotFoundError if it does not exist."""

    @abstractmethod
    async def upsert(
        self,
        index_name: str,
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[Mapping[str, Any] | None] | None = None,
        ids: Sequence[str | None] | None = None,
        delete_filter: SearchFilter | None = None,
    ) -> list[str]:
        """
        Insert or overwrite records; returns their ids in input order.
        With `delete_filter`, records matching it are deleted first
        (two backend calls, NOT atomic).
        """

    @abstractmethod
    async def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        filter: SearchFilter | None = None,
        include_vector: bool = False,
    ) -> list[QueryResult]:
        """Nearest-neighbour search, optionally narrowed by a filter."""

    @abstractmethod
    async def update_vector(
        self,
        index_name: str,
        update: VectorUpdate,
        *,
        id: str | None = None,
        filter: SearchFilter | None = None,
    ) -> None:
        """Merge `update` into one record (by id) or every match (by filter)."""

    @abstractmethod
    async def delete_vector(self, index_name: str, id: str) -> None:
        """Delete a single record."""

    @abstractmethod
    async def delete_vectors(
        self,
        index_name: str,
        *,
        ids: Sequence[str] | None = None,
        filter: SearchFilter | None = None,
    ) -> None:
        """Delete records by explicit id list or by filter."""
