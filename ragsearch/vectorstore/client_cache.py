"""
Per-index SearchClient cache

One SearchClient per index name, built lazily on first use and reused for
every later call on that index. Owned by a single store instance, so two
stores pointed at different credentials never share handles.

Entries never expire on their own; they are dropped only by invalidate(),
which the store calls on create_index / delete_index. The index dimension
read from the backend schema is cached on the same entry, so it is
dropped together with the handle.

Safe for concurrent get / invalidate from multiple threads.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

# index_name -> SearchClient
ClientFactory = Callable[[str], Any]


@dataclass
class IndexHandle:
    client:    Any
    dimension: int | None = None


class SearchClientCache:

    def __init__(self, factory: ClientFactory) -> None:
        self._factory = factory
        self._handles: dict[str, IndexHandle] = {}
        self._lock = threading.Lock()

    def get(self, index_name: str) -> IndexHandle:
        with self._lock:
            handle = self._handles.get(index_name)
            if handle is None:
                handle = IndexHandle(client=self._factory(index_name))
                self._handles[index_name] = handle
            return handle

    def invalidate(self, index_name: str) -> IndexHandle | None:
        """Drop the entry for `index_name`; returns it so the caller can close it."""
        with self._lock:
            return self._handles.pop(index_name, None)

    def drain(self) -> list[IndexHandle]:
        """Remove and return every entry."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
            return handles

    def __contains__(self, index_name: str) -> bool:
        with self._lock:
            return index_name in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
