"""
Processed Document — normalised output of a layout analysis job

  ProcessedDocument
    content   full document text as reported by the analyser
    pages     one PageContent per page, ascending page_number (1-based)
    tables    TableContent list, or None when no table was found
    metadata  page count, model id, completion timestamp

Built once per analysis job and never mutated afterwards (frozen).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class PageContent:
    page_number: int
    content:     str
    width:       float | None = None
    height:      float | None = None


@dataclass(frozen=True)
class TableContent:
    """
    cells is always a full row_count × column_count grid; positions the
    analyser did not report hold "".
    """
    row_count:    int
    column_count: int
    cells:        tuple[tuple[str, ...], ...]
    page_number:  int | None = None

    def rows(self) -> list[list[str]]:
        return [list(row) for row in self.cells]


@dataclass(frozen=True)
class DocumentMetadata:
    page_count:   int
    model_id:     str
    processed_at: datetime


@dataclass(frozen=True)
class ProcessedDocument:
    content:  str
    pages:    tuple[PageContent, ...]
    metadata: DocumentMetadata
    tables:   tuple[TableContent, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["metadata"]["processed_at"] = self.metadata.processed_at.isoformat()
        return data
