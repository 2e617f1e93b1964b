"""
Layout Result Parser — raw analyze result → ProcessedDocument

Pure transformation, no I/O. Input is the REST-shaped analyze result
(camelCase keys), either a plain dict or an SDK model's `as_dict()`:

  {
    "content": "...",
    "pages":  [{"pageNumber": 1, "width": 8.5, "height": 11,
                "lines": [{"content": "..."}, ...]}, ...],
    "tables": [{"rowCount": 2, "columnCount": 3,
                "cells": [{"rowIndex": 0, "columnIndex": 1, "content": "..."}],
                "boundingRegions": [{"pageNumber": 1, ...}]}, ...]
  }

Malformed input never raises: missing or wrongly-typed values fall back to
empty/default fields, and table cells outside the declared grid are dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ragsearch.processing.documents import (
    DocumentMetadata,
    PageContent,
    ProcessedDocument,
    TableContent,
)

logger = logging.getLogger(__name__)


def _int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _mappings(value: Any) -> list[Mapping[str, Any]]:
    """Keep only the mapping entries of a list-like value."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def parse_page(page: Mapping[str, Any], position: int) -> PageContent:
    """Lines joined by newline; `position` (1-based) stands in for a missing page number."""
    number = _int(page.get("pageNumber"))
    lines = _mappings(page.get("lines"))
    return PageContent(
        page_number=number if number is not None and number >= 1 else position,
        content="\n".join(_str(line.get("content")) for line in lines),
        width=_float(page.get("width")),
        height=_float(page.get("height")),
    )


def parse_table(table: Mapping[str, Any]) -> TableContent:
    rows = max(_int(table.get("rowCount")) or 0, 0)
    cols = max(_int(table.get("columnCount")) or 0, 0)

    grid = [[""] * cols for _ in range(rows)]
    dropped = 0
    for cell in _mappings(table.get("cells")):
        r = _int(cell.get("rowIndex"))
        c = _int(cell.get("columnIndex"))
        if r is None or c is None or not (0 <= r < rows and 0 <= c < cols):
            dropped += 1
            continue
        grid[r][c] = _str(cell.get("content"))

    if dropped:
        logger.debug("Layout parser dropped out-of-bounds cells | table=%dx%d dropped=%d", rows, cols, dropped)

    regions = _mappings(table.get("boundingRegions"))
    return TableContent(
        row_count=rows,
        column_count=cols,
        cells=tuple(tuple(row) for row in grid),
        page_number=_int(regions[0].get("pageNumber")) if regions else None,
    )


def parse_analyze_result(raw: Mapping[str, Any] | None, model_id: str) -> ProcessedDocument:
    """Convert one analyze result into a ProcessedDocument."""
    raw = raw if isinstance(raw, Mapping) else {}

    pages = [parse_page(p, position) for position, p in enumerate(_mappings(raw.get("pages")), start=1)]
    pages.sort(key=lambda p: p.page_number)   # stable: ties keep analyser order

    tables = [parse_table(t) for t in _mappings(raw.get("tables"))]

    return ProcessedDocument(
        content=_str(raw.get("content")),
        pages=tuple(pages),
        tables=tuple(tables) if tables else None,
        metadata=DocumentMetadata(
            page_count=len(pages),
            model_id=model_id,
            processed_at=datetime.now(timezone.utc),
        ),
    )
