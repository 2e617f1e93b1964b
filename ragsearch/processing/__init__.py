"""
Document Processing Package
════════════════════════════

  Analyze (Document Intelligence) → Parse (pure) → ProcessedDocument

Modules
───────
  document_intelligence.py  submit-and-poll analysis jobs (URL / bytes / base64)
  layout_parser.py          raw analyze result → pages + bounds-checked table grids
  documents.py              ProcessedDocument / PageContent / TableContent
"""

from ragsearch.processing.documents import (
    DocumentMetadata,
    PageContent,
    ProcessedDocument,
    TableContent,
)
from ragsearch.processing.layout_parser import parse_analyze_result

__all__ = [
    "DocumentMetadata",
    "PageContent",
    "ProcessedDocument",
    "TableContent",
    "parse_analyze_result",
]
