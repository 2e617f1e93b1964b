"""
Azure Document Intelligence — layout extraction

Submits an analyze job (URL or raw bytes), polls the long-running
operation until it completes, and hands the result to the pure
layout parser.

Supports PDFs, images, Office documents and more through the prebuilt
layout model by default; any other model id can be passed in.

Failure surface:
  - rejected at submission  → DocumentAnalysisError("Failed to analyze document: ...")
  - failed while polling    → DocumentAnalysisError("Document analysis failed: ...")
  - transport errors (ServiceRequestError) propagate unchanged
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

from azure.ai.documentintelligence.aio import DocumentIntelligenceClient
from azure.ai.documentintelligence.models import AnalyzeDocumentRequest, DocumentContentFormat
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import HttpResponseError

from ragsearch.processing.documents import ProcessedDocument
from ragsearch.processing.layout_parser import parse_analyze_result

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "prebuilt-layout"


class DocumentAnalysisError(RuntimeError):
    """The analysis service rejected or failed the job."""


def _error_message(exc: HttpResponseError) -> str:
    error = getattr(exc, "error", None)
    return getattr(error, "message", None) or exc.message or "Unknown error"


class AzureDocumentProcessor:
    """
    Thin async wrapper around DocumentIntelligenceClient.

    Usage:
        async with AzureDocumentProcessor(endpoint, key) as processor:
            doc = await processor.process_url("https://example.com/report.pdf")
            doc.content, doc.pages, doc.tables
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model_id: str = DEFAULT_MODEL_ID,
        *,
        client: Any | None = None,
    ) -> None:
        self.model_id = model_id
        self._client = client or DocumentIntelligenceClient(endpoint, AzureKeyCredential(api_key))

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> "AzureDocumentProcessor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def process_url(self, url: str) -> ProcessedDocument:
        """Analyze a document the service can fetch itself."""
        return await self._analyze(AnalyzeDocumentRequest(url_source=url), source=url)

    async def process_document(
        self,
        data: bytes,
        content_type: str = "application/pdf",
    ) -> ProcessedDocument:
        """Analyze a document supplied as raw bytes."""
        return await self._analyze(
            AnalyzeDocumentRequest(bytes_source=bytes(data)),
            source=f"<{len(data)} bytes {content_type}>",
        )

    async def process_base64(
        self,
        data: str,
        content_type: str = "application/pdf",
    ) -> ProcessedDocument:
        return await self.process_document(base64.b64decode(data), content_type)

    async def _analyze(self, request: AnalyzeDocumentRequest, source: str) -> ProcessedDocument:
        t0 = time.monotonic()

        try:
            poller = await self._client.begin_analyze_document(
                self.model_id,
                request,
                output_content_format=DocumentContentFormat.TEXT,
            )
        except HttpResponseError as exc:
            raise DocumentAnalysisError(f"Failed to analyze document: {_error_message(exc)}") from exc

        try:
            result = await poller.result()
        except HttpResponseError as exc:
            raise DocumentAnalysisError(f"Document analysis failed: {_error_message(exc)}") from exc

        raw = result.as_dict() if hasattr(result, "as_dict") else result
        document = parse_analyze_result(raw, self.model_id)

        logger.info(
            "DocumentIntelligence | source=%s model=%s pages=%d tables=%d elapsed_ms=%.0f",
            source, self.model_id, document.metadata.page_count,
            len(document.tables or ()), (time.monotonic() - t0) * 1000,
        )
        return document
