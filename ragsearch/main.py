"""
FastAPI Application — Entry Point

Thin HTTP surface over the knowledge base:
  - /api/v1/documents/ingest and /api/v1/search (see api/v1/knowledge.py)
  - /health liveness probe
  - Structured JSON error bodies: {"error_code": ..., "message": ...}

Vector store errors map to HTTP status:
  IndexNotFoundError / RecordNotFoundError      → 404
  InvalidArgumentError / SchemaMismatchError    → 400
  DocumentAnalysisError                         → 502
  BatchFailureError                             → 502 (body carries confirmed_ids)
  request validation                            → 422
  anything else                                 → 500 INTERNAL_ERROR
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ragsearch.api.v1.knowledge import close_knowledge_base, router as knowledge_router
from ragsearch.core.config import settings
from ragsearch.processing.document_intelligence import DocumentAnalysisError
from ragsearch.vectorstore.errors import (
    BatchFailureError,
    IndexNotFoundError,
    InvalidArgumentError,
    RecordNotFoundError,
    SchemaMismatchError,
)

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting ragsearch | env=%s search_endpoint=%s",
        settings.app_env, settings.azure_search_endpoint or "-",
    )
    yield
    logger.info("Shutting down ragsearch")
    await close_knowledge_base()


def _error(status_code: int, error_code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error_code": error_code, "message": message, **extra},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="ragsearch",
        description="Document ingestion and vector search on Azure AI Search.",
        version="0.1.0",
        docs_url="/api/docs" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP %s %s %d %.1fms",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers
    # ----------------------------------------------------------------

    @app.exception_handler(IndexNotFoundError)
    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: Exception):
        return _error(status.HTTP_404_NOT_FOUND, "NOT_FOUND", str(exc))

    @app.exception_handler(InvalidArgumentError)
    @app.exception_handler(SchemaMismatchError)
    async def bad_request_handler(request: Request, exc: Exception):
        return _error(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST", str(exc))

    @app.exception_handler(DocumentAnalysisError)
    async def analysis_failed_handler(request: Request, exc: DocumentAnalysisError):
        logger.warning("Document analysis failed | path=%s error=%s", request.url.path, exc)
        return _error(status.HTTP_502_BAD_GATEWAY, "DOCUMENT_ANALYSIS_FAILED", str(exc))

    @app.exception_handler(BatchFailureError)
    async def batch_failed_handler(request: Request, exc: BatchFailureError):
        logger.error(
            "Batch write failed | path=%s committed=%d rejected=%d",
            request.url.path, len(exc.confirmed_ids), len(exc.failures),
        )
        return _error(
            status.HTTP_502_BAD_GATEWAY, "BATCH_WRITE_FAILED", str(exc),
            confirmed_ids=exc.confirmed_ids,
            failures=exc.failures,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", "Request validation failed.",
            details=details,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions; never expose stack traces."""
        logger.exception("Unhandled exception | path=%s", request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "An unexpected error occurred.",
        )

    app.include_router(knowledge_router, prefix="/api/v1")

    @app.get("/health", tags=["Operations"], summary="Liveness probe")
    async def health() -> dict:
        return {"status": "ok", "service": "ragsearch"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ragsearch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
    )
