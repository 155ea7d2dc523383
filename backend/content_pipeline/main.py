"""
FastAPI Application — Entry Point

Content text-extraction service.

  - Routes are versioned under /api/v1/
  - Bearer JWT verified on the re-extraction RPC; admin gating happens in
    the service layer
  - Request errors and HTTP errors share one ErrorResponse envelope
  - /health and /ready are unauthenticated health checks
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from content_pipeline.api.v1.content import router as content_router
from content_pipeline.core.config import settings
from content_pipeline.core.errors import RequestError
from content_pipeline.db.session import check_db_health
from content_pipeline.schemas.content import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

_HTTP_ERROR_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST:  "INVALID_ARGUMENT",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHENTICATED",
    status.HTTP_403_FORBIDDEN:    "PERMISSION_DENIED",
    status.HTTP_404_NOT_FOUND:    "NOT_FOUND",
}


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting content extraction API | env=%s bucket=%s textract=%s",
        settings.app_env, settings.s3_bucket, settings.textract_enabled,
    )
    yield
    logger.info("Shutting down content extraction API")
    from content_pipeline.db.session import engine
    await engine.dispose()


def _error_response(
    request:     Request,
    status_code: int,
    body:        ErrorResponse,
    headers:     dict | None = None,
) -> JSONResponse:
    body.request_id = body.request_id or request.headers.get("X-Request-ID")
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="Content Text Extraction",
        description="Extracts text from uploaded content files (PDF and images) via OCR.",
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Request ID + logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method, request.url.path, response.status_code,
            duration_ms, request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers — uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(RequestError)
    async def request_error_handler(request: Request, exc: RequestError):
        logger.info(
            "Request rejected | path=%s code=%s reason=%s",
            request.url.path, exc.error_code, exc,
        )
        return _error_response(
            request,
            exc.status_code,
            ErrorResponse(error_code=exc.error_code, message=str(exc)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(
            request,
            exc.status_code,
            ErrorResponse(
                error_code=_HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
                message=str(exc.detail),
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic/FastAPI validation errors to structured ErrorResponse."""
        details = [
            ErrorDetail(
                field=" → ".join(str(loc) for loc in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        return _error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            ErrorResponse(
                error_code="INVALID_ARGUMENT",
                message="Request validation failed.",
                details=details,
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        logger.exception("Unhandled exception | path=%s", request.url.path)
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorResponse(error_code="INTERNAL", message="Text extraction failed"),
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(content_router, prefix="/api/v1")

    # ----------------------------------------------------------------
    # Health & readiness endpoints (no auth)
    # ----------------------------------------------------------------

    @app.get("/health", tags=["Operations"], summary="Liveness check")
    async def health() -> dict:
        return {"status": "ok", "service": "content-extraction"}

    @app.get("/ready", tags=["Operations"], summary="Readiness check")
    async def readiness() -> JSONResponse:
        db_status = await check_db_health()
        if db_status["status"] != "ok":
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "database": db_status},
            )
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", "database": db_status},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "content_pipeline.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
    )
