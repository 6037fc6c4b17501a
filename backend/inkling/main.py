"""
Inkling: FastAPI Application Factory
====================================

What:  Builds the transcription server: middleware, error handlers, routes.
Who:   `uvicorn inkling.main:app`, or the `inkling-server` console script (run()).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │  Middleware:  Request ID → Access Log → CORS        │
    │  Routes:      POST /api/ocr │ GET /health │ GET /   │
    │  Handlers:    400 │ 413 │ 500 (engine) │ 500 (other)│
    └─────────────────────────────────────────────────────┘

Error bodies keep the shape the web client was written against:
    {"error": <summary>, "details": <underlying message>, "request_id": <id>}
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from inkling import __version__
from inkling.config import settings
from inkling.exceptions import (
    CircuitBreakerOpenError,
    InklingError,
    TranscriptionFailedError,
    UploadTooLargeError,
    ValidationError,
)
from inkling.middleware.logging import RequestLoggingMiddleware
from inkling.middleware.request_id import RequestIDMiddleware, request_id_var
from inkling.routes import health, ocr

logger = logging.getLogger(__name__)

TRANSCRIPTION_FAILED_MESSAGE = "Failed to process image"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure process-wide logging once, before anything else logs.

    Format: 2026-01-15T12:00:00 [INFO] inkling.routes.ocr: message
    """
    logging.basicConfig(
        level=getattr(logging, level or settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # One line per request comes from inkling.access already
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("Inkling OCR server %s starting (engine=%s)", __version__, settings.ocr_engine)

    # A missing key is logged, not fatal: /health keeps answering and
    # /api/ocr reports the provider's authentication error per request
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    yield

    logger.info("Inkling OCR server shutting down")


def _error_body(error: str, details: Optional[str] = None) -> dict:
    body = {"error": error, "request_id": request_id_var.get("")}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map InklingError subclasses to status codes and error bodies.

        ValidationError           → 400
        UploadTooLargeError       → 413
        CircuitBreakerOpenError   → 500 + Retry-After
        TranscriptionFailedError  → 500
        InklingError (base)       → 500
        Exception (fallback)      → 500, no internals in the body
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Upload rejected: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=400, content=_error_body(exc.message))

    @app.exception_handler(UploadTooLargeError)
    async def handle_upload_too_large(request: Request, exc: UploadTooLargeError):
        logger.warning("[%s] Upload too large: %s", request_id_var.get(""), exc.context)
        limit_mb = exc.limit_bytes // (1024 * 1024)
        return JSONResponse(
            status_code=413,
            content=_error_body(exc.message, f"Maximum upload size is {limit_mb} MiB"),
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_open(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body(TRANSCRIPTION_FAILED_MESSAGE, exc.message),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(TranscriptionFailedError)
    async def handle_transcription_failed(request: Request, exc: TranscriptionFailedError):
        logger.error("[%s] OCR Error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body(TRANSCRIPTION_FAILED_MESSAGE, exc.message),
        )

    @app.exception_handler(InklingError)
    async def handle_inkling_error(request: Request, exc: InklingError):
        logger.error("[%s] %s: %s | %s", request_id_var.get(""), type(exc).__name__, exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body(exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body("An unexpected error occurred. Please try again."),
        )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Inkling OCR API",
        description="Upload a photo of handwritten or printed notes and get the text back.",
        version=__version__,
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(ocr.router)
    app.include_router(health.router)

    return app


app = create_app()


def run() -> None:
    """Console entry point. TLS is enabled only when both PEM files already exist."""
    import uvicorn

    setup_logging()
    ssl_kwargs = {}
    if settings.ssl_certfile and settings.ssl_keyfile:
        cert, key = Path(settings.ssl_certfile), Path(settings.ssl_keyfile)
        if cert.is_file() and key.is_file():
            ssl_kwargs = {"ssl_certfile": str(cert), "ssl_keyfile": str(key)}
        else:
            logger.warning("TLS files not found (%s, %s); serving plain HTTP", cert, key)

    scheme = "https" if ssl_kwargs else "http"
    logger.info("Inkling listening on %s://%s:%d", scheme, settings.host, settings.port)
    uvicorn.run(
        "inkling.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        **ssl_kwargs,
    )
