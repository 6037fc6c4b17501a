"""
Inkling: Access Log Middleware
==============================

What:  One line per request on the `inkling.access` logger:
           POST /api/ocr -> 200 in 1834.2ms [a1b2c3d4] 2.4 MB from 10.0.0.7
How:   Severity follows the status class (5xx ERROR, 4xx WARNING, else INFO)
       so alerting can key off the level alone.

Not logged: request bodies. Uploads are photos of someone's notes.
"""

import logging
import time
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from inkling.middleware.request_id import request_id_var

logger = logging.getLogger("inkling.access")

# Probed every few seconds by hosting platforms
QUIET_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def _upload_size(request: Request) -> Optional[str]:
    raw = request.headers.get("content-length")
    if not raw or not raw.isdigit():
        return None
    size = int(raw)
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / 1024:.0f} KB"


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        peer = request.client.host if request.client else "unknown"
        size = _upload_size(request) if request.method == "POST" else None
        logger.log(
            level_for_status(response.status_code),
            "%s %s -> %d in %.1fms [%s]%s from %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id_var.get("") or getattr(request.state, "request_id", "-"),
            f" {size}" if size else "",
            peer,
        )
        return response
