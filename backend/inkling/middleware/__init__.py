"""
Inkling: Middleware Package
===========================

Middleware Chain:
    Request → [Request ID] → [Access Log] → [CORS] → Route Handler

    Request ID runs first so the access log line and every log line written
    while handling the request carry the same correlation ID.
"""
