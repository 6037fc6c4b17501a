"""
Inkling: Response Schemas
=========================

What:  Pydantic models for every body the server returns.
Why:   The relay client (inkling.client.relay) and the browser client
       both parse these shapes, so they are pinned here and in the OpenAPI docs.
"""

from typing import Optional

from pydantic import BaseModel, Field


class OCRResponse(BaseModel):
    """200 body of POST /api/ocr."""
    success: bool = Field(default=True)
    text: str = Field(description="Transcribed text, trimmed. Empty if nothing was legible.")
    timestamp: str = Field(description="When the transcription finished (ISO 8601, UTC)")


class ErrorResponse(BaseModel):
    """
    Error body shared by all endpoints.

    Example:
        {"error": "Failed to process image", "details": "upstream timeout", "request_id": "a1b2c3d4"}
    """
    error: str = Field(description="Human-readable error summary")
    details: Optional[str] = Field(default=None, description="Underlying failure, when there is one")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(default="ok")
    engine: str = Field(description="Configured transcription engine name")
    circuit: str = Field(default="closed", description="Engine circuit breaker state")
    upstream: Optional[bool] = Field(default=None, description="Provider reachability, only with ?deep=true")


class ServerInfoResponse(BaseModel):
    message: str = Field(default="Inkling OCR Server")
    version: str
    status: str = Field(default="running")
