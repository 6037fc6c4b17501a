"""
Inkling: Transcription Service (Orchestrator)
=============================================

What:  validate upload → transcribe with the configured engine → response body.
Who:   Called by POST /api/ocr. Stateless apart from the engine it holds,
       whose circuit breaker must be shared by every request.

    ┌──────────┐    ┌──────────────┐    ┌──────────────┐    ┌────────────┐
    │  Upload  │───▶│  Validate    │───▶│ VisionEngine │───▶│ OCRResponse│
    │  (Route) │    │ (UploadServ) │    │ (Claude/Gem.)│    │  (+stamp)  │
    └──────────┘    └──────────────┘    └──────────────┘    └────────────┘

Failures propagate as InklingError subclasses to the global handlers.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from inkling.config import ENGINE_GEMINI, settings
from inkling.schemas.ocr import OCRResponse
from inkling.services.engine_base import VisionEngine
from inkling.services.resilience import CircuitBreaker
from inkling.services.upload_service import UploadService, upload_service as default_upload_service

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def get_engine(name: Optional[str] = None) -> VisionEngine:
    """Builds the engine once per name; imported lazily so only the selected SDK loads."""
    name = name or settings.ocr_engine
    if name == ENGINE_GEMINI:
        from inkling.services.gemini_engine import GeminiVisionEngine
        return GeminiVisionEngine()
    from inkling.services.claude_engine import ClaudeVisionEngine
    return ClaudeVisionEngine()


def utc_timestamp() -> str:
    """ISO 8601 with millisecond precision and a Z suffix, e.g. 2026-01-15T12:00:00.123Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TranscriptionService:

    def __init__(
        self,
        engine: Optional[VisionEngine] = None,
        uploads: Optional[UploadService] = None,
    ):
        self._engine = engine
        self.uploads = uploads or default_upload_service

    @property
    def engine(self) -> VisionEngine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    @property
    def circuit_state(self) -> str:
        """Breaker state of the engine; "closed" until the first request builds it."""
        if self._engine is None:
            return CircuitBreaker.CLOSED
        return self._engine.circuit_breaker.state

    async def transcribe_upload(
        self,
        content_type: Optional[str],
        content: bytes,
        content_length: Optional[int] = None,
    ) -> OCRResponse:
        """
        Raises:
            ValidationError: no image, or not an image (400)
            UploadTooLargeError: over max_upload_bytes (413)
            TranscriptionFailedError / CircuitBreakerOpenError: engine failure (500)
        """
        image, media_type = self.uploads.validate(content_type, content, content_length)
        text = await self.engine.transcribe(image, media_type)
        logger.info("Transcribed %s upload: %d chars", media_type, len(text))
        return OCRResponse(success=True, text=text.strip(), timestamp=utc_timestamp())


transcription_service = TranscriptionService()
