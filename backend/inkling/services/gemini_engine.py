"""
Inkling: Google Gemini Vision Engine
====================================

What:  VisionEngine backed by Google Gemini (google-generativeai SDK).
How:   The image goes inline as a {"mime_type", "data"} blob next to the
       prompt; nothing is uploaded to the Files API or written to disk.

Why inline: the server holds the upload in memory for one request only.
genai.upload_file() needs a path and leaves a remote copy behind.
"""

import asyncio
import logging
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from inkling.config import ENGINE_GEMINI, settings
from inkling.services.engine_base import TRANSCRIBE_PROMPT, VisionEngine

logger = logging.getLogger(__name__)


class GeminiVisionEngine(VisionEngine):

    name = ENGINE_GEMINI
    retryable_errors = (
        google_exceptions.ServiceUnavailable,
        google_exceptions.ResourceExhausted,
        google_exceptions.DeadlineExceeded,
        google_exceptions.InternalServerError,
        ConnectionError,
        asyncio.TimeoutError,
    )

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        key = api_key or settings.gemini_api_key
        # The SDK keeps auth in module-level state
        if key:
            genai.configure(api_key=key)
        self.model_name = model or settings.gemini_model
        self.model = genai.GenerativeModel(self.model_name)
        logger.info("GeminiVisionEngine initialized with model=%s", self.model_name)

    async def _call_model(self, image: bytes, media_type: str) -> str:
        response = await self.model.generate_content_async(
            [TRANSCRIBE_PROMPT, {"mime_type": media_type, "data": image}],
            request_options={"timeout": self.timeout},
        )
        # .text raises ValueError when the candidate was blocked; that is not retryable
        return response.text or ""

    async def health_check(self) -> bool:
        """Lists models (no token cost). The SDK call is blocking, so it runs in a thread."""
        try:
            models = await asyncio.to_thread(lambda: [m.name for m in genai.list_models()])
        except Exception as e:
            logger.warning("Gemini health check failed: %s", e)
            return False
        target = f"models/{self.model_name}"
        if target not in models:
            logger.warning("Configured model %s not found in available models", target)
        return True
