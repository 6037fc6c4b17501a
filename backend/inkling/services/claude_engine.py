"""
Inkling: Anthropic Claude Vision Engine
=======================================

What:  VisionEngine backed by the Anthropic Messages API.
How:   One user turn holding a base64 image block followed by the
       transcription prompt; the text blocks of the answer are joined.
"""

import asyncio
import base64
import logging
from typing import Optional

from anthropic import (
    APIConnectionError,
    AsyncAnthropic,
    InternalServerError,
    RateLimitError,
)

from inkling.config import ENGINE_CLAUDE, settings
from inkling.services.engine_base import TRANSCRIBE_PROMPT, VisionEngine

logger = logging.getLogger(__name__)


class ClaudeVisionEngine(VisionEngine):

    name = ENGINE_CLAUDE
    # APITimeoutError is a subclass of APIConnectionError
    retryable_errors = (
        APIConnectionError,
        RateLimitError,
        InternalServerError,
        asyncio.TimeoutError,
    )

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self._api_key = api_key or settings.anthropic_api_key
        self.model = model or settings.claude_model
        self.max_tokens = settings.claude_max_tokens
        self._client: Optional[AsyncAnthropic] = None
        logger.info("ClaudeVisionEngine initialized with model=%s", self.model)

    @property
    def client(self) -> AsyncAnthropic:
        # Created on first use so a missing key only fails actual requests
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self._api_key or None, max_retries=0)
        return self._client

    async def _call_model(self, image: bytes, media_type: str) -> str:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": base64.standard_b64encode(image).decode(),
                            },
                        },
                        {"type": "text", "text": TRANSCRIBE_PROMPT},
                    ],
                }
            ],
        )
        return "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )

    async def health_check(self) -> bool:
        # Model metadata lookup: authenticated, free, and names the configured model
        try:
            await self.client.models.retrieve(self.model)
            return True
        except Exception as e:
            logger.warning("Claude health check failed: %s", e)
            return False
