"""
Inkling: Relay Client
=====================

What:  Forwards one ImageBlob to POST /api/ocr and normalizes whatever happens
       into a TranscriptionResult.
Why:   The state machine awaits transcribe() and moves to "result" with
       whatever comes back. It never needs exception handling of its own.

Response Mapping:
    2xx, JSON with string "text"      → {text: trimmed(text)}
    2xx, JSON without string "text"   → {text: ""}   (an empty transcription, not an error)
    2xx, body that is not JSON        → {error_message: "Invalid response from server"}
    non-2xx                           → {error_message: "Server error: <reason phrase>"}
    no response (offline, TLS, ...)   → {error_message: <transport failure>}
    no response within the timeout    → {error_message: "Request timed out after <n>s"}

One attempt per call. Retrying is the user's move (reset, then upload again).
"""

import logging
from typing import Optional

import httpx

from inkling.client.config import client_settings
from inkling.client.models import ImageBlob, TranscriptionResult

logger = logging.getLogger(__name__)

OCR_ENDPOINT = "/api/ocr"


class RelayClient:

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        verify: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or client_settings.server_url).rstrip("/")
        self.timeout = timeout or client_settings.request_timeout
        self.verify = client_settings.verify_tls if verify is None else verify
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            verify=self.verify,
            transport=self._transport,
        )

    async def transcribe(self, blob: ImageBlob) -> TranscriptionResult:
        files = {"image": (blob.filename, blob.data, blob.mime_type)}
        logger.info("Relaying %s (%d bytes) to %s%s", blob.filename, len(blob), self.base_url, OCR_ENDPOINT)

        try:
            async with self._client() as client:
                response = await client.post(OCR_ENDPOINT, files=files)
        except httpx.TimeoutException:
            logger.warning("Relay timed out after %.0fs", self.timeout)
            return TranscriptionResult.failure(f"Request timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            logger.warning("Relay failed without a response: %s: %s", type(e).__name__, e)
            return TranscriptionResult.failure(str(e) or type(e).__name__)
        except Exception as e:
            logger.error("Relay failed unexpectedly: %s", e, exc_info=True)
            return TranscriptionResult.failure(str(e) or type(e).__name__)

        if not response.is_success:
            reason = response.reason_phrase or httpx.codes.get_reason_phrase(response.status_code)
            logger.warning(
                "Relay got HTTP %d [request %s]: %s",
                response.status_code,
                response.headers.get("X-Request-ID", "-"),
                response.text[:200],
            )
            return TranscriptionResult.failure(f"Server error: {reason or response.status_code}")

        try:
            data = response.json()
        except ValueError:
            logger.warning("Relay got a non-JSON success body")
            return TranscriptionResult.failure("Invalid response from server")

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            logger.info("Success body has no string 'text'; treating as empty transcription")
            return TranscriptionResult.success("")
        return TranscriptionResult.success(text.strip())

    async def health(self) -> dict:
        """
        GET /health. Unlike transcribe(), errors propagate.

        Raises:
            httpx.HTTPError: unreachable, timed out, or a non-2xx status
            ValueError: the body is not a JSON object
        """
        async with self._client() as client:
            response = await client.get("/health")
            response.raise_for_status()
            body = response.json()
        if not isinstance(body, dict):
            raise ValueError("Health response is not a JSON object")
        return body
