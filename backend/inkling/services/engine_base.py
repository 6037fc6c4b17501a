"""
Inkling: Abstract Vision Engine
===============================

What:  Contract and shared resilience wrapper for hosted vision models.
Why:   Routes and the orchestrator only ever see `transcribe(image, media_type)`;
       which provider answers is a configuration choice (OCR_ENGINE).
How:   Subclasses implement `_call_model()`, a single provider request.
       The base class wraps it:

           circuit breaker check
             → tenacity retry (exponential backoff + jitter, per-attempt timeout)
               → _call_model()
             → record success / failure
           → TranscriptionFailedError on any failure

Only the provider call is retried. Circuit breaker checks are not, so an
OPEN circuit answers in well under a millisecond.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Type

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from inkling.config import settings
from inkling.exceptions import CircuitBreakerOpenError, TranscriptionFailedError
from inkling.services.resilience import CircuitBreaker

logger = logging.getLogger(__name__)

TRANSCRIBE_PROMPT = (
    "Transcribe all handwritten or printed text in this image exactly as written. "
    "Output only the transcribed text with no additional commentary, labels, or explanation."
)


class VisionEngine(ABC):
    """
    Base class for image → text engines backed by a hosted model.

    Attributes:
        name:              Engine identifier reported by GET /health
        retryable_errors:  Exception types worth another attempt (network, 429, 5xx)
    """

    name: str = "vision"
    retryable_errors: Tuple[Type[BaseException], ...] = (
        ConnectionError,
        asyncio.TimeoutError,
    )

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
        jitter: float = 1.0,
        timeout: Optional[float] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self.min_wait = settings.retry_min_wait if min_wait is None else min_wait
        self.max_wait = settings.retry_max_wait if max_wait is None else max_wait
        self.jitter = jitter
        self.timeout = timeout or settings.upstream_timeout
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    @abstractmethod
    async def _call_model(self, image: bytes, media_type: str) -> str:
        """
        One request to the provider. Returns the raw text answer.

        Raise freely: the caller classifies the exception as retryable or not
        and wraps whatever escapes in TranscriptionFailedError.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Cheap reachability probe for GET /health?deep=true.

        Must not send an image: a probe that spends quota on every check is
        worse than none. Returns False instead of raising.
        """
        ...

    async def transcribe(self, image: bytes, media_type: str) -> str:
        """
        Transcribe the text in an image.

        Args:
            image:       Raw image bytes (already validated by UploadService)
            media_type:  Detected MIME type, e.g. "image/jpeg"

        Returns:
            The transcription, stripped of surrounding whitespace. May be empty.

        Raises:
            CircuitBreakerOpenError: too many recent failures
            TranscriptionFailedError: the provider failed after all attempts
        """
        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info(
            "[%s] %s transcribing %d bytes (%s)",
            call_id,
            self.name,
            len(image),
            media_type,
        )

        try:
            text = await self._call_with_retry(image, media_type, call_id)
        except CircuitBreakerOpenError:
            raise
        except asyncio.CancelledError:
            self.circuit_breaker.abandon_trial()
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] %s failed: %s: %s",
                call_id,
                self.name,
                type(e).__name__,
                e,
            )
            raise TranscriptionFailedError(
                message=str(e) or type(e).__name__,
                context={"call_id": call_id, "engine": self.name, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        return text.strip()

    async def _call_with_retry(self, image: bytes, media_type: str, call_id: str) -> str:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(self.retryable_errors),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.min_wait,
                max=self.max_wait,
                jitter=self.jitter,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                loop = asyncio.get_running_loop()
                started = loop.time()
                text = await asyncio.wait_for(
                    self._call_model(image, media_type),
                    timeout=self.timeout,
                )
                logger.info(
                    "[%s] %s answered in %.0fms (attempt %d), %d chars",
                    call_id,
                    self.name,
                    (loop.time() - started) * 1000,
                    attempt.retry_state.attempt_number,
                    len(text or ""),
                )
        return text or ""
