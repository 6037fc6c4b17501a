"""
Inkling: Circuit Breaker
========================

What:  Fails transcription requests fast while the hosted model is down.
Why:   A provider outage would otherwise hold every upload open for the whole
       retry budget (attempts × timeout + backoff) before the client sees an error.

State Machine:
    CLOSED ──(threshold consecutive failures)──▶ OPEN
    OPEN ──(recovery_timeout elapsed)──▶ HALF_OPEN
    HALF_OPEN admits one trial call; others are rejected until it ends
    HALF_OPEN ──success──▶ CLOSED
    HALF_OPEN ──failure──▶ OPEN (timer restarts)

Not thread-safe: uvicorn's async workers share one process and one event loop.
"""

import logging
import time
from typing import Callable, Optional

from inkling.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Consecutive-failure circuit breaker for one upstream engine."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None
        self.trial_in_flight = False
        self._clock = clock

    def can_execute(self) -> bool:
        """
        Returns True if a call may go upstream.

        Raises:
            CircuitBreakerOpenError while OPEN and the recovery timeout has not
            elapsed, or while HALF_OPEN and the trial call has not finished.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.HALF_OPEN:
            if self.trial_in_flight:
                raise CircuitBreakerOpenError(recovery_time=1)
            self.trial_in_flight = True
            return True

        elapsed = self._clock() - (self.last_failure_time or 0)
        if elapsed >= self.recovery_timeout:
            logger.info("Circuit breaker HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
            self.trial_in_flight = True
            return True

        remaining = max(1, int(self.recovery_timeout - elapsed))
        raise CircuitBreakerOpenError(recovery_time=remaining)

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker CLOSED (engine recovered)")
        self.failure_count = 0
        self.trial_in_flight = False
        self.state = self.CLOSED
        self.last_failure_time = None

    def abandon_trial(self) -> None:
        """The trial call ended without an answer either way (request cancelled)."""
        self.trial_in_flight = False

    def record_failure(self) -> None:
        self.trial_in_flight = False
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker back to OPEN (trial call failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPEN after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN
