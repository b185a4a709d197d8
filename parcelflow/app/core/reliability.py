"""
Reliability utilities.

Circuit breaker guarding outbound calls to the payment gateway.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

CLOSED = "CLOSED"
OPEN = "OPEN"
HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    After ``failure_threshold`` counted failures in a row the circuit opens and
    rejects calls until ``reset_timeout`` seconds have passed. The next call is
    then let through as a trial call: success closes the circuit, failure reopens it.

    ``counts_as_failure`` decides which exceptions trip the breaker. Errors it
    rejects (a 4xx from the gateway, say) are re-raised without being counted.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60,
        name: str = "circuit",
        counts_as_failure: Optional[Callable[[BaseException], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.name = name
        self.counts_as_failure = counts_as_failure or (lambda exc: True)
        self.clock = clock
        self.failures = 0
        self.opened_at: Optional[float] = None
        self.state = CLOSED

    def _admit(self) -> None:
        if self.state != OPEN:
            return
        if self.clock() - self.opened_at >= self.reset_timeout:
            self.state = HALF_OPEN
            logger.info("Circuit %s half-open, allowing a trial call", self.name)
            return
        raise CircuitOpenError(f"Circuit {self.name} is OPEN")

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            if self.counts_as_failure(exc):
                self.record_failure()
            raise
        self.record_success()
        return result

    def record_failure(self) -> None:
        self.failures += 1
        if self.state == HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state != OPEN:
                logger.warning("Circuit %s opened after %d failures", self.name, self.failures)
            self.state = OPEN
            self.opened_at = self.clock()

    def record_success(self) -> None:
        if self.state == HALF_OPEN:
            logger.info("Circuit %s closed", self.name)
        self.failures = 0
        self.opened_at = None
        self.state = CLOSED
