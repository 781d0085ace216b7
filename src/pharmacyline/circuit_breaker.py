"""Circuit breaker for the pharmacy records system.

RecordsClient asks before every call. After `failure_threshold`
consecutive failures the breaker opens and refuses calls for
`cooldown_seconds`; then exactly one caller is let through as a trial call.
Its outcome closes the breaker or opens it for another cooldown,
and every other caller is refused while it is in flight.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CircuitBreaker:
    failure_threshold: int = 3
    cooldown_seconds: float = 60.0
    label: str = "service"

    _consecutive_failures: int = field(default=0, init=False, repr=False)
    _opened_at: Optional[float] = field(default=None, init=False, repr=False)
    _trial_in_flight: bool = field(default=False, init=False, repr=False)

    def should_try(self) -> bool:
        if self._opened_at is None:
            return True
        if self._trial_in_flight:
            return False
        if time.monotonic() - self._opened_at < self.cooldown_seconds:
            return False
        self._trial_in_flight = True
        logger.info("Circuit breaker half-open for %s, letting one trial call through", self.label)
        return True

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit breaker CLOSED for %s", self.label)
        self._consecutive_failures = 0
        self._opened_at = None
        self._trial_in_flight = False

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        trial_failed = self._trial_in_flight
        self._trial_in_flight = False
        if trial_failed:
            self._opened_at = time.monotonic()
            logger.warning("Trial call to %s failed, staying open for %.0fs", self.label, self.cooldown_seconds)
        elif self._opened_at is None and self._consecutive_failures >= self.failure_threshold:
            self._opened_at = time.monotonic()
            logger.warning(
                "Circuit breaker OPENED for %s after %d consecutive failures, "
                "skipping for %.0fs",
                self.label,
                self._consecutive_failures,
                self.cooldown_seconds,
            )
