# backend/soora/services/circuit_breaker.py

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Consecutive-failure circuit breaker.

    CLOSED: calls pass through; ``failure_threshold`` consecutive failures open it.
    OPEN: calls are refused until ``cooldown_seconds`` have elapsed.
    HALF_OPEN: a single trial call is let through and other callers are refused
    until its result is recorded; success closes, failure re-opens.
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    def __init__(self, failure_threshold: int = 5, cooldown_seconds: float = 30.0,
                 clock: Callable[[], float] = time.monotonic, name: str = "breaker"):
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_seconds = cooldown_seconds
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._state = self.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        with self._lock:
            return self._current_state()

    def _current_state(self) -> str:
        if self._state == self.OPEN and self._clock() - self._opened_at >= self.cooldown_seconds:
            self._state = self.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        with self._lock:
            state = self._current_state()
            if state == self.CLOSED:
                return True
            if state == self.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            if self._state != self.CLOSED:
                logger.info("%s closed after successful trial call", self.name)
            self._state = self.CLOSED
            self._failures = 0
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            state = self._current_state()
            self._failures += 1
            self._trial_in_flight = False
            if state == self.HALF_OPEN or self._failures >= self.failure_threshold:
                if state != self.OPEN:
                    logger.warning("%s opened after %d consecutive failures", self.name, self._failures)
                self._state = self.OPEN
                self._opened_at = self._clock()
