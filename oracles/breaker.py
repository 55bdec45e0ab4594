"""Per-model circuit breakers, owned by one run."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class BreakerState:
    failures: int = 0
    opened_at: Optional[float] = None


class CircuitBreakerBoard:
    """
    Consecutive-failure breakers keyed by model.

    A breaker opens after ``threshold`` consecutive failures and rejects
    calls for ``cooldown_seconds``; the next call after the cooldown is a
    trial, and one more failure re-opens it.
    """

    def __init__(self, threshold: int = 2, cooldown_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.threshold = max(1, threshold)
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._states: Dict[str, BreakerState] = {}

    def _state(self, key: str) -> BreakerState:
        return self._states.setdefault(key, BreakerState())

    def is_open(self, key: str) -> bool:
        state = self._state(key)
        if state.opened_at is None:
            return False
        return self._clock() - state.opened_at < self.cooldown_seconds

    def allow(self, key: str) -> bool:
        state = self._state(key)
        if state.opened_at is None:
            return True
        if self._clock() - state.opened_at < self.cooldown_seconds:
            return False
        state.opened_at = None
        state.failures = self.threshold - 1
        logger.info("breaker_half_open key=%s", key)
        return True

    def record_failure(self, key: str) -> None:
        state = self._state(key)
        state.failures += 1
        if state.failures >= self.threshold and state.opened_at is None:
            state.opened_at = self._clock()
            logger.warning("breaker_open key=%s failures=%s cooldown=%.0fs", key, state.failures, self.cooldown_seconds)

    def record_success(self, key: str) -> None:
        state = self._state(key)
        state.failures = 0
        state.opened_at = None
