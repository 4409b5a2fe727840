"""Per-provider circuit breakers."""

from __future__ import annotations

import logging
import threading
import time
from typing import Awaitable, Callable, TypeVar

from vinexport.core.ai.errors import CircuitOpenError
from vinexport.core.ai.types import BreakerState, CircuitBreakerState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitBreaker:
    """Failure-tracking state machine, one entry per provider.

    closed -> open after ``failure_threshold`` consecutive failures.
    open -> half-open once more than ``cooldown_ms`` has passed since the
    last failure; until then calls are rejected without running.
    half-open -> closed on success, back to open on failure.

    All transitions happen under one lock; the operation itself runs
    outside it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_ms: int = 60_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.cooldown_s = cooldown_ms / 1000
        self._clock = clock
        self._states: dict[str, CircuitBreakerState] = {}
        self._lock = threading.Lock()

    def _get(self, provider: str) -> CircuitBreakerState:
        state = self._states.get(provider)
        if state is None:
            state = CircuitBreakerState()
            self._states[provider] = state
        return state

    def before_call(self, provider: str) -> None:
        """Admit or reject a call; moves an expired open breaker to half-open."""
        with self._lock:
            breaker = self._get(provider)
            if breaker.state != BreakerState.OPEN:
                return

            if self._clock() - breaker.last_failure > self.cooldown_s:
                breaker.state = BreakerState.HALF_OPEN
                logger.info(f"Circuit breaker half-open for provider {provider}")
                return

        raise CircuitOpenError(provider)

    def record_success(self, provider: str) -> None:
        with self._lock:
            breaker = self._get(provider)
            if breaker.state == BreakerState.HALF_OPEN:
                logger.info(f"Circuit breaker closed for provider {provider}")
            breaker.state = BreakerState.CLOSED
            breaker.failures = 0

    def record_failure(self, provider: str) -> None:
        with self._lock:
            breaker = self._get(provider)
            breaker.failures += 1
            breaker.last_failure = self._clock()

            reopen = breaker.state == BreakerState.HALF_OPEN
            if reopen or breaker.failures >= self.failure_threshold:
                if breaker.state != BreakerState.OPEN:
                    logger.warning(
                        f"Circuit breaker open for provider {provider} "
                        f"after {breaker.failures} failure(s)"
                    )
                breaker.state = BreakerState.OPEN

    async def call(self, provider: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker for ``provider``."""
        self.before_call(provider)
        try:
            result = await operation()
        except CircuitOpenError:
            raise
        except Exception:
            self.record_failure(provider)
            raise
        self.record_success(provider)
        return result

    def get_state(self, provider: str) -> CircuitBreakerState:
        """Snapshot of a provider's breaker (closed/0 for unseen providers)."""
        with self._lock:
            breaker = self._states.get(provider)
            if breaker is None:
                return CircuitBreakerState()
            return breaker.model_copy()

    def get_states(self) -> dict[str, CircuitBreakerState]:
        with self._lock:
            return {name: state.model_copy() for name, state in self._states.items()}

    def reset(self, provider: str | None = None) -> None:
        with self._lock:
            if provider is None:
                self._states.clear()
            else:
                self._states.pop(provider, None)
