"""Per-provider circuit breaker.

States:

- ``closed``: normal operation, attempts pass through.
- ``open``: the provider failed ``failure_threshold`` times in a row and is
  skipped.
- ``half-open``: the recovery timeout has elapsed since the last failure; one
  probe attempt is allowed. Success closes the circuit, failure reopens it.

The open -> half-open transition is evaluated lazily inside
:meth:`CircuitBreaker.can_attempt`; there is no background timer.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from ai_integration.router.models import CircuitStatus

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_RECOVERY_TIMEOUT_SECONDS = 60.0


@dataclass(slots=True)
class CircuitState:
    """Mutable circuit bookkeeping for one provider."""

    failures: int = 0
    status: CircuitStatus = CircuitStatus.CLOSED
    last_failure_at: float | None = None
    probe_in_flight: bool = False


@dataclass(frozen=True, slots=True)
class CircuitSnapshot:
    """Read-only view of one provider circuit."""

    state: CircuitStatus
    failures: int
    last_failure_at: float | None


class CircuitBreaker:
    """Tracks consecutive failures per provider name."""

    def __init__(
        self,
        *,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout_seconds: float = DEFAULT_RECOVERY_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold <= 0:
            raise ValueError(f"failure_threshold must be positive, got {failure_threshold}")
        self.failure_threshold = failure_threshold
        self.recovery_timeout_seconds = recovery_timeout_seconds
        self._clock = clock
        self._states: dict[str, CircuitState] = {}
        self._lock = threading.Lock()

    def can_attempt(self, provider: str) -> bool:
        """Return whether an attempt against ``provider`` is currently allowed."""

        with self._lock:
            state = self._states.get(provider)
            if state is None or state.status is CircuitStatus.CLOSED:
                return True

            if state.status is CircuitStatus.OPEN:
                if (
                    state.last_failure_at is not None
                    and self._clock() - state.last_failure_at >= self.recovery_timeout_seconds
                ):
                    state.status = CircuitStatus.HALF_OPEN
                    state.probe_in_flight = True
                    logger.info("Circuit for %s is half-open, allowing one probe", provider)
                    return True
                return False

            if not state.probe_in_flight:
                state.probe_in_flight = True
                return True
            return False

    def record_success(self, provider: str) -> None:
        """Reset ``provider`` to closed with zero failures."""

        with self._lock:
            state = self._states.setdefault(provider, CircuitState())
            if state.status is not CircuitStatus.CLOSED:
                logger.info("Circuit for %s closed after successful attempt", provider)
            state.failures = 0
            state.status = CircuitStatus.CLOSED
            state.probe_in_flight = False

    def record_failure(self, provider: str) -> None:
        """Count one failure and open the circuit once the threshold is reached."""

        with self._lock:
            state = self._states.setdefault(provider, CircuitState())
            state.failures += 1
            state.last_failure_at = self._clock()
            state.probe_in_flight = False
            if state.failures >= self.failure_threshold:
                if state.status is not CircuitStatus.OPEN:
                    logger.warning(
                        "Circuit for %s opened after %d consecutive failures",
                        provider,
                        state.failures,
                    )
                state.status = CircuitStatus.OPEN

    def get_state(self, provider: str) -> CircuitStatus:
        with self._lock:
            state = self._states.get(provider)
            return state.status if state is not None else CircuitStatus.CLOSED

    def get_failure_count(self, provider: str) -> int:
        with self._lock:
            state = self._states.get(provider)
            return state.failures if state is not None else 0

    def snapshot(self, provider: str) -> CircuitSnapshot:
        with self._lock:
            state = self._states.get(provider) or CircuitState()
            return CircuitSnapshot(
                state=state.status,
                failures=state.failures,
                last_failure_at=state.last_failure_at,
            )

    def reset(self, provider: str) -> None:
        """Force ``provider`` closed; used for operator intervention."""

        with self._lock:
            self._states.pop(provider, None)
        logger.info("Circuit for %s manually reset", provider)

    def reset_all(self) -> None:
        with self._lock:
            self._states.clear()
        logger.info("All circuits manually reset")
