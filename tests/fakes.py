"""Test doubles shared across test modules."""

from __future__ import annotations

from datetime import datetime

from ai_integration.providers.echo import EchoProvider
from ai_integration.router.models import CapabilityKind, ClassifiedError, ProviderDescriptor


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FixedNow:
    """Settable wall clock returning naive local datetimes."""

    def __init__(self, value: datetime) -> None:
        self.value = value

    def __call__(self) -> datetime:
        return self.value


def make_provider(  # noqa: PLR0913
    name: str,
    *,
    kinds: frozenset[CapabilityKind] | None = None,
    cost: float = 0.01,
    latency_ms: float = 1000,
    failure: ClassifiedError | None = None,
    raises: Exception | None = None,
    validation_score: float = 92.0,
) -> EchoProvider:
    return EchoProvider(
        ProviderDescriptor(
            name,
            kinds if kinds is not None else frozenset(CapabilityKind),
            cost_per_call=cost,
            average_latency_ms=latency_ms,
        ),
        failure=failure,
        raises=raises,
        validation_score=validation_score,
    )


def retryable(code: str = "SERVER_ERROR") -> ClassifiedError:
    return ClassifiedError(code=code, message=f"{code} from provider", retryable=True)


def fatal(code: str = "INVALID_REQUEST") -> ClassifiedError:
    return ClassifiedError(code=code, message=f"{code} from provider", retryable=False)
