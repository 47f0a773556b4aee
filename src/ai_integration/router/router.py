"""Capability router with strategy selection, ordered failover and budget gating."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from ai_integration.config import CircuitBreakerSettings, CostTrackingSettings, RoutingSettings
from ai_integration.providers.base import Provider
from ai_integration.router.circuit_breaker import CircuitBreaker
from ai_integration.router.cost_tracker import BudgetUsage, CostTracker
from ai_integration.router.errors import AllProvidersFailed, BudgetExceeded, NoProviderAvailable
from ai_integration.router.failure_classifier import classify_provider_exception
from ai_integration.router.models import (
    CapabilityKind,
    CircuitStatus,
    ClassifiedError,
    CostRecord,
    Outcome,
    ProviderDescriptor,
    RoutingStrategy,
    Task,
)

logger = logging.getLogger(__name__)

# Fixed quality table per capability-kind; providers not listed score 0.
QUALITY_RANKINGS: Mapping[CapabilityKind, Mapping[str, int]] = {
    CapabilityKind.VISION_ANALYSIS: {
        "anthropic": 10,
        "openai": 8,
        "google": 7,
        "openrouter": 6,
        "fal": 0,
    },
    CapabilityKind.TEXT_VALIDATION: {
        "anthropic": 10,
        "openai": 8,
        "openrouter": 7,
        "google": 6,
        "fal": 0,
    },
    CapabilityKind.TEXT_GENERATION: {
        "openai": 10,
        "anthropic": 9,
        "openrouter": 8,
        "google": 7,
        "fal": 0,
    },
    CapabilityKind.IMAGE_SYNTHESIS: {
        "fal": 10,
        "openai": 8,
        "openrouter": 0,
        "anthropic": 0,
        "google": 0,
    },
}


@dataclass(frozen=True, slots=True)
class CostEstimate:
    """Advisory per-provider cost estimate for one task."""

    min: float
    max: float
    mean: float
    by_provider: dict[str, float]


@dataclass(frozen=True, slots=True)
class CostStats:
    """Ledger aggregates exposed to callers."""

    daily: float
    monthly: float
    by_provider: dict[str, float]
    by_kind: dict[CapabilityKind, float]
    budget_usage: BudgetUsage


@dataclass(frozen=True, slots=True)
class ProviderCircuitStatus:
    """Circuit state of one registered provider."""

    state: CircuitStatus
    failures: int


@dataclass(slots=True)
class _Registered:
    provider: Provider
    descriptor: ProviderDescriptor


class Router:
    """Routes tasks to providers.

    The router owns its circuit breaker and cost tracker; nothing is shared
    between router instances unless the caller injects the same objects.
    """

    def __init__(  # noqa: PLR0913
        self,
        providers: Iterable[Provider],
        *,
        routing: RoutingSettings | None = None,
        cost_tracking: CostTrackingSettings | None = None,
        circuit_settings: CircuitBreakerSettings | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        cost_tracker: CostTracker | None = None,
        quality_rankings: Mapping[CapabilityKind, Mapping[str, int]] | None = None,
    ) -> None:
        self.routing = routing or RoutingSettings()
        circuit_settings = circuit_settings or CircuitBreakerSettings()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=circuit_settings.failure_threshold,
            recovery_timeout_seconds=circuit_settings.recovery_timeout_seconds,
        )
        self.cost_tracker = cost_tracker or CostTracker(cost_tracking)
        self.quality_rankings = quality_rankings or QUALITY_RANKINGS

        self._registered: list[_Registered] = []
        seen: set[str] = set()
        for provider in providers:
            descriptor = provider.descriptor
            if descriptor.name in seen:
                raise ValueError(f"Duplicate provider name: {descriptor.name!r}")
            seen.add(descriptor.name)
            self._registered.append(_Registered(provider=provider, descriptor=descriptor))

    @property
    def provider_names(self) -> tuple[str, ...]:
        return tuple(entry.descriptor.name for entry in self._registered)

    def route(self, task: Task) -> Outcome:
        """Execute ``task`` on the best available provider with failover.

        Returns the successful outcome, or the failed outcome of the first
        non-retryable failure. Raises :class:`NoProviderAvailable`,
        :class:`BudgetExceeded` or :class:`AllProvidersFailed`.
        """

        candidates = self._candidates(task.kind)
        if not candidates:
            raise NoProviderAvailable(task.kind)

        # Checked once per call, not between failover attempts.
        if not self.cost_tracker.can_proceed():
            raise BudgetExceeded(
                daily_cost=self.cost_tracker.get_daily_cost(),
                monthly_cost=self.cost_tracker.get_monthly_cost(),
            )

        primary = self._select_primary(task.kind, candidates)
        attempts = [primary]
        if self.routing.fallback_enabled:
            attempts.extend(_by_cost(entry for entry in candidates if entry is not primary))

        last_error: ClassifiedError | None = None
        attempted: list[str] = []
        skipped: list[str] = []
        for entry in attempts:
            name = entry.descriptor.name
            if not self.circuit_breaker.can_attempt(name):
                logger.warning("Circuit open for %s, skipping", name)
                skipped.append(name)
                continue

            attempted.append(name)
            try:
                outcome = entry.provider.execute(task)
            except Exception as error:  # noqa: BLE001
                classification = classify_provider_exception(provider=name, error=error)
                self.circuit_breaker.record_failure(name)
                last_error = classification.error
                if not last_error.retryable:
                    logger.warning("Provider %s raised non-retryable error: %s", name, error)
                    return Outcome(
                        success=False,
                        provider=name,
                        kind=task.kind,
                        timestamp=self.cost_tracker.now(),
                        error=last_error,
                    )
                logger.warning(
                    "Provider %s raised %s, trying next provider",
                    name,
                    classification.error.code,
                )
                continue

            if outcome.success:
                self.circuit_breaker.record_success(name)
                self.cost_tracker.record(CostRecord.from_outcome(outcome))
                logger.debug("Task %s served by %s", task.kind.value, name)
                return outcome

            self.circuit_breaker.record_failure(name)
            last_error = outcome.error or ClassifiedError(
                code="UNKNOWN_ERROR",
                message=f"{name} returned an unsuccessful outcome",
                retryable=True,
            )
            if not last_error.retryable:
                logger.warning("Provider %s failed with non-retryable %s", name, last_error.code)
                return outcome
            logger.warning(
                "Provider %s failed with %s, trying next provider",
                name,
                last_error.code,
            )

        raise AllProvidersFailed(
            task.kind,
            last_error=last_error,
            attempted=tuple(attempted),
            skipped=tuple(skipped),
        )

    def estimate_cost(self, task: Task) -> CostEstimate:
        """Ask every capable provider for its estimate; advisory only."""

        candidates = self._candidates(task.kind)
        if not candidates:
            raise NoProviderAvailable(task.kind)
        by_provider = {
            entry.descriptor.name: entry.provider.estimate_cost(task) for entry in candidates
        }
        costs = list(by_provider.values())
        return CostEstimate(
            min=min(costs),
            max=max(costs),
            mean=sum(costs) / len(costs),
            by_provider=by_provider,
        )

    def get_cost_stats(self) -> CostStats:
        tracker = self.cost_tracker
        return CostStats(
            daily=tracker.get_daily_cost(),
            monthly=tracker.get_monthly_cost(),
            by_provider=tracker.get_costs_by_provider(),
            by_kind=tracker.get_costs_by_kind(),
            budget_usage=tracker.get_budget_usage(),
        )

    def get_circuit_breaker_status(self) -> dict[str, ProviderCircuitStatus]:
        status: dict[str, ProviderCircuitStatus] = {}
        for name in self.provider_names:
            snapshot = self.circuit_breaker.snapshot(name)
            status[name] = ProviderCircuitStatus(state=snapshot.state, failures=snapshot.failures)
        return status

    def reset_circuit_breaker(self, provider: str | None = None) -> None:
        if provider is None:
            self.circuit_breaker.reset_all()
        else:
            self.circuit_breaker.reset(provider)

    def _candidates(self, kind: CapabilityKind) -> list[_Registered]:
        return [entry for entry in self._registered if entry.provider.supports(kind)]

    def _select_primary(
        self,
        kind: CapabilityKind,
        candidates: Sequence[_Registered],
    ) -> _Registered:
        preferred = self.routing.preferred_providers
        pool = list(candidates)
        if preferred:
            narrowed = [entry for entry in pool if entry.descriptor.name in preferred]
            if narrowed:
                pool = narrowed

        strategy = self.routing.strategy
        if strategy is RoutingStrategy.QUALITY_FIRST:
            ranking = self.quality_rankings.get(kind, {})
            ordered = sorted(pool, key=lambda entry: -ranking.get(entry.descriptor.name, 0))
        elif strategy is RoutingStrategy.SPEED_FIRST:
            ordered = sorted(pool, key=lambda entry: entry.descriptor.average_latency_ms)
        else:
            ordered = _by_cost(pool)
        return ordered[0]


def _by_cost(entries: Iterable[_Registered]) -> list[_Registered]:
    return sorted(entries, key=lambda entry: entry.descriptor.cost_per_call)
