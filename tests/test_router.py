from __future__ import annotations

import threading

import allure
import pytest
from fakes import FakeClock, fatal, make_provider, retryable

from ai_integration.config import CostTrackingSettings, RoutingSettings
from ai_integration.router.circuit_breaker import CircuitBreaker
from ai_integration.router.cost_tracker import CostTracker
from ai_integration.router.errors import (
    AllProvidersFailed,
    BudgetExceeded,
    NoProviderAvailable,
    ProviderError,
)
from ai_integration.router.models import (
    CapabilityKind,
    CircuitStatus,
    CostRecord,
    GenerationPayload,
    RoutingStrategy,
    Task,
    TaskInput,
    TaskOptions,
)
from ai_integration.router.router import Router

pytestmark = [
    allure.epic("Provider Routing"),
    allure.feature("Selection & Failover"),
]

X = CapabilityKind.TEXT_GENERATION
ONLY_SYNTHESIS = frozenset({CapabilityKind.IMAGE_SYNTHESIS})


def _task(kind: CapabilityKind = X) -> Task:
    return Task(kind=kind, input=TaskInput(text="Split-window bus at sunset"))


def _strategy(strategy: RoutingStrategy, **kwargs) -> RoutingSettings:
    return RoutingSettings(strategy=strategy, **kwargs)


def test_cost_optimized_selects_cheapest_candidate() -> None:
    providers = [
        make_provider("a", cost=0.10),
        make_provider("b", cost=0.01),
        make_provider("c", cost=0.05),
    ]
    router = Router(providers)

    outcome = router.route(_task())

    assert outcome.success is True
    assert outcome.provider == "b"
    assert isinstance(outcome.payload, GenerationPayload)
    assert [len(provider.calls) for provider in providers] == [0, 1, 0]


def test_unsupported_provider_is_never_a_candidate_and_retryable_failover_succeeds() -> None:
    a = make_provider("a", kinds=ONLY_SYNTHESIS, cost=0.10)
    b = make_provider("b", cost=0.01, failure=retryable())
    c = make_provider("c", cost=0.05)
    router = Router([a, b, c])

    outcome = router.route(_task())

    assert outcome.provider == "c"
    assert a.calls == []
    assert router.circuit_breaker.get_failure_count("b") == 1
    assert router.circuit_breaker.get_failure_count("c") == 0
    ledger = router.cost_tracker.export()
    assert len(ledger) == 1
    assert ledger[0].provider == "c"
    assert ledger[0].cost == pytest.approx(0.05)


def test_raised_exception_is_retryable() -> None:
    b = make_provider("b", cost=0.01, raises=ConnectionError("connection reset by peer"))
    c = make_provider("c", cost=0.05)
    router = Router([b, c])

    outcome = router.route(_task())

    assert outcome.provider == "c"
    assert router.circuit_breaker.get_failure_count("b") == 1


def test_non_retryable_failure_returns_immediately() -> None:
    primary = make_provider("primary", cost=0.01, failure=fatal())
    backup = make_provider("backup", cost=0.05)
    router = Router([primary, backup])

    outcome = router.route(_task())

    assert outcome.success is False
    assert outcome.provider == "primary"
    assert outcome.error is not None
    assert outcome.error.code == "INVALID_REQUEST"
    assert backup.calls == []
    assert router.circuit_breaker.get_failure_count("primary") == 1
    assert router.circuit_breaker.get_failure_count("backup") == 0
    assert router.cost_tracker.export() == []


def test_raised_non_retryable_provider_error_returns_failed_outcome() -> None:
    primary = make_provider(
        "primary",
        cost=0.01,
        raises=ProviderError("content policy violation", retryable=False, code="POLICY"),
    )
    backup = make_provider("backup", cost=0.05)
    router = Router([primary, backup])

    outcome = router.route(_task())

    assert outcome.success is False
    assert outcome.error.code == "POLICY"
    assert outcome.retryable is False
    assert backup.calls == []


def test_fallback_disabled_tries_primary_only() -> None:
    primary = make_provider("primary", cost=0.01, failure=retryable())
    backup = make_provider("backup", cost=0.05)
    router = Router(
        [primary, backup],
        routing=RoutingSettings(fallback_enabled=False),
    )

    with pytest.raises(AllProvidersFailed) as raised:
        router.route(_task())

    assert backup.calls == []
    assert raised.value.attempted == ("primary",)
    assert raised.value.last_error.code == "SERVER_ERROR"


@pytest.mark.parametrize(
    ("strategy", "expected_primary"),
    [
        (RoutingStrategy.QUALITY_FIRST, "openai"),
        (RoutingStrategy.SPEED_FIRST, "google"),
    ],
)
def test_fallback_order_is_cost_ascending_regardless_of_strategy(
    strategy: RoutingStrategy,
    expected_primary: str,
) -> None:
    providers = [
        make_provider("openai", cost=0.03, latency_ms=2000, failure=retryable()),
        make_provider("anthropic", cost=0.025, latency_ms=1800, failure=retryable()),
        make_provider("google", cost=0.015, latency_ms=1200, failure=retryable()),
        make_provider("openrouter", cost=0.02, latency_ms=1500, failure=retryable()),
    ]
    router = Router(providers, routing=_strategy(strategy))

    with pytest.raises(AllProvidersFailed) as raised:
        router.route(_task())

    attempted = raised.value.attempted
    assert attempted[0] == expected_primary
    fallback_costs = [
        next(p.descriptor.cost_per_call for p in providers if p.name == name)
        for name in attempted[1:]
    ]
    assert fallback_costs == sorted(fallback_costs)
    assert len(attempted) == len(providers)


def test_quality_first_uses_ranking_table_per_kind() -> None:
    providers = [
        make_provider("openai", cost=0.03),
        make_provider("anthropic", cost=0.025),
    ]
    router = Router(providers, routing=_strategy(RoutingStrategy.QUALITY_FIRST))

    assert router.route(_task(CapabilityKind.VISION_ANALYSIS)).provider == "anthropic"
    assert router.route(_task(CapabilityKind.TEXT_GENERATION)).provider == "openai"


def test_quality_first_ties_break_by_registration_order() -> None:
    providers = [make_provider("first", cost=0.05), make_provider("second", cost=0.01)]
    router = Router(providers, routing=_strategy(RoutingStrategy.QUALITY_FIRST))

    assert router.route(_task()).provider == "first"


def test_preferred_providers_narrow_primary_selection() -> None:
    providers = [
        make_provider("cheap", cost=0.01),
        make_provider("preferred", cost=0.05),
    ]
    router = Router(providers, routing=RoutingSettings(preferred_providers=("preferred",)))

    assert router.route(_task()).provider == "preferred"


def test_preferred_providers_without_overlap_keep_all_candidates() -> None:
    providers = [make_provider("cheap", cost=0.01), make_provider("pricey", cost=0.05)]
    router = Router(providers, routing=RoutingSettings(preferred_providers=("absent",)))

    assert router.route(_task()).provider == "cheap"


def test_no_provider_available_skips_budget_and_circuit_checks() -> None:
    tracker = CostTracker(CostTrackingSettings(daily_limit=0.0, alert_threshold=None))
    router = Router([make_provider("fal", kinds=ONLY_SYNTHESIS)], cost_tracker=tracker)

    with pytest.raises(NoProviderAvailable):
        router.route(_task(CapabilityKind.TEXT_VALIDATION))


def test_budget_exceeded_blocks_before_any_provider_call() -> None:
    tracker = CostTracker(CostTrackingSettings(daily_limit=0.05, alert_threshold=None))
    provider = make_provider("only", cost=0.05)
    router = Router([provider], cost_tracker=tracker)

    router.route(_task())
    with pytest.raises(BudgetExceeded, match="Budget limit exceeded"):
        router.route(_task())

    assert len(provider.calls) == 1


def test_budget_recovers_after_clear() -> None:
    tracker = CostTracker(CostTrackingSettings(daily_limit=0.05, alert_threshold=None))
    router = Router([make_provider("only", cost=0.05)], cost_tracker=tracker)
    router.route(_task())
    assert tracker.can_proceed() is False

    tracker.clear()

    assert router.route(_task()).success is True


def test_open_circuit_is_skipped_and_reported() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker(failure_threshold=1, clock=clock)
    primary = make_provider("primary", cost=0.01, failure=retryable())
    backup = make_provider("backup", cost=0.05)
    router = Router([primary, backup], circuit_breaker=breaker)

    assert router.route(_task()).provider == "backup"
    assert router.route(_task()).provider == "backup"

    assert len(primary.calls) == 1
    status = router.get_circuit_breaker_status()
    assert status["primary"].state is CircuitStatus.OPEN
    assert status["primary"].failures == 1
    assert status["backup"].state is CircuitStatus.CLOSED


def test_all_skipped_raises_without_last_error() -> None:
    breaker = CircuitBreaker(failure_threshold=1, clock=FakeClock())
    breaker.record_failure("only")
    router = Router([make_provider("only")], circuit_breaker=breaker)

    with pytest.raises(AllProvidersFailed) as raised:
        router.route(_task())

    assert raised.value.last_error is None
    assert raised.value.skipped == ("only",)


def test_reset_circuit_breaker_single_and_all() -> None:
    breaker = CircuitBreaker(failure_threshold=1, clock=FakeClock())
    router = Router([make_provider("a"), make_provider("b")], circuit_breaker=breaker)
    breaker.record_failure("a")
    breaker.record_failure("b")

    router.reset_circuit_breaker("a")
    assert router.get_circuit_breaker_status()["a"].state is CircuitStatus.CLOSED
    assert router.get_circuit_breaker_status()["b"].state is CircuitStatus.OPEN

    router.reset_circuit_breaker()
    assert router.get_circuit_breaker_status()["b"].state is CircuitStatus.CLOSED


def test_estimate_cost_uses_every_capable_provider() -> None:
    router = Router(
        [
            make_provider("a", cost=0.01),
            make_provider("b", cost=0.03),
            make_provider("fal", kinds=ONLY_SYNTHESIS, cost=0.5),
        ],
    )

    estimate = router.estimate_cost(
        Task(kind=X, options=TaskOptions(max_tokens=2000)),
    )

    assert estimate.by_provider == pytest.approx({"a": 0.02, "b": 0.06})
    assert estimate.min == pytest.approx(0.02)
    assert estimate.max == pytest.approx(0.06)
    assert estimate.mean == pytest.approx(0.04)


def test_estimate_cost_without_candidates_raises() -> None:
    router = Router([make_provider("fal", kinds=ONLY_SYNTHESIS)])

    with pytest.raises(NoProviderAvailable):
        router.estimate_cost(_task())


def test_cost_stats_reflect_ledger() -> None:
    router = Router(
        [make_provider("a", cost=0.01)],
        cost_tracking=CostTrackingSettings(daily_limit=1.0, alert_threshold=None),
    )
    for _ in range(3):
        router.route(_task())

    stats = router.get_cost_stats()

    assert stats.daily == pytest.approx(0.03)
    assert stats.monthly == pytest.approx(0.03)
    assert stats.by_provider == pytest.approx({"a": 0.03})
    assert stats.by_kind == pytest.approx({X: 0.03})
    assert stats.budget_usage.daily.percentage == pytest.approx(3.0)
    assert stats.budget_usage.monthly is None


def test_routers_do_not_share_state() -> None:
    first = Router([make_provider("a", failure=retryable()), make_provider("b", cost=0.5)])
    second = Router([make_provider("a"), make_provider("b", cost=0.5)])

    first.route(_task())

    assert first.circuit_breaker.get_failure_count("a") == 1
    assert second.circuit_breaker.get_failure_count("a") == 0
    assert second.cost_tracker.export() == []


def test_duplicate_provider_names_are_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate provider name"):
        Router([make_provider("a"), make_provider("a")])


def test_ledger_entry_matches_outcome() -> None:
    router = Router([make_provider("a", cost=0.02)])

    outcome = router.route(_task())

    assert router.cost_tracker.export() == [CostRecord.from_outcome(outcome)]


def test_concurrent_routes_keep_ledger_and_failure_counts_exact() -> None:
    threads_count, calls_per_thread = 8, 200
    flaky = make_provider("flaky", cost=0.01, failure=retryable())
    steady = make_provider("steady", cost=0.02)
    router = Router(
        [flaky, steady],
        circuit_breaker=CircuitBreaker(failure_threshold=threads_count * calls_per_thread + 1),
    )
    start_event = threading.Event()
    served: list[str] = []

    def _worker() -> None:
        start_event.wait()
        for _ in range(calls_per_thread):
            served.append(router.route(_task()).provider)

    threads = [threading.Thread(target=_worker, daemon=True) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    start_event.set()
    for thread in threads:
        thread.join(timeout=30)
        assert thread.is_alive() is False

    total = threads_count * calls_per_thread
    ledger = router.cost_tracker.export()
    assert len(served) == total
    assert set(served) == {"steady"}
    assert len(ledger) == total
    assert {record.provider for record in ledger} == {"steady"}
    assert router.cost_tracker.get_monthly_cost() == pytest.approx(total * 0.02)
    assert router.circuit_breaker.get_failure_count("flaky") == total
    assert router.circuit_breaker.get_failure_count("steady") == 0
