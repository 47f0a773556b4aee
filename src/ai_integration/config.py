"""Runtime configuration for routing, budget tracking and circuit breaking."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from ai_integration.router.models import RoutingStrategy


@dataclass(slots=True)
class RoutingSettings:
    """Provider selection and failover settings."""

    strategy: RoutingStrategy = RoutingStrategy.COST_OPTIMIZED
    preferred_providers: tuple[str, ...] = ()
    fallback_enabled: bool = True


@dataclass(slots=True)
class CostTrackingSettings:
    """Budget gate settings; limits are in USD, ``None`` means no limit."""

    enabled: bool = True
    daily_limit: float | None = None
    monthly_limit: float | None = None
    alert_threshold: float | None = 0.8


@dataclass(slots=True)
class CircuitBreakerSettings:
    """Per-provider failure isolation settings."""

    failure_threshold: int = 3
    recovery_timeout_seconds: float = 60.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    routing: RoutingSettings = field(default_factory=RoutingSettings)
    cost_tracking: CostTrackingSettings = field(default_factory=CostTrackingSettings)
    circuit_breaker: CircuitBreakerSettings = field(default_factory=CircuitBreakerSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suited to local development."""

        return cls(
            routing=RoutingSettings(
                strategy=_env_strategy("AI_INTEGRATION_ROUTING_STRATEGY"),
                preferred_providers=_env_csv("AI_INTEGRATION_PREFERRED_PROVIDERS"),
                fallback_enabled=_env_bool("AI_INTEGRATION_FALLBACK_ENABLED", default=True),
            ),
            cost_tracking=CostTrackingSettings(
                enabled=_env_bool("AI_INTEGRATION_COST_TRACKING_ENABLED", default=True),
                daily_limit=_env_optional_float("AI_INTEGRATION_DAILY_LIMIT"),
                monthly_limit=_env_optional_float("AI_INTEGRATION_MONTHLY_LIMIT"),
                alert_threshold=_env_optional_float(
                    "AI_INTEGRATION_ALERT_THRESHOLD",
                    default=0.8,
                ),
            ),
            circuit_breaker=CircuitBreakerSettings(
                failure_threshold=int(os.getenv("AI_INTEGRATION_CIRCUIT_FAILURE_THRESHOLD", "3")),
                recovery_timeout_seconds=float(
                    os.getenv("AI_INTEGRATION_CIRCUIT_RECOVERY_SECONDS", "60"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any value is out of range."""

        budget = self.cost_tracking
        if budget.daily_limit is not None and budget.daily_limit < 0:
            raise ValueError("AI_INTEGRATION_DAILY_LIMIT must be >= 0.")
        if budget.monthly_limit is not None and budget.monthly_limit < 0:
            raise ValueError("AI_INTEGRATION_MONTHLY_LIMIT must be >= 0.")
        if budget.alert_threshold is not None and not 0 < budget.alert_threshold <= 1:
            raise ValueError("AI_INTEGRATION_ALERT_THRESHOLD must be in (0, 1].")
        if self.circuit_breaker.failure_threshold <= 0:
            raise ValueError("AI_INTEGRATION_CIRCUIT_FAILURE_THRESHOLD must be a positive integer.")
        if self.circuit_breaker.recovery_timeout_seconds < 0:
            raise ValueError("AI_INTEGRATION_CIRCUIT_RECOVERY_SECONDS must be >= 0.")
        if len(set(self.routing.preferred_providers)) != len(self.routing.preferred_providers):
            raise ValueError("AI_INTEGRATION_PREFERRED_PROVIDERS must not repeat provider names.")


def _env_strategy(name: str) -> RoutingStrategy:
    raw = os.getenv(name, RoutingStrategy.COST_OPTIMIZED.value).strip().lower()
    try:
        return RoutingStrategy(raw)
    except ValueError as error:
        supported = ", ".join(strategy.value for strategy in RoutingStrategy)
        raise ValueError(
            f"Invalid {name} value: {raw!r}. Use one of: {supported}.",
        ) from error


def _env_csv(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return ()
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _env_optional_float(name: str, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"", "none", "off"}:
        return None
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid float value for {name}: {raw!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
