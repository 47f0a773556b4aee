"""Routing error taxonomy."""

from __future__ import annotations

from ai_integration.router.models import CapabilityKind, ClassifiedError


class RoutingError(RuntimeError):
    """Base class for fatal routing conditions."""


class NoProviderAvailable(RoutingError):
    """No registered provider supports the requested capability-kind."""

    def __init__(self, kind: CapabilityKind) -> None:
        super().__init__(f"No provider supports capability-kind {kind.value!r}")
        self.kind = kind


class BudgetExceeded(RoutingError):
    """The pre-flight budget gate refused the call."""

    def __init__(self, *, daily_cost: float, monthly_cost: float) -> None:
        super().__init__(
            "Budget limit exceeded. Cannot process request "
            f"(daily=${daily_cost:.4f}, monthly=${monthly_cost:.4f}).",
        )
        self.daily_cost = daily_cost
        self.monthly_cost = monthly_cost


class AllProvidersFailed(RoutingError):
    """Every candidate failed or was skipped by an open circuit."""

    def __init__(
        self,
        kind: CapabilityKind,
        *,
        last_error: ClassifiedError | None,
        attempted: tuple[str, ...] = (),
        skipped: tuple[str, ...] = (),
    ) -> None:
        if last_error is not None:
            message = f"All providers failed for {kind.value!r}: {last_error.message}"
        else:
            message = f"All providers failed for {kind.value!r}: no provider could be attempted"
        super().__init__(message)
        self.kind = kind
        self.last_error = last_error
        self.attempted = attempted
        self.skipped = skipped


class ProviderError(RuntimeError):
    """Raised by providers to report a classified execution failure."""

    def __init__(self, message: str, *, retryable: bool, code: str = "PROVIDER_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable

    def to_classified(self) -> ClassifiedError:
        return ClassifiedError(code=self.code, message=str(self), retryable=self.retryable)
