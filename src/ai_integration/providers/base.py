"""Provider interface consumed by the router."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ai_integration.router.models import CapabilityKind, Outcome, ProviderDescriptor, Task


@runtime_checkable
class Provider(Protocol):
    """Protocol implemented by capability providers.

    ``execute`` reports expected failures as an ``Outcome`` with a classified
    error, or raises :class:`~ai_integration.router.errors.ProviderError`.
    Any other exception is treated by the router as a retryable failure.
    """

    @property
    def name(self) -> str:
        """Unique provider key."""

    @property
    def descriptor(self) -> ProviderDescriptor:
        """Static routing profile registered with the router."""

    def execute(self, task: Task) -> Outcome:
        """Run ``task`` and return its outcome."""

    def estimate_cost(self, task: Task) -> float:
        """Return the provider's own cost estimate for ``task`` in USD."""

    def supports(self, kind: CapabilityKind) -> bool:
        """Return whether the provider can execute tasks of ``kind``."""
