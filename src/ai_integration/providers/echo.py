"""Deterministic in-process providers for demos, smoke runs and tests.

Echo providers never call a network service. They answer every supported
capability-kind with a structured payload derived from the task input, and
can be told to fail so that failover and circuit behaviour can be observed
from the CLI.
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable, Iterable
from datetime import datetime

from ai_integration.router.cost_tracker import local_now
from ai_integration.router.errors import ProviderError
from ai_integration.router.models import (
    AnalysisPayload,
    CapabilityKind,
    ClassifiedError,
    GenerationPayload,
    Outcome,
    Payload,
    ProviderDescriptor,
    SynthesisPayload,
    Task,
    ValidationPayload,
)

_TEXT_KINDS = frozenset(
    {
        CapabilityKind.VISION_ANALYSIS,
        CapabilityKind.TEXT_GENERATION,
        CapabilityKind.TEXT_VALIDATION,
    },
)
_ALL_KINDS = frozenset(CapabilityKind)
_DEFAULT_NEGATIVE_PROMPT = "blurry, distorted proportions, modern vehicles, text artifacts"

DEMO_DESCRIPTORS: tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor("openrouter", _TEXT_KINDS, cost_per_call=0.02, average_latency_ms=1500),
    ProviderDescriptor(
        "fal",
        frozenset({CapabilityKind.IMAGE_SYNTHESIS}),
        cost_per_call=0.05,
        average_latency_ms=3000,
    ),
    ProviderDescriptor("openai", _ALL_KINDS, cost_per_call=0.03, average_latency_ms=2000),
    ProviderDescriptor("anthropic", _TEXT_KINDS, cost_per_call=0.025, average_latency_ms=1800),
    ProviderDescriptor("google", _TEXT_KINDS, cost_per_call=0.015, average_latency_ms=1200),
)


class EchoProvider:
    """Provider that echoes its input back as a well-formed payload."""

    def __init__(  # noqa: PLR0913
        self,
        descriptor: ProviderDescriptor,
        *,
        model: str = "echo-1",
        failure: ClassifiedError | None = None,
        raises: Exception | None = None,
        validation_score: float = 92.0,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._descriptor = descriptor
        self.model = model
        self.failure = failure
        self.raises = raises
        self.validation_score = validation_score
        self._clock = clock
        self.calls: list[Task] = []

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def descriptor(self) -> ProviderDescriptor:
        return self._descriptor

    def supports(self, kind: CapabilityKind) -> bool:
        return self._descriptor.supports(kind)

    def estimate_cost(self, task: Task) -> float:
        """Flat per-call cost, scaled by ``max_tokens / 1000`` for text tasks."""

        base = self._descriptor.cost_per_call
        if task.kind in _TEXT_KINDS and task.options.max_tokens:
            return base * task.options.max_tokens / 1000
        return base

    def execute(self, task: Task) -> Outcome:
        self.calls.append(task)
        started = time.monotonic()
        if not self.supports(task.kind):
            raise ProviderError(
                f"{self.name} does not support {task.kind.value}",
                retryable=False,
                code="UNSUPPORTED_KIND",
            )
        if self.raises is not None:
            raise self.raises
        if self.failure is not None:
            return Outcome(
                success=False,
                provider=self.name,
                kind=task.kind,
                timestamp=self._clock(),
                model=self.model,
                error=self.failure,
                elapsed_seconds=time.monotonic() - started,
            )
        return Outcome(
            success=True,
            provider=self.name,
            kind=task.kind,
            timestamp=self._clock(),
            cost=self._descriptor.cost_per_call,
            model=self.model,
            payload=self._payload(task),
            elapsed_seconds=time.monotonic() - started,
        )

    def _payload(self, task: Task) -> Payload:
        text = (task.input.text or "").strip()
        context = task.input.context
        if task.kind is CapabilityKind.VISION_ANALYSIS:
            return AnalysisPayload(
                description=f"Echo analysis of {task.input.image or 'image'}",
                attributes={key: str(value) for key, value in context.items()},
                tags=tuple(sorted(str(key) for key in context)),
                confidence=0.85,
            )
        if task.kind is CapabilityKind.TEXT_GENERATION:
            primary = text or "Classic air-cooled vehicle, studio photograph"
            count = max(1, task.options.variations or 1)
            return GenerationPayload(
                primary=primary,
                variations=tuple(f"{primary} (variation {index})" for index in range(1, count)),
                negative_prompt=_DEFAULT_NEGATIVE_PROMPT,
                keywords=tuple(sorted({word.lower() for word in primary.split()[:5]})),
            )
        if task.kind is CapabilityKind.TEXT_VALIDATION:
            return ValidationPayload(
                score=self.validation_score,
                suggestions=("Consider adding era-specific details",),
            )
        width, height = _parse_size(task.options.size)
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
        return SynthesisPayload(
            url=f"echo://{self.name}/{digest}.png",
            width=width,
            height=height,
            revised_prompt=text or None,
        )


def build_demo_providers(
    *,
    failing: Iterable[str] = (),
    validation_score: float = 92.0,
) -> list[EchoProvider]:
    """Build echo providers with the built-in demo routing profiles.

    Providers named in ``failing`` answer every call with a retryable failure.
    """

    failing_names = {name.strip().lower() for name in failing}
    unknown = failing_names - {descriptor.name for descriptor in DEMO_DESCRIPTORS}
    if unknown:
        raise ValueError(f"Unknown demo provider(s): {', '.join(sorted(unknown))}")
    return [
        EchoProvider(
            descriptor,
            failure=(
                ClassifiedError(
                    code="SIMULATED_OUTAGE",
                    message=f"{descriptor.name} simulated outage",
                    retryable=True,
                )
                if descriptor.name in failing_names
                else None
            ),
            validation_score=validation_score,
        )
        for descriptor in DEMO_DESCRIPTORS
    ]


def _parse_size(value: str | None) -> tuple[int, int]:
    if not value or "x" not in value:
        return 1024, 1024
    width, _, height = value.partition("x")
    try:
        return int(width), int(height)
    except ValueError:
        return 1024, 1024
