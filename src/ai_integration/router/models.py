"""Domain models shared by the router, providers and pipeline stages."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any


class CapabilityKind(str, Enum):
    """Closed set of AI operations a provider can be asked to perform."""

    VISION_ANALYSIS = "vision-analysis"
    TEXT_GENERATION = "text-generation"
    TEXT_VALIDATION = "text-validation"
    IMAGE_SYNTHESIS = "image-synthesis"


class RoutingStrategy(str, Enum):
    """Primary provider selection strategies."""

    COST_OPTIMIZED = "cost-optimized"
    QUALITY_FIRST = "quality-first"
    SPEED_FIRST = "speed-first"


class CircuitStatus(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass(frozen=True, slots=True)
class TaskInput:
    """Input payload for one routed task."""

    text: str | None = None
    image: str | None = None
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", MappingProxyType(dict(self.context)))


@dataclass(frozen=True, slots=True)
class TaskOptions:
    """Provider tuning knobs; providers ignore what they do not support."""

    temperature: float | None = None
    max_tokens: int | None = None
    variations: int | None = None
    size: str | None = None
    quality: str | None = None
    style: str | None = None


@dataclass(frozen=True, slots=True)
class Task:
    """Immutable unit of work routed to one provider."""

    kind: CapabilityKind
    input: TaskInput = field(default_factory=TaskInput)
    options: TaskOptions = field(default_factory=TaskOptions)


@dataclass(frozen=True, slots=True)
class ProviderDescriptor:
    """Static routing profile of one provider."""

    name: str
    kinds: frozenset[CapabilityKind]
    cost_per_call: float
    average_latency_ms: float

    def supports(self, kind: CapabilityKind) -> bool:
        return kind in self.kinds


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    """Provider or pipeline error with its retry classification."""

    code: str
    message: str
    retryable: bool


@dataclass(frozen=True, slots=True)
class AnalysisPayload:
    """Structured result of a vision-analysis call."""

    description: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    tags: tuple[str, ...] = ()
    confidence: float = 0.0


@dataclass(frozen=True, slots=True)
class GenerationPayload:
    """Structured result of a text-generation call."""

    primary: str
    variations: tuple[str, ...] = ()
    negative_prompt: str | None = None
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """One finding reported by a text-validation call."""

    severity: str
    category: str
    message: str
    suggestion: str | None = None


@dataclass(frozen=True, slots=True)
class ValidationPayload:
    """Structured result of a text-validation call (score is 0-100)."""

    score: float
    issues: tuple[ValidationIssue, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SynthesisPayload:
    """Structured result of an image-synthesis call."""

    url: str
    format: str = "png"
    width: int = 1024
    height: int = 1024
    seed: int | None = None
    revised_prompt: str | None = None


Payload = AnalysisPayload | GenerationPayload | ValidationPayload | SynthesisPayload

PAYLOAD_TYPES: dict[CapabilityKind, type] = {
    CapabilityKind.VISION_ANALYSIS: AnalysisPayload,
    CapabilityKind.TEXT_GENERATION: GenerationPayload,
    CapabilityKind.TEXT_VALIDATION: ValidationPayload,
    CapabilityKind.IMAGE_SYNTHESIS: SynthesisPayload,
}


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of one provider execution."""

    success: bool
    provider: str
    kind: CapabilityKind
    timestamp: datetime
    cost: float = 0.0
    elapsed_seconds: float = 0.0
    model: str | None = None
    payload: Payload | None = None
    error: ClassifiedError | None = None

    @property
    def retryable(self) -> bool:
        """Whether a failed outcome may be retried on another provider."""

        return self.error is not None and self.error.retryable


@dataclass(frozen=True, slots=True)
class CostRecord:
    """One immutable ledger entry."""

    timestamp: datetime
    cost: float
    provider: str
    kind: CapabilityKind | None = None

    @classmethod
    def from_outcome(cls, outcome: Outcome) -> CostRecord:
        return cls(
            timestamp=outcome.timestamp,
            cost=outcome.cost,
            provider=outcome.provider,
            kind=outcome.kind,
        )
