"""Pipeline inputs, per-stage results and run bookkeeping."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ai_integration.router.cost_tracker import local_now
from ai_integration.router.models import ClassifiedError, ValidationIssue

VALIDATION_FAILED = "VALIDATION_FAILED"
PIPELINE_ERROR = "PIPELINE_ERROR"


class PipelineStage(str, Enum):
    """Stage reached by a pipeline run."""

    IMAGE_ANALYSIS = "image-analysis"
    PROMPT_GENERATION = "prompt-generation"
    CULTURAL_VALIDATION = "cultural-validation"
    ASSET_GENERATION = "asset-generation"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class PipelineOptions:
    """Caller options for one pipeline run."""

    analyze_image: bool = True
    analysis_detail: str = "medium"
    prompt_variations: int = 3
    prompt_temperature: float = 0.7
    include_negative_prompt: bool = True
    validation_threshold: float = 70.0
    strict_mode: bool = False
    skip_validation: bool = False
    stop_on_validation_failure: bool = True
    retry_failed_steps: bool = True
    asset_count: int = 1
    asset_size: str = "1024x1024"
    asset_quality: str = "standard"
    asset_style: str = "natural"


@dataclass(frozen=True, slots=True)
class PipelineInput:
    """Text-to-image or image-to-image request."""

    text: str | None = None
    source_image: str | None = None
    context: Mapping[str, Any] = field(default_factory=dict)
    options: PipelineOptions = field(default_factory=PipelineOptions)

    @property
    def runs_analysis(self) -> bool:
        return bool(self.source_image) and self.options.analyze_image


@dataclass(frozen=True, slots=True)
class StageMetadata:
    """Provider accounting for one routed call."""

    provider: str
    cost: float
    elapsed_seconds: float
    model: str | None = None


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Output of the image-analysis stage."""

    description: str
    attributes: Mapping[str, str]
    tags: tuple[str, ...]
    confidence: float
    metadata: StageMetadata


@dataclass(frozen=True, slots=True)
class GeneratedPrompts:
    """Output of the prompt-generation stage."""

    primary: str
    variations: tuple[str, ...]
    negative_prompt: str | None
    keywords: tuple[str, ...]
    metadata: StageMetadata


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Output of the cultural-validation stage."""

    score: float
    passes: bool
    threshold: float
    issues: tuple[ValidationIssue, ...]
    suggestions: tuple[str, ...]
    metadata: StageMetadata


@dataclass(frozen=True, slots=True)
class GeneratedAsset:
    """One synthesized asset."""

    url: str
    format: str
    width: int
    height: int
    prompt: str
    metadata: StageMetadata
    revised_prompt: str | None = None
    seed: int | None = None


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Frozen result of a terminal pipeline run."""

    pipeline_id: str
    success: bool
    stage: PipelineStage
    started_at: datetime
    finished_at: datetime
    total_cost: float
    total_seconds: float
    providers_used: tuple[str, ...]
    analysis: AnalysisResult | None = None
    prompts: GeneratedPrompts | None = None
    validation: ValidationResult | None = None
    assets: tuple[GeneratedAsset, ...] = ()
    error: ClassifiedError | None = None


class RunAlreadyTerminalError(RuntimeError):
    """Raised when a finished run is mutated."""


@dataclass(slots=True)
class PipelineRun:
    """Mutable accumulation state owned by one run."""

    pipeline_id: str
    started_at: datetime = field(default_factory=local_now)
    stage: PipelineStage = PipelineStage.IMAGE_ANALYSIS
    analysis: AnalysisResult | None = None
    prompts: GeneratedPrompts | None = None
    validation: ValidationResult | None = None
    assets: list[GeneratedAsset] = field(default_factory=list)
    total_cost: float = 0.0
    providers_used: list[str] = field(default_factory=list)
    result: PipelineResult | None = None
    _started_monotonic: float = field(default_factory=time.monotonic)

    def enter(self, stage: PipelineStage) -> None:
        self._ensure_open()
        self.stage = stage

    def account(self, metadata: StageMetadata) -> None:
        """Add one executed call's cost and provider to the run totals."""

        self._ensure_open()
        self.total_cost += metadata.cost
        if metadata.provider not in self.providers_used:
            self.providers_used.append(metadata.provider)

    def finish(
        self,
        *,
        success: bool,
        error: ClassifiedError | None = None,
    ) -> PipelineResult:
        self._ensure_open()
        if success:
            self.stage = PipelineStage.COMPLETE
        self.result = PipelineResult(
            pipeline_id=self.pipeline_id,
            success=success,
            stage=self.stage,
            started_at=self.started_at,
            finished_at=local_now(),
            total_cost=self.total_cost,
            total_seconds=time.monotonic() - self._started_monotonic,
            providers_used=tuple(self.providers_used),
            analysis=self.analysis,
            prompts=self.prompts,
            validation=self.validation,
            assets=tuple(self.assets),
            error=error,
        )
        return self.result

    def _ensure_open(self) -> None:
        if self.result is not None:
            raise RunAlreadyTerminalError(f"Pipeline run {self.pipeline_id} is already terminal")
