"""Stage adapters that turn pipeline steps into routed tasks.

Each adapter builds one :class:`~ai_integration.router.models.Task`, routes it
and unpacks the tagged payload of the returned outcome. Router exceptions
propagate unchanged; failed outcomes and payloads of the wrong kind raise
:class:`StageError`.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, TypeVar

from ai_integration.pipeline.models import (
    AnalysisResult,
    GeneratedAsset,
    GeneratedPrompts,
    PipelineStage,
    StageMetadata,
    ValidationResult,
)
from ai_integration.router.models import (
    AnalysisPayload,
    CapabilityKind,
    GenerationPayload,
    Outcome,
    SynthesisPayload,
    Task,
    TaskInput,
    TaskOptions,
    ValidationPayload,
)
from ai_integration.router.router import Router

_PayloadT = TypeVar("_PayloadT")

ANALYSIS_MAX_TOKENS = {"low": 500, "medium": 1000, "high": 2000}
GENERATION_MAX_TOKENS = 1500
VALIDATION_MAX_TOKENS = 2000
VALIDATION_TEMPERATURE = 0.3
CRITICAL_SEVERITY = "critical"


class StageError(RuntimeError):
    """Pipeline stage failure."""

    def __init__(
        self,
        stage: PipelineStage,
        message: str,
        *,
        code: str | None = None,
        metadata: StageMetadata | None = None,
    ) -> None:
        super().__init__(f"Stage {stage.value} failed: {message}")
        self.stage = stage
        self.code = code
        # Set when the provider succeeded and was charged.
        self.metadata = metadata


def _unpack(stage: PipelineStage, outcome: Outcome, payload_type: type[_PayloadT]) -> _PayloadT:
    if not outcome.success:
        error = outcome.error
        message = error.message if error else f"{outcome.provider} returned no result"
        raise StageError(stage, message, code=error.code if error else None)
    if not isinstance(outcome.payload, payload_type):
        raise StageError(
            stage,
            f"{outcome.provider} returned {type(outcome.payload).__name__}, "
            f"expected {payload_type.__name__}",
            metadata=_metadata(outcome),
        )
    return outcome.payload


def _metadata(outcome: Outcome) -> StageMetadata:
    return StageMetadata(
        provider=outcome.provider,
        cost=outcome.cost,
        elapsed_seconds=outcome.elapsed_seconds,
        model=outcome.model,
    )


class ImageAnalyzer:
    """Describe a source image through a vision-analysis provider."""

    def __init__(self, router: Router) -> None:
        self.router = router

    def analyze(
        self,
        image: str,
        context: Mapping[str, Any],
        *,
        detail: str = "medium",
    ) -> AnalysisResult:
        if detail not in ANALYSIS_MAX_TOKENS:
            raise ValueError(
                f"Invalid analysis detail: {detail!r}. Use one of: "
                f"{', '.join(ANALYSIS_MAX_TOKENS)}",
            )
        task = Task(
            kind=CapabilityKind.VISION_ANALYSIS,
            input=TaskInput(
                text=f"Analyze this image with {detail} detail.",
                image=image,
                context=context,
            ),
            options=TaskOptions(max_tokens=ANALYSIS_MAX_TOKENS[detail]),
        )
        outcome = self.router.route(task)
        payload = _unpack(PipelineStage.IMAGE_ANALYSIS, outcome, AnalysisPayload)
        return AnalysisResult(
            description=payload.description,
            attributes=dict(payload.attributes),
            tags=tuple(payload.tags),
            confidence=payload.confidence,
            metadata=_metadata(outcome),
        )


class PromptGenerator:
    """Turn a request (and optional image analysis) into synthesis prompts."""

    def __init__(self, router: Router) -> None:
        self.router = router

    def generate(  # noqa: PLR0913
        self,
        text: str | None,
        context: Mapping[str, Any],
        *,
        analysis: AnalysisResult | None = None,
        variations: int = 3,
        temperature: float = 0.7,
        include_negative_prompt: bool = True,
    ) -> GeneratedPrompts:
        request = text or (analysis.description if analysis else None)
        if not request:
            raise StageError(PipelineStage.PROMPT_GENERATION, "no text or image analysis given")

        task_context = dict(context)
        if analysis is not None:
            task_context["analysis_description"] = analysis.description
            task_context["analysis_tags"] = ", ".join(analysis.tags)
            task_context.update(analysis.attributes)
        task = Task(
            kind=CapabilityKind.TEXT_GENERATION,
            input=TaskInput(text=request, context=task_context),
            options=TaskOptions(
                temperature=temperature,
                max_tokens=GENERATION_MAX_TOKENS,
                variations=variations,
            ),
        )
        outcome = self.router.route(task)
        payload = _unpack(PipelineStage.PROMPT_GENERATION, outcome, GenerationPayload)
        return GeneratedPrompts(
            primary=payload.primary,
            variations=tuple(payload.variations),
            negative_prompt=payload.negative_prompt if include_negative_prompt else None,
            keywords=tuple(payload.keywords),
            metadata=_metadata(outcome),
        )


class PromptValidator:
    """Score a prompt for cultural and historical accuracy."""

    def __init__(self, router: Router) -> None:
        self.router = router

    def validate(
        self,
        prompt: str,
        context: Mapping[str, Any],
        *,
        threshold: float = 70.0,
        strict_mode: bool = False,
    ) -> ValidationResult:
        """Route ``prompt`` for validation and decide whether it passes.

        A prompt passes when its score reaches ``threshold``; strict mode also
        rejects prompts with any critical issue.
        """

        task = Task(
            kind=CapabilityKind.TEXT_VALIDATION,
            input=TaskInput(text=prompt, context=context),
            options=TaskOptions(
                temperature=VALIDATION_TEMPERATURE,
                max_tokens=VALIDATION_MAX_TOKENS,
            ),
        )
        outcome = self.router.route(task)
        payload = _unpack(PipelineStage.CULTURAL_VALIDATION, outcome, ValidationPayload)
        passes = payload.score >= threshold
        if strict_mode:
            passes = passes and not any(
                issue.severity == CRITICAL_SEVERITY for issue in payload.issues
            )
        return ValidationResult(
            score=payload.score,
            passes=passes,
            threshold=threshold,
            issues=tuple(payload.issues),
            suggestions=tuple(payload.suggestions),
            metadata=_metadata(outcome),
        )


class AssetGenerator:
    """Synthesize images from a prompt, one routed call per asset."""

    def __init__(self, router: Router) -> None:
        self.router = router

    def generate(  # noqa: PLR0913
        self,
        prompts: GeneratedPrompts | str,
        context: Mapping[str, Any],
        *,
        count: int = 1,
        size: str = "1024x1024",
        quality: str = "standard",
        style: str = "natural",
    ) -> list[GeneratedAsset]:
        return list(
            self.iter_generate(
                prompts,
                context,
                count=count,
                size=size,
                quality=quality,
                style=style,
            ),
        )

    def iter_generate(  # noqa: PLR0913
        self,
        prompts: GeneratedPrompts | str,
        context: Mapping[str, Any],
        *,
        count: int = 1,
        size: str = "1024x1024",
        quality: str = "standard",
        style: str = "natural",
    ) -> Iterator[GeneratedAsset]:
        """Yield assets as they are synthesized so callers can account partial work."""

        if isinstance(prompts, str):
            prompt, negative_prompt = prompts, None
        else:
            prompt, negative_prompt = prompts.primary, prompts.negative_prompt

        task_context = dict(context)
        if negative_prompt:
            task_context["negative_prompt"] = negative_prompt
        task = Task(
            kind=CapabilityKind.IMAGE_SYNTHESIS,
            input=TaskInput(text=prompt, context=task_context),
            options=TaskOptions(size=size, quality=quality, style=style),
        )
        for _ in range(count):
            outcome = self.router.route(task)
            payload = _unpack(PipelineStage.ASSET_GENERATION, outcome, SynthesisPayload)
            yield GeneratedAsset(
                url=payload.url,
                format=payload.format,
                width=payload.width,
                height=payload.height,
                prompt=prompt,
                metadata=_metadata(outcome),
                revised_prompt=payload.revised_prompt,
                seed=payload.seed,
            )
