"""Four-stage asset pipeline on top of the router."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

from ai_integration.pipeline.models import (
    PIPELINE_ERROR,
    VALIDATION_FAILED,
    AnalysisResult,
    GeneratedAsset,
    GeneratedPrompts,
    PipelineInput,
    PipelineOptions,
    PipelineResult,
    PipelineRun,
    PipelineStage,
    ValidationResult,
)
from ai_integration.pipeline.pricing import PipelineCostEstimate, estimate_pipeline_cost
from ai_integration.pipeline.stages import (
    AssetGenerator,
    ImageAnalyzer,
    PromptGenerator,
    PromptValidator,
    StageError,
)
from ai_integration.router.errors import RoutingError
from ai_integration.router.models import ClassifiedError
from ai_integration.router.router import Router

logger = logging.getLogger(__name__)


class Pipeline:
    """Run image-analysis, prompt-generation, validation and synthesis in order.

    Every routed call goes through the shared router, so failover, circuit
    breaking and budget gating apply per stage. :meth:`execute` never raises:
    failures become a terminal :class:`PipelineResult` carrying the partial
    stage results and the cost of the stages that actually ran.
    """

    def __init__(self, router: Router) -> None:
        self.router = router
        self.analyzer = ImageAnalyzer(router)
        self.generator = PromptGenerator(router)
        self.validator = PromptValidator(router)
        self.asset_generator = AssetGenerator(router)

    def execute(self, pipeline_input: PipelineInput) -> PipelineResult:
        run = PipelineRun(pipeline_id=str(uuid4()))
        options = pipeline_input.options
        context = dict(pipeline_input.context)
        logger.info("Pipeline %s started", run.pipeline_id)

        try:
            if pipeline_input.runs_analysis:
                run.enter(PipelineStage.IMAGE_ANALYSIS)
                run.analysis = self.analyzer.analyze(
                    pipeline_input.source_image or "",
                    context,
                    detail=options.analysis_detail,
                )
                run.account(run.analysis.metadata)

            run.enter(PipelineStage.PROMPT_GENERATION)
            run.prompts = self.generator.generate(
                pipeline_input.text,
                context,
                analysis=run.analysis,
                variations=options.prompt_variations,
                temperature=options.prompt_temperature,
                include_negative_prompt=options.include_negative_prompt,
            )
            run.account(run.prompts.metadata)

            if not options.skip_validation:
                run.enter(PipelineStage.CULTURAL_VALIDATION)
                run.validation = self.validator.validate(
                    run.prompts.primary,
                    context,
                    threshold=options.validation_threshold,
                    strict_mode=options.strict_mode,
                )
                run.account(run.validation.metadata)
                if not run.validation.passes and options.stop_on_validation_failure:
                    logger.warning(
                        "Pipeline %s stopped: validation score %.1f below threshold %.1f",
                        run.pipeline_id,
                        run.validation.score,
                        options.validation_threshold,
                    )
                    return run.finish(
                        success=False,
                        error=ClassifiedError(
                            code=VALIDATION_FAILED,
                            message=(
                                f"Validation failed with score {run.validation.score:g} "
                                f"(threshold {options.validation_threshold:g})"
                            ),
                            retryable=True,
                        ),
                    )

            run.enter(PipelineStage.ASSET_GENERATION)
            for asset in self.asset_generator.iter_generate(
                run.prompts,
                context,
                count=options.asset_count,
                size=options.asset_size,
                quality=options.asset_quality,
                style=options.asset_style,
            ):
                run.assets.append(asset)
                run.account(asset.metadata)

        except (StageError, RoutingError) as exc:
            if isinstance(exc, StageError) and exc.metadata is not None:
                run.account(exc.metadata)
            logger.error("Pipeline %s failed at %s: %s", run.pipeline_id, run.stage.value, exc)
            return run.finish(success=False, error=_pipeline_error(str(exc), options))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Pipeline %s unexpected error", run.pipeline_id)
            return run.finish(
                success=False,
                error=_pipeline_error(f"Unexpected error: {exc}", options),
            )

        result = run.finish(success=True)
        logger.info(
            "Pipeline %s completed in %.2fs, cost $%.4f",
            run.pipeline_id,
            result.total_seconds,
            result.total_cost,
        )
        return result

    def analyze_image(
        self,
        image: str,
        context: Mapping[str, Any] | None = None,
        *,
        detail: str = "medium",
    ) -> AnalysisResult:
        return self.analyzer.analyze(image, context or {}, detail=detail)

    def generate_prompts(
        self,
        text: str | None,
        context: Mapping[str, Any] | None = None,
        *,
        analysis: AnalysisResult | None = None,
        options: PipelineOptions | None = None,
    ) -> GeneratedPrompts:
        options = options or PipelineOptions()
        return self.generator.generate(
            text,
            context or {},
            analysis=analysis,
            variations=options.prompt_variations,
            temperature=options.prompt_temperature,
            include_negative_prompt=options.include_negative_prompt,
        )

    def validate_prompt(
        self,
        prompt: str,
        context: Mapping[str, Any] | None = None,
        *,
        options: PipelineOptions | None = None,
    ) -> ValidationResult:
        options = options or PipelineOptions()
        return self.validator.validate(
            prompt,
            context or {},
            threshold=options.validation_threshold,
            strict_mode=options.strict_mode,
        )

    def generate_assets(
        self,
        prompts: GeneratedPrompts | str,
        context: Mapping[str, Any] | None = None,
        *,
        options: PipelineOptions | None = None,
    ) -> list[GeneratedAsset]:
        options = options or PipelineOptions()
        return self.asset_generator.generate(
            prompts,
            context or {},
            count=options.asset_count,
            size=options.asset_size,
            quality=options.asset_quality,
            style=options.asset_style,
        )

    @staticmethod
    def estimate_cost(pipeline_input: PipelineInput) -> PipelineCostEstimate:
        """Static per-stage estimate; no provider is consulted."""

        return estimate_pipeline_cost(pipeline_input)


def _pipeline_error(message: str, options: PipelineOptions) -> ClassifiedError:
    return ClassifiedError(
        code=PIPELINE_ERROR,
        message=message,
        retryable=options.retry_failed_steps,
    )
