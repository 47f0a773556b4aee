"""Static per-stage cost heuristics for pipeline estimates."""

from __future__ import annotations

import os
from dataclasses import dataclass

from ai_integration.pipeline.models import PipelineInput, PipelineStage

STAGE_PRICING_ENV = "AI_INTEGRATION_STAGE_PRICING"

DEFAULT_STAGE_PRICING: dict[PipelineStage, float] = {
    PipelineStage.IMAGE_ANALYSIS: 0.015,
    PipelineStage.PROMPT_GENERATION: 0.03,
    PipelineStage.CULTURAL_VALIDATION: 0.025,
    PipelineStage.ASSET_GENERATION: 0.05,
}


@dataclass(frozen=True, slots=True)
class PipelineCostEstimate:
    """Per-stage estimate in USD; asset generation is already multiplied by count."""

    by_stage: dict[PipelineStage, float]

    @property
    def total(self) -> float:
        return sum(self.by_stage.values())


def estimate_pipeline_cost(pipeline_input: PipelineInput) -> PipelineCostEstimate:
    """Estimate the cost of running ``pipeline_input`` without routing anything."""

    pricing = stage_pricing()
    options = pipeline_input.options
    by_stage: dict[PipelineStage, float] = {}
    if pipeline_input.runs_analysis:
        by_stage[PipelineStage.IMAGE_ANALYSIS] = pricing[PipelineStage.IMAGE_ANALYSIS]
    by_stage[PipelineStage.PROMPT_GENERATION] = pricing[PipelineStage.PROMPT_GENERATION]
    if not options.skip_validation:
        by_stage[PipelineStage.CULTURAL_VALIDATION] = pricing[PipelineStage.CULTURAL_VALIDATION]
    by_stage[PipelineStage.ASSET_GENERATION] = (
        pricing[PipelineStage.ASSET_GENERATION] * max(options.asset_count, 0)
    )
    return PipelineCostEstimate(by_stage=by_stage)


def stage_pricing() -> dict[PipelineStage, float]:
    """Default stage prices with overrides from the environment applied."""

    pricing = dict(DEFAULT_STAGE_PRICING)
    pricing.update(_parse_stage_pricing(os.getenv(STAGE_PRICING_ENV, "")))
    return pricing


def _parse_stage_pricing(raw: str) -> dict[PipelineStage, float]:
    """Parse `AI_INTEGRATION_STAGE_PRICING` mapping.

    Format:
    - `stage:cost_usd`, e.g. `asset-generation:0.08`
    - multiple entries separated by `,`
    - unknown stages and malformed costs are ignored
    """

    parsed: dict[PipelineStage, float] = {}
    if not raw.strip():
        return parsed

    for entry in raw.split(","):
        value = entry.strip()
        if not value:
            continue
        parts = [part.strip() for part in value.split(":")]
        if len(parts) != 2:
            continue
        stage_name, cost = parts
        try:
            stage = PipelineStage(stage_name.lower())
            parsed_cost = float(cost)
        except ValueError:
            continue
        if stage is PipelineStage.COMPLETE or parsed_cost < 0:
            continue
        parsed[stage] = parsed_cost
    return parsed
