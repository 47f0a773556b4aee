"""Controllers for ai-integration CLI commands."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ai_integration.config import Settings
from ai_integration.pipeline.flow import build_router
from ai_integration.pipeline.models import PipelineInput, PipelineOptions, PipelineResult
from ai_integration.pipeline.pipeline import Pipeline
from ai_integration.pipeline.pricing import PipelineCostEstimate
from ai_integration.providers.echo import build_demo_providers
from ai_integration.router.errors import AllProvidersFailed, RoutingError
from ai_integration.router.models import (
    AnalysisPayload,
    CapabilityKind,
    GenerationPayload,
    Outcome,
    Payload,
    RoutingStrategy,
    SynthesisPayload,
    Task,
    TaskInput,
    TaskOptions,
    ValidationPayload,
)
from ai_integration.router.router import Router


@dataclass(slots=True)
class RouteRunCommand:
    """CLI input for one routed task against the demo providers."""

    kind: str
    text: str
    image: str | None = None
    failing_providers: tuple[str, ...] = ()
    strategy: str | None = None


@dataclass(slots=True)
class RouteEstimateCommand:
    """CLI input for a per-provider cost estimate."""

    kind: str
    max_tokens: int | None = None


@dataclass(slots=True)
class PipelineRunCommand:
    """CLI input for one pipeline run against the demo providers."""

    text: str | None
    image: str | None = None
    skip_validation: bool = False
    asset_count: int = 1
    validation_score: float = 92.0
    validation_threshold: float = 70.0
    failing_providers: tuple[str, ...] = ()


@dataclass(slots=True)
class PipelineEstimateCommand:
    """CLI input for a static pipeline cost estimate."""

    image: str | None = None
    skip_validation: bool = False
    asset_count: int = 1


@dataclass(slots=True)
class CommandResult:
    """Report to render in CLI plus overall success flag."""

    lines: list[str]
    success: bool


class AiIntegrationCliController:
    """Coordinates routing, pipeline and configuration CLI operations."""

    def route(self, command: RouteRunCommand) -> CommandResult:
        try:
            settings = _settings(strategy=command.strategy)
            router = build_router(
                build_demo_providers(failing=command.failing_providers),
                settings,
            )
        except ValueError as error:
            return CommandResult(lines=["Route run:", str(error)], success=False)

        task = Task(
            kind=CapabilityKind(command.kind),
            input=TaskInput(text=command.text, image=command.image),
        )
        lines = [f"Route run: kind={task.kind.value} strategy={settings.routing.strategy.value}"]
        try:
            outcome = router.route(task)
        except AllProvidersFailed as error:
            lines.append(f"Failed: {error}")
            lines.append(f"attempted={','.join(error.attempted) or '-'}")
            lines.append(f"skipped={','.join(error.skipped) or '-'}")
            lines.extend(render_circuit_lines(router))
            return CommandResult(lines=lines, success=False)
        except RoutingError as error:
            lines.append(f"Failed: {error}")
            return CommandResult(lines=lines, success=False)

        lines.extend(render_outcome_lines(outcome))
        lines.extend(render_circuit_lines(router))
        lines.extend(render_cost_lines(router))
        return CommandResult(lines=lines, success=outcome.success)

    def estimate(self, command: RouteEstimateCommand) -> list[str]:
        router = Router(build_demo_providers())
        task = Task(
            kind=CapabilityKind(command.kind),
            options=TaskOptions(max_tokens=command.max_tokens),
        )
        estimate = router.estimate_cost(task)
        lines = [
            f"Cost estimate: kind={task.kind.value} providers={len(estimate.by_provider)}",
            f"min=${estimate.min:.4f} max=${estimate.max:.4f} mean=${estimate.mean:.4f}",
        ]
        for name, cost in sorted(estimate.by_provider.items(), key=lambda item: item[1]):
            lines.append(f"  {name}: ${cost:.4f}")
        return lines

    def run_pipeline(self, command: PipelineRunCommand) -> CommandResult:
        try:
            settings = _settings()
            router = build_router(
                build_demo_providers(
                    failing=command.failing_providers,
                    validation_score=command.validation_score,
                ),
                settings,
            )
        except ValueError as error:
            return CommandResult(lines=["Pipeline run:", str(error)], success=False)

        pipeline_input = PipelineInput(
            text=command.text,
            source_image=command.image,
            options=PipelineOptions(
                skip_validation=command.skip_validation,
                asset_count=command.asset_count,
                validation_threshold=command.validation_threshold,
            ),
        )
        result = Pipeline(router).execute(pipeline_input)
        lines = render_pipeline_lines(result)
        lines.extend(render_cost_lines(router))
        return CommandResult(lines=lines, success=result.success)

    def estimate_pipeline(self, command: PipelineEstimateCommand) -> list[str]:
        pipeline_input = PipelineInput(
            source_image=command.image,
            options=PipelineOptions(
                skip_validation=command.skip_validation,
                asset_count=command.asset_count,
            ),
        )
        return render_pipeline_estimate_lines(Pipeline.estimate_cost(pipeline_input))

    def show_config(self) -> CommandResult:
        try:
            settings = _settings()
        except ValueError as error:
            return CommandResult(lines=["Configuration:", str(error)], success=False)

        routing = settings.routing
        budget = settings.cost_tracking
        circuit = settings.circuit_breaker
        return CommandResult(
            lines=[
                "Configuration:",
                f"  routing.strategy={routing.strategy.value}",
                f"  routing.preferred_providers={','.join(routing.preferred_providers) or '-'}",
                f"  routing.fallback_enabled={routing.fallback_enabled}",
                f"  cost_tracking.enabled={budget.enabled}",
                f"  cost_tracking.daily_limit={_money_or_dash(budget.daily_limit)}",
                f"  cost_tracking.monthly_limit={_money_or_dash(budget.monthly_limit)}",
                f"  cost_tracking.alert_threshold={_ratio_or_dash(budget.alert_threshold)}",
                f"  circuit_breaker.failure_threshold={circuit.failure_threshold}",
                f"  circuit_breaker.recovery_timeout_seconds={circuit.recovery_timeout_seconds:g}",
            ],
            success=True,
        )


def render_outcome_lines(outcome: Outcome) -> list[str]:
    if not outcome.success:
        error = outcome.error
        return [
            f"Failed on {outcome.provider}: "
            f"{error.code if error else 'UNKNOWN_ERROR'} "
            f"{error.message if error else ''}".rstrip(),
            f"retryable={outcome.retryable}",
        ]
    lines = [
        f"Served by {outcome.provider} model={outcome.model or '-'} "
        f"cost=${outcome.cost:.4f} elapsed={outcome.elapsed_seconds:.3f}s",
    ]
    lines.extend(render_payload_lines(outcome.payload))
    return lines


def render_payload_lines(payload: Payload | None) -> list[str]:
    if isinstance(payload, AnalysisPayload):
        return [
            f"  description: {payload.description}",
            f"  tags: {', '.join(payload.tags) or '-'}",
            f"  confidence: {payload.confidence:.2f}",
        ]
    if isinstance(payload, GenerationPayload):
        lines = [f"  primary: {payload.primary}"]
        lines.extend(f"  variation: {variation}" for variation in payload.variations)
        if payload.negative_prompt:
            lines.append(f"  negative: {payload.negative_prompt}")
        return lines
    if isinstance(payload, ValidationPayload):
        lines = [f"  score: {payload.score:g}"]
        lines.extend(
            f"  issue[{issue.severity}/{issue.category}]: {issue.message}"
            for issue in payload.issues
        )
        lines.extend(f"  suggestion: {suggestion}" for suggestion in payload.suggestions)
        return lines
    if isinstance(payload, SynthesisPayload):
        return [f"  asset: {payload.url} ({payload.width}x{payload.height} {payload.format})"]
    return []


def render_circuit_lines(router: Router) -> list[str]:
    lines = ["Circuits:"]
    for name, status in router.get_circuit_breaker_status().items():
        lines.append(f"  {name}: state={status.state.value} failures={status.failures}")
    return lines


def render_cost_lines(router: Router) -> list[str]:
    stats = router.get_cost_stats()
    lines = [f"Costs: daily=${stats.daily:.4f} monthly=${stats.monthly:.4f}"]
    lines.extend(_group_lines(stats.by_provider.items()))
    lines.extend(_group_lines((kind.value, cost) for kind, cost in stats.by_kind.items()))
    for window, usage in (
        ("daily", stats.budget_usage.daily),
        ("monthly", stats.budget_usage.monthly),
    ):
        if usage is not None:
            lines.append(
                f"  budget.{window}: ${usage.used:.4f} / ${usage.limit:.2f} "
                f"({usage.percentage:.1f}%)",
            )
    return lines


def render_pipeline_lines(result: PipelineResult) -> list[str]:
    status = "completed" if result.success else "failed"
    lines = [
        f"Pipeline {result.pipeline_id[:12]} {status}: stage={result.stage.value} "
        f"cost=${result.total_cost:.4f} elapsed={result.total_seconds:.3f}s",
        f"providers={','.join(result.providers_used) or '-'}",
    ]
    if result.analysis is not None:
        lines.append(f"  analysis: {result.analysis.description}")
    if result.prompts is not None:
        lines.append(f"  prompt: {result.prompts.primary}")
    if result.validation is not None:
        verdict = "pass" if result.validation.passes else "fail"
        lines.append(
            f"  validation: score={result.validation.score:g} "
            f"threshold={result.validation.threshold:g} {verdict}",
        )
    lines.extend(f"  asset: {asset.url}" for asset in result.assets)
    if result.error is not None:
        lines.append(
            f"Error: {result.error.code} {result.error.message} "
            f"retryable={result.error.retryable}",
        )
    return lines


def render_pipeline_estimate_lines(estimate: PipelineCostEstimate) -> list[str]:
    lines = [f"Pipeline cost estimate: total=${estimate.total:.4f}"]
    for stage, cost in estimate.by_stage.items():
        lines.append(f"  {stage.value}: ${cost:.4f}")
    return lines


def _settings(*, strategy: str | None = None) -> Settings:
    settings = Settings.from_env()
    if strategy is not None:
        settings.routing.strategy = RoutingStrategy(strategy)
    settings.validate()
    return settings


def _group_lines(items: Iterable[tuple[str, float]]) -> list[str]:
    return [f"  {key}: ${cost:.4f}" for key, cost in sorted(items)]


def _money_or_dash(value: float | None) -> str:
    return "-" if value is None else f"{value:.2f}"


def _ratio_or_dash(value: float | None) -> str:
    return "-" if value is None else f"{value:g}"
