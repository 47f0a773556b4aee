"""CLI entrypoint for ai-integration."""

import rich_click as click

from ai_integration import __version__
from ai_integration.controllers import (
    AiIntegrationCliController,
    PipelineEstimateCommand,
    PipelineRunCommand,
    RouteEstimateCommand,
    RouteRunCommand,
)
from ai_integration.providers.echo import DEMO_DESCRIPTORS
from ai_integration.router.models import CapabilityKind, RoutingStrategy

click.rich_click.USE_MARKDOWN = True
CONTROLLER = AiIntegrationCliController()

_KIND_CHOICES = [kind.value for kind in CapabilityKind]
_STRATEGY_CHOICES = [strategy.value for strategy in RoutingStrategy]
_PROVIDER_CHOICES = [descriptor.name for descriptor in DEMO_DESCRIPTORS]


@click.group()
@click.version_option(version=__version__, prog_name="ai-integration")
def ai_integration() -> None:
    """AI capability routing and asset pipeline CLI."""


@ai_integration.group()
def route() -> None:
    """Routing commands against the built-in demo providers."""


@route.command("run")
@click.option(
    "--kind",
    type=click.Choice(_KIND_CHOICES, case_sensitive=False),
    required=True,
    help="Capability-kind to route.",
)
@click.option("--text", required=True, help="Task text input.")
@click.option("--image", default=None, help="Optional image reference for vision-analysis.")
@click.option(
    "--strategy",
    type=click.Choice(_STRATEGY_CHOICES, case_sensitive=False),
    default=None,
    help="Override AI_INTEGRATION_ROUTING_STRATEGY for this run.",
)
@click.option(
    "--fail-provider",
    "failing_providers",
    multiple=True,
    type=click.Choice(_PROVIDER_CHOICES, case_sensitive=False),
    help="Demo provider that should fail with a retryable error. Can be repeated.",
)
def route_run(
    kind: str,
    text: str,
    image: str | None,
    strategy: str | None,
    failing_providers: tuple[str, ...],
) -> None:
    """Route one task and show the serving provider, circuits and costs."""

    result = CONTROLLER.route(
        RouteRunCommand(
            kind=kind.lower(),
            text=text,
            image=image,
            failing_providers=tuple(name.lower() for name in failing_providers),
            strategy=strategy.lower() if strategy else None,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Routing failed.")


@route.command("estimate")
@click.option(
    "--kind",
    type=click.Choice(_KIND_CHOICES, case_sensitive=False),
    required=True,
    help="Capability-kind to estimate.",
)
@click.option(
    "--max-tokens",
    type=click.IntRange(min=1),
    default=None,
    help="Optional max tokens; scales text-kind estimates.",
)
def route_estimate(kind: str, max_tokens: int | None) -> None:
    """Show per-provider cost estimates for a capability-kind."""

    _emit_lines(
        CONTROLLER.estimate(RouteEstimateCommand(kind=kind.lower(), max_tokens=max_tokens)),
    )


@ai_integration.group()
def pipeline() -> None:
    """Asset pipeline commands."""


@pipeline.command("run")
@click.option("--text", default=None, help="Text request for prompt generation.")
@click.option("--image", default=None, help="Source image reference; enables image analysis.")
@click.option("--skip-validation", is_flag=True, help="Skip the cultural-validation stage.")
@click.option(
    "--asset-count",
    type=click.IntRange(min=1, max=10),
    default=1,
    show_default=True,
    help="How many assets to synthesize.",
)
@click.option(
    "--validation-score",
    type=click.FloatRange(min=0, max=100),
    default=92.0,
    show_default=True,
    help="Score the demo validator reports.",
)
@click.option(
    "--validation-threshold",
    type=click.FloatRange(min=0, max=100),
    default=70.0,
    show_default=True,
    help="Minimum validation score required to synthesize assets.",
)
@click.option(
    "--fail-provider",
    "failing_providers",
    multiple=True,
    type=click.Choice(_PROVIDER_CHOICES, case_sensitive=False),
    help="Demo provider that should fail with a retryable error. Can be repeated.",
)
def pipeline_run(  # noqa: PLR0913
    text: str | None,
    image: str | None,
    skip_validation: bool,
    asset_count: int,
    validation_score: float,
    validation_threshold: float,
    failing_providers: tuple[str, ...],
) -> None:
    """Run the asset pipeline end to end against the demo providers."""

    if not text and not image:
        raise click.UsageError("Provide --text, --image or both.")
    result = CONTROLLER.run_pipeline(
        PipelineRunCommand(
            text=text,
            image=image,
            skip_validation=skip_validation,
            asset_count=asset_count,
            validation_score=validation_score,
            validation_threshold=validation_threshold,
            failing_providers=tuple(name.lower() for name in failing_providers),
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Pipeline failed.")


@pipeline.command("estimate")
@click.option("--image", default=None, help="Source image reference; adds image analysis.")
@click.option("--skip-validation", is_flag=True, help="Exclude the cultural-validation stage.")
@click.option(
    "--asset-count",
    type=click.IntRange(min=0, max=10),
    default=1,
    show_default=True,
    help="How many assets would be synthesized.",
)
def pipeline_estimate(image: str | None, skip_validation: bool, asset_count: int) -> None:
    """Show the static per-stage pipeline cost estimate."""

    _emit_lines(
        CONTROLLER.estimate_pipeline(
            PipelineEstimateCommand(
                image=image,
                skip_validation=skip_validation,
                asset_count=asset_count,
            ),
        ),
    )


@ai_integration.group()
def config() -> None:
    """Configuration commands."""


@config.command("show")
def config_show() -> None:
    """Show effective settings resolved from AI_INTEGRATION_* variables."""

    result = CONTROLLER.show_config()
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Invalid configuration.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    ai_integration()
