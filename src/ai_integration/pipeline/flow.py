"""Prefect flow wrapping one asset pipeline run."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from prefect import flow

from ai_integration.config import Settings
from ai_integration.pipeline.models import PipelineInput, PipelineResult
from ai_integration.pipeline.pipeline import Pipeline
from ai_integration.providers.base import Provider
from ai_integration.router.router import Router

logger = logging.getLogger(__name__)


def build_router(providers: Iterable[Provider], settings: Settings) -> Router:
    """Build a router configured from ``settings``."""

    return Router(
        providers,
        routing=settings.routing,
        cost_tracking=settings.cost_tracking,
        circuit_settings=settings.circuit_breaker,
    )


@flow(name="asset_pipeline_flow", validate_parameters=False)
def run_asset_pipeline(
    *,
    pipeline_input: PipelineInput,
    providers: list[Provider],
    settings: Settings | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> PipelineResult:
    """Execute one pipeline run as a Prefect flow.

    The router is created per flow run, so circuit and ledger state do not
    leak between runs. Failures are reported in the returned result.
    """
    emit = on_progress or (lambda _: None)
    settings = settings or Settings.from_env()
    settings.validate()

    pipeline = Pipeline(build_router(providers, settings))
    result = pipeline.execute(pipeline_input)
    if result.success:
        emit(
            f"Pipeline {result.pipeline_id[:12]} completed in {result.total_seconds:.1f}s, "
            f"{len(result.assets)} asset(s), ${result.total_cost:.4f}",
        )
    else:
        code = result.error.code if result.error else "UNKNOWN_ERROR"
        emit(f"Pipeline {result.pipeline_id[:12]} failed at {result.stage.value}: {code}")
        logger.warning("Asset pipeline flow finished unsuccessfully: %s", code)
    return result
