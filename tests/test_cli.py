from __future__ import annotations

import allure
from click.testing import CliRunner

from ai_integration import __version__
from ai_integration.main import ai_integration

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Routing, Pipeline, Config Commands"),
]


def _invoke(*args: str):
    return CliRunner().invoke(ai_integration, list(args))


def test_version():
    assert __version__


def test_version_option():
    result = _invoke("--version")
    assert result.exit_code == 0
    assert __version__ in result.output


def test_route_run_serves_cheapest_provider():
    result = _invoke("route", "run", "--kind", "text-generation", "--text", "Beetle at dusk")

    assert result.exit_code == 0, result.output
    assert "Served by google" in result.output
    assert "primary: Beetle at dusk" in result.output
    assert "google: state=closed failures=0" in result.output
    assert "Costs: daily=$0.0150" in result.output


def test_route_run_fails_over_to_next_cheapest():
    result = _invoke(
        "route",
        "run",
        "--kind",
        "text-generation",
        "--text",
        "Beetle",
        "--fail-provider",
        "google",
    )

    assert result.exit_code == 0, result.output
    assert "Served by openrouter" in result.output
    assert "google: state=closed failures=1" in result.output


def test_route_run_strategy_override():
    result = _invoke(
        "route",
        "run",
        "--kind",
        "vision-analysis",
        "--text",
        "Describe",
        "--image",
        "bus.png",
        "--strategy",
        "quality-first",
    )

    assert result.exit_code == 0, result.output
    assert "strategy=quality-first" in result.output
    assert "Served by anthropic" in result.output


def test_route_run_all_failed_exits_non_zero():
    args = ["route", "run", "--kind", "text-validation", "--text", "Beetle"]
    for name in ("google", "openrouter", "anthropic", "openai"):
        args.extend(["--fail-provider", name])

    result = _invoke(*args)

    assert result.exit_code == 1
    assert "Failed: All providers failed" in result.output
    assert "skipped=-" in result.output


def test_route_run_rejects_unknown_kind():
    result = _invoke("route", "run", "--kind", "speech", "--text", "hi")

    assert result.exit_code == 2


def test_route_estimate_lists_capable_providers():
    result = _invoke("route", "estimate", "--kind", "image-synthesis")

    assert result.exit_code == 0, result.output
    assert "providers=2" in result.output
    assert "min=$0.0300 max=$0.0500" in result.output
    assert "  fal: $0.0500" in result.output


def test_pipeline_run_completes():
    result = _invoke("pipeline", "run", "--text", "Bay window bus", "--asset-count", "2")

    assert result.exit_code == 0, result.output
    assert "completed: stage=complete" in result.output
    assert result.output.count("  asset: echo://") == 2
    assert "validation: score=92 threshold=70 pass" in result.output


def test_pipeline_run_validation_failure_exits_non_zero():
    result = _invoke("pipeline", "run", "--text", "Beetle", "--validation-score", "10")

    assert result.exit_code == 1
    assert "failed: stage=cultural-validation" in result.output
    assert "Error: VALIDATION_FAILED" in result.output
    assert "asset:" not in result.output


def test_pipeline_run_skip_validation():
    result = _invoke(
        "pipeline",
        "run",
        "--text",
        "Beetle",
        "--validation-score",
        "10",
        "--skip-validation",
    )

    assert result.exit_code == 0, result.output
    assert "validation:" not in result.output


def test_pipeline_run_requires_text_or_image():
    result = _invoke("pipeline", "run")

    assert result.exit_code == 2


def test_pipeline_estimate():
    result = _invoke("pipeline", "estimate", "--image", "bus.png", "--asset-count", "2")

    assert result.exit_code == 0, result.output
    assert "Pipeline cost estimate: total=$0.1700" in result.output
    assert "  image-analysis: $0.0150" in result.output


def test_config_show_reflects_environment(monkeypatch):
    monkeypatch.setenv("AI_INTEGRATION_DAILY_LIMIT", "5")
    monkeypatch.setenv("AI_INTEGRATION_PREFERRED_PROVIDERS", "anthropic,openai")

    result = _invoke("config", "show")

    assert result.exit_code == 0, result.output
    assert "cost_tracking.daily_limit=5.00" in result.output
    assert "cost_tracking.monthly_limit=-" in result.output
    assert "routing.preferred_providers=anthropic,openai" in result.output


def test_config_show_reports_invalid_environment(monkeypatch):
    monkeypatch.setenv("AI_INTEGRATION_ROUTING_STRATEGY", "cheapest")

    result = _invoke("config", "show")

    assert result.exit_code == 1
    assert "AI_INTEGRATION_ROUTING_STRATEGY" in result.output
