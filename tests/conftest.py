"""Shared test fixtures."""

from __future__ import annotations

import os
from datetime import datetime

import pytest
from fakes import FakeClock, FixedNow

from ai_integration.config import CostTrackingSettings
from ai_integration.router.cost_tracker import CostTracker

_ENV_PREFIX = "AI_INTEGRATION_"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Drop AI_INTEGRATION_* variables leaking from the developer shell."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fixed_now() -> FixedNow:
    return FixedNow(datetime(2026, 3, 15, 12, 0, 0))


@pytest.fixture()
def tracker_factory(fixed_now):
    def _factory(**settings) -> CostTracker:
        return CostTracker(CostTrackingSettings(**settings), clock=fixed_now)

    return _factory
