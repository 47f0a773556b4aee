"""Append-only spend ledger with a pre-flight budget gate."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, time

from ai_integration.config import CostTrackingSettings
from ai_integration.router.models import CapabilityKind, CostRecord

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Current timezone-aware local timestamp."""

    return datetime.now().astimezone()


@dataclass(frozen=True, slots=True)
class WindowUsage:
    """Spend against one configured limit."""

    used: float
    limit: float

    @property
    def percentage(self) -> float:
        if self.limit <= 0:
            return 100.0 if self.used > 0 else 0.0
        return self.used / self.limit * 100


@dataclass(frozen=True, slots=True)
class BudgetUsage:
    """Daily and monthly usage; ``None`` where no limit is configured."""

    daily: WindowUsage | None
    monthly: WindowUsage | None


@dataclass(frozen=True, slots=True)
class BudgetAlert:
    """Advisory warning raised when spend crosses the alert threshold."""

    window: str
    used: float
    limit: float

    @property
    def ratio(self) -> float:
        return self.used / self.limit if self.limit > 0 else 1.0

    def render(self) -> str:
        return (
            f"{self.window.capitalize()} cost alert: {self.ratio * 100:.1f}% of limit reached "
            f"(${self.used:.2f} / ${self.limit:.2f})"
        )


class CostTracker:
    """Records provider spend and answers budget questions.

    Aggregates are computed on read from the ledger; windows use local calendar
    boundaries (midnight for the day, the first of the month for the month).
    The gate in :meth:`can_proceed` is pre-flight only: :meth:`record` always
    appends, even when the entry pushes spend over a limit.
    """

    def __init__(
        self,
        settings: CostTrackingSettings | None = None,
        *,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.settings = settings or CostTrackingSettings()
        self._clock = clock
        self._records: list[CostRecord] = []
        self._lock = threading.Lock()

    def can_proceed(self) -> bool:
        """Return whether a new call fits into the configured limits."""

        if not self.settings.enabled:
            return True
        daily_limit = self.settings.daily_limit
        if daily_limit is not None and self.get_daily_cost() >= daily_limit:
            return False
        monthly_limit = self.settings.monthly_limit
        return not (monthly_limit is not None and self.get_monthly_cost() >= monthly_limit)

    def record(self, entry: CostRecord) -> list[BudgetAlert]:
        """Append ``entry`` and return any alerts its spend triggered."""

        with self._lock:
            self._records.append(entry)
        alerts = self._check_alerts(entry)
        for alert in alerts:
            logger.warning(alert.render())
        return alerts

    def get_daily_cost(self) -> float:
        now = self.now()
        return _sum_costs(self._window(_day_start(now), now))

    def get_monthly_cost(self) -> float:
        now = self.now()
        return _sum_costs(self._window(_month_start(now), now))

    def get_costs_by_provider(self) -> dict[str, float]:
        totals: dict[str, float] = defaultdict(float)
        for record in self.export():
            totals[record.provider] += record.cost
        return dict(totals)

    def get_costs_by_kind(self) -> dict[CapabilityKind, float]:
        totals: dict[CapabilityKind, float] = defaultdict(float)
        for record in self.export():
            if record.kind is not None:
                totals[record.kind] += record.cost
        return dict(totals)

    def get_cost_history(self, start: datetime, end: datetime) -> list[CostRecord]:
        """Return ledger entries with ``start <= timestamp <= end``."""

        return self._window(_as_local(start), _as_local(end))

    def get_budget_usage(self) -> BudgetUsage:
        daily_limit = self.settings.daily_limit
        monthly_limit = self.settings.monthly_limit
        return BudgetUsage(
            daily=(
                WindowUsage(used=self.get_daily_cost(), limit=daily_limit)
                if daily_limit is not None
                else None
            ),
            monthly=(
                WindowUsage(used=self.get_monthly_cost(), limit=monthly_limit)
                if monthly_limit is not None
                else None
            ),
        )

    def now(self) -> datetime:
        """Current local time according to the tracker clock."""

        return _as_local(self._clock())

    def export(self) -> list[CostRecord]:
        """Snapshot of the ledger in append order."""

        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def _window(self, start: datetime, end: datetime) -> list[CostRecord]:
        return [
            record for record in self.export() if start <= _as_local(record.timestamp) <= end
        ]

    def _check_alerts(self, entry: CostRecord) -> list[BudgetAlert]:
        """Alert on windows whose spend ``entry`` moved across the threshold."""

        threshold = self.settings.alert_threshold
        if not threshold:
            return []

        now = self.now()
        stamped = _as_local(entry.timestamp)
        alerts: list[BudgetAlert] = []
        for window, limit, start in (
            ("daily", self.settings.daily_limit, _day_start(now)),
            ("monthly", self.settings.monthly_limit, _month_start(now)),
        ):
            if not limit or not start <= stamped <= now:
                continue
            spent = _sum_costs(self._window(start, now))
            if (spent - entry.cost) / limit < threshold <= spent / limit:
                alerts.append(BudgetAlert(window=window, used=spent, limit=limit))
        return alerts


def _day_start(now: datetime) -> datetime:
    # Offset is resolved for midnight itself, not copied from ``now``.
    return datetime.combine(now.date(), time()).astimezone()


def _month_start(now: datetime) -> datetime:
    return datetime.combine(now.date().replace(day=1), time()).astimezone()


def _as_local(value: datetime) -> datetime:
    return value.astimezone()


def _sum_costs(records: Iterable[CostRecord]) -> float:
    return sum(record.cost for record in records)
