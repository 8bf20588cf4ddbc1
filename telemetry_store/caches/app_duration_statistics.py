"""Per-hour event counters and total durations for each application."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from telemetry_store.dto import HourStatisticsDto, MetricDto

logger = logging.getLogger(__name__)


@dataclass
class AppDurationStatistics:
    """Amount of events and their summed duration for one application."""

    name: str
    duration_micros: int
    amount: int = 1

    def inc(self, duration_micros: int) -> AppDurationStatistics:
        """Count one more event and return a snapshot of the new totals."""
        self.amount += 1
        self.duration_micros += duration_micros
        return replace(self)

    @classmethod
    def from_dto(cls, dto: HourStatisticsDto) -> AppDurationStatistics:
        return cls(name=dto.app, duration_micros=dto.duration_micros, amount=dto.amount)


def _sorted_by_name(by_app: dict[str, AppDurationStatistics]) -> list[AppDurationStatistics]:
    return [replace(by_app[name]) for name in sorted(by_app)]


class EventAmountsByHour:
    """Application statistics grouped by hour, with changes waiting to be persisted."""

    def __init__(self) -> None:
        self.items: dict[int, dict[str, AppDurationStatistics]] = {}
        self.to_persist: dict[int, dict[str, AppDurationStatistics]] = {}

    def inc(self, hour_key: int, metric: MetricDto) -> None:
        by_app = self.items.setdefault(hour_key, {})
        current = by_app.get(metric.name)
        if current is None:
            current = AppDurationStatistics(metric.name, metric.duration_micro)
            by_app[metric.name] = current
            snapshot = replace(current)
        else:
            snapshot = current.inc(metric.duration_micro)
        self.to_persist.setdefault(hour_key, {})[metric.name] = snapshot

    def get_to_persist(self) -> dict[int, list[AppDurationStatistics]] | None:
        """Take the pending changes, ordered by hour and then by name."""
        if not self.to_persist:
            return None
        pending, self.to_persist = self.to_persist, {}
        return {hour: _sorted_by_name(pending[hour]) for hour in sorted(pending)}

    def restore(self, hour_key: int, items: Iterable[AppDurationStatistics]) -> None:
        self.items[hour_key] = {item.name: item for item in items}

    def get(self, hour_key: int) -> list[AppDurationStatistics] | None:
        by_app = self.items.get(hour_key)
        if by_app is None:
            return None
        return _sorted_by_name(by_app)

    def gc_old_data(self, from_hour: int) -> None:
        """Drop every hour up to and including ``from_hour``."""
        stale = sorted(hour for hour in self.items if hour <= from_hour)
        if stale:
            logger.info("GC amounts_by_hour %s", stale)
        for hour in stale:
            del self.items[hour]