"""Per-hour statistics for each (application, event data) pair."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from telemetry_store.dto import HourAppDataStatisticsDto, MetricDto

_Key = tuple[str, str]


@dataclass
class AppDataHourStatistics:
    """Duration range, outcome counters and totals for one action of one service."""

    service: str
    data: str
    min: int
    max: int
    errors_amount: int
    success_amount: int
    sum_of_duration: int
    amount: int

    @property
    def key(self) -> _Key:
        return self.service, self.data

    @classmethod
    def from_metric(cls, metric: MetricDto) -> AppDataHourStatistics:
        return cls(
            service=metric.name,
            data=metric.data,
            min=metric.duration_micro,
            max=metric.duration_micro,
            errors_amount=1 if metric.fail is not None else 0,
            success_amount=1 if metric.success is not None else 0,
            sum_of_duration=metric.duration_micro,
            amount=1,
        )

    @classmethod
    def from_dto(cls, dto: HourAppDataStatisticsDto) -> AppDataHourStatistics:
        return cls(
            service=dto.service,
            data=dto.data,
            min=dto.min,
            max=dto.max,
            errors_amount=dto.errors_amount,
            success_amount=dto.success_amount,
            sum_of_duration=dto.sum_of_duration,
            amount=dto.amount,
        )

    def update(self, metric: MetricDto) -> AppDataHourStatistics:
        """Account for one more event and return a snapshot of the result."""
        duration = metric.duration_micro
        if duration < self.min or self.min == 0:
            self.min = duration
        if duration > self.max:
            self.max = duration
        self.sum_of_duration += duration
        self.amount += 1
        if metric.success is not None:
            self.success_amount += 1
        if metric.fail is not None:
            self.errors_amount += 1
        return replace(self)

    def update_to_persist(self, other: AppDataHourStatistics) -> None:
        self.max = other.max
        self.min = other.min
        self.errors_amount = other.errors_amount
        self.success_amount = other.success_amount
        self.sum_of_duration = other.sum_of_duration
        self.amount = other.amount


def _sorted(items: dict[_Key, AppDataHourStatistics]) -> list[AppDataHourStatistics]:
    return [replace(items[key]) for key in sorted(items)]


class StatisticsByAppAndData:
    """Hourly (service, data) statistics with changes waiting to be persisted."""

    def __init__(self) -> None:
        self._data: dict[int, dict[_Key, AppDataHourStatistics]] = {}
        self._to_persist: dict[int, dict[_Key, AppDataHourStatistics]] = {}

    def update(self, hour_key: int, events: Iterable[MetricDto]) -> None:
        hour = self._data.setdefault(hour_key, {})
        changed = []
        for metric in events:
            current = hour.get((metric.name, metric.data))
            if current is None:
                current = AppDataHourStatistics.from_metric(metric)
                hour[current.key] = current
                changed.append(replace(current))
            else:
                changed.append(current.update(metric))
        self._set_to_persist(hour_key, changed)

    def _set_to_persist(self, hour_key: int, changed: list[AppDataHourStatistics]) -> None:
        pending = self._to_persist.setdefault(hour_key, {})
        for item in changed:
            existing = pending.get(item.key)
            if existing is None:
                pending[item.key] = item
            else:
                existing.update_to_persist(item)

    def restore(self, hour_key: int, dtos: Iterable[HourAppDataStatisticsDto]) -> None:
        hour = self._data.setdefault(hour_key, {})
        for dto in dtos:
            item = AppDataHourStatistics.from_dto(dto)
            hour[item.key] = item

    def get_to_persist(self) -> dict[int, list[AppDataHourStatistics]] | None:
        """Take the pending changes, ordered by hour, then service, then data."""
        if not self._to_persist:
            return None
        pending, self._to_persist = self._to_persist, {}
        return {hour: _sorted(pending[hour]) for hour in sorted(pending)}

    def get(self, hour_key: int, app: str) -> list[AppDataHourStatistics] | None:
        hour = self._data.get(hour_key)
        if hour is None:
            return None
        result = [item for item in _sorted(hour) if item.service == app]
        return result or None

    def gc_old_data(self, from_hour: int) -> None:
        """Drop every hour up to and including ``from_hour``."""
        for hour in [hour for hour in self._data if hour <= from_hour]:
            del self._data[hour]

    def get_queue_hours_size(self) -> tuple[int, int]:
        return len(self._data), len(self._to_persist)

    def get_size(self) -> int:
        return sum(len(hour) for hour in self._data.values())