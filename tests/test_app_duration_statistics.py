from telemetry_store.caches.app_duration_statistics import (
    AppDurationStatistics,
    EventAmountsByHour,
)
from telemetry_store.dto import HourStatisticsDto, MetricDto

HOUR = 2024010112


def metric(name, duration, started=0):
    return MetricDto(id=1, started=started, duration_micro=duration, name=name, data="d")


def test_new_statistics_counts_one_event():
    stats = AppDurationStatistics("svc", 15)
    assert stats.amount == 1
    assert stats.duration_micros == 15


def test_inc_returns_independent_snapshot():
    stats = AppDurationStatistics("svc", 10)
    snapshot = stats.inc(5)
    assert (snapshot.amount, snapshot.duration_micros) == (stats.amount, stats.duration_micros)
    stats.inc(7)
    assert snapshot.amount == 2
    assert stats.amount == 3


def test_from_dto_copies_fields():
    dto = HourStatisticsDto(hour_key=HOUR, app="svc", duration_micros=100, amount=4)
    stats = AppDurationStatistics.from_dto(dto)
    assert stats == AppDurationStatistics(name="svc", duration_micros=100, amount=4)


def test_inc_accumulates_per_app():
    cache = EventAmountsByHour()
    durations = [10, 20, 30]
    for duration in durations:
        cache.inc(HOUR, metric("svc", duration))
    cache.inc(HOUR, metric("other", 4))
    result = cache.get(HOUR)
    assert [item.name for item in result] == ["other", "svc"]
    svc = result[1]
    assert svc.amount == len(durations)
    assert svc.duration_micros == sum(durations)


def test_get_unknown_hour_is_none():
    assert EventAmountsByHour().get(HOUR) is None


def test_get_to_persist_drains_latest_snapshot():
    cache = EventAmountsByHour()
    cache.inc(HOUR, metric("svc", 10))
    cache.inc(HOUR, metric("svc", 20))
    cache.inc(HOUR + 1, metric("svc", 1))
    pending = cache.get_to_persist()
    assert list(pending) == [HOUR, HOUR + 1]
    assert pending[HOUR] == cache.get(HOUR)
    assert cache.get_to_persist() is None


def test_to_persist_snapshot_not_changed_by_later_inc():
    cache = EventAmountsByHour()
    cache.inc(HOUR, metric("svc", 10))
    pending = cache.get_to_persist()
    cache.inc(HOUR, metric("svc", 10))
    assert pending[HOUR][0].amount == 1
    assert cache.get(HOUR)[0].amount == 2


def test_restore_replaces_hour():
    cache = EventAmountsByHour()
    cache.inc(HOUR, metric("old", 1))
    restored = [AppDurationStatistics("b", 3, 2), AppDurationStatistics("a", 5, 1)]
    cache.restore(HOUR, restored)
    assert [item.name for item in cache.get(HOUR)] == ["a", "b"]
    assert cache.get_to_persist() is not None
    assert cache.get(HOUR)[1] == restored[0]


def test_gc_old_data_removes_hours_up_to_key():
    cache = EventAmountsByHour()
    for hour in (HOUR - 1, HOUR, HOUR + 1):
        cache.inc(hour, metric("svc", 1))
    cache.gc_old_data(HOUR)
    assert cache.get(HOUR - 1) is None
    assert cache.get(HOUR) is None
    assert cache.get(HOUR + 1)[0].name == "svc"