import asyncio
import os
import time

import pytest

from telemetry_store.app_context import AppContext
from telemetry_store.caches.app_duration_statistics import AppDurationStatistics
from telemetry_store.db.metrics_repo import compile_file_name
from telemetry_store.dto import MetricDto
from telemetry_store.flows import add_permanent_user, upload_events
from telemetry_store.metric_file import hour_key_from_micros
from telemetry_store.settings import SettingsModel, SettingsReader
from telemetry_store.timers import GcTimer, MetricsWriter, SaveStatisticsTimer, run_periodically

HOUR = 3_600_000_000


def now_micros():
    return time.time_ns() // 1000


def make_app(tmp_path, **extra):
    model = SettingsModel(db_path=str(tmp_path), hours_to_gc=1, **extra)
    return AppContext.create(SettingsReader(model))


@pytest.fixture
def app(tmp_path):
    with make_app(tmp_path) as ctx:
        yield ctx


@pytest.fixture
def flushing_app(tmp_path):
    with make_app(tmp_path, seconds_to_flush=0) as ctx:
        yield ctx


def metric(process_id, started, duration, **extra):
    return MetricDto(
        id=process_id, started=started, duration_micro=duration, name="svc", data="act", **extra
    )


@pytest.mark.asyncio
async def test_metrics_writer_flushes_queue(flushing_app):
    app = flushing_app
    add_permanent_user(app, "client-a")
    now = now_micros()
    hk = hour_key_from_micros(now)
    upload_events(
        app,
        [
            metric(1, now, 100, success="ok", client_id="client-a"),
            metric(1, now + 1, 300, fail="err"),
        ],
    )

    await MetricsWriter(app).tick()

    assert app.to_write_queue.get_sizes().events_queue_size == 0
    stored = app.repo.get_by_process_id(hk, 1)
    assert sorted(m.started for m in stored) == [now, now + 1]
    assert [m.client_id for m in stored] == ["client-a", "client-a"]
    assert app.cache.event_amount_by_hours.get(hk) == [AppDurationStatistics("svc", 400, 2)]
    (stats,) = app.cache.statistics_by_app_and_data.get(hk, "svc")
    assert (stats.min, stats.max, stats.amount) == (100, 300, 2)
    assert (stats.success_amount, stats.errors_amount) == (1, 1)
    permanent = app.permanent_metrics.get_all()
    assert [p.client_id for p in permanent] == ["client-a", "client-a"]


@pytest.mark.asyncio
async def test_metrics_writer_keeps_young_events(app):
    upload_events(app, [metric(1, now_micros(), 10)])
    await MetricsWriter(app).tick()
    assert app.to_write_queue.get_sizes().events_queue_size == 1


@pytest.mark.asyncio
async def test_metrics_writer_skips_non_permanent_users(flushing_app):
    app = flushing_app
    upload_events(app, [metric(2, now_micros(), 10, client_id="client-b")])
    await MetricsWriter(app).tick()
    assert app.permanent_metrics.get_all() == []
    assert app.to_write_queue.get_sizes().process_queue_size == 0


@pytest.mark.asyncio
async def test_save_statistics_timer_persists_pending(app):
    hk = 2024010112
    app.cache.event_amount_by_hours.inc(hk, metric(1, 0, 50))
    app.cache.statistics_by_app_and_data.update(hk, [metric(1, 0, 50, success="ok")])

    await SaveStatisticsTimer(app).tick()

    (saved,) = app.hour_statistics_repo.get(hk)
    assert (saved.app, saved.duration_micros, saved.amount) == ("svc", 50, 1)
    (saved_data,) = app.hour_app_data_statistics_repo.get_by_app(hk, "svc")
    assert (saved_data.data, saved_data.amount, saved_data.success_amount) == ("act", 1, 1)
    assert app.cache.event_amount_by_hours.get_to_persist() is None
    assert app.cache.statistics_by_app_and_data.get_to_persist() is None


@pytest.mark.asyncio
async def test_save_statistics_timer_without_changes(app):
    await SaveStatisticsTimer(app).tick()
    assert app.hour_statistics_repo.get(2024010112) == []


@pytest.mark.asyncio
async def test_gc_timer_removes_old_files_and_cache(app):
    now = now_micros()
    prefix = app.settings_reader.get_db_file_prefix("metrics")
    old_hk = hour_key_from_micros(now - 5 * HOUR)
    recent_hk = hour_key_from_micros(now - 3 * HOUR)
    current_hk = hour_key_from_micros(now)
    old_file = compile_file_name(prefix, old_hk)
    current_file = compile_file_name(prefix, current_hk)
    for path in (old_file, current_file):
        open(path, "wb").close()

    cache = app.cache
    cache.event_amount_by_hours.restore(recent_hk, [AppDurationStatistics("a", 1)])
    cache.event_amount_by_hours.restore(current_hk, [AppDurationStatistics("b", 2)])
    cache.statistics_by_app_and_data.update(recent_hk, [metric(1, 0, 5)])

    await GcTimer(app).tick()

    assert not os.path.exists(old_file)
    assert os.path.exists(current_file)
    assert cache.event_amount_by_hours.get(recent_hk) is None
    assert cache.event_amount_by_hours.get(current_hk) == [AppDurationStatistics("b", 2)]
    assert cache.statistics_by_app_and_data.get(recent_hk, "svc") is None


@pytest.mark.asyncio
async def test_run_periodically_continues_after_errors():
    calls = []

    async def tick():
        calls.append(1)
        raise RuntimeError("boom")

    task = asyncio.create_task(run_periodically(0.01, tick))
    await asyncio.sleep(0.15)
    assert task.done() is False
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert task.cancelled() is True
    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_run_periodically_applies_timeout():
    started = []
    finished = []

    async def tick():
        started.append(1)
        await asyncio.sleep(1)
        finished.append(1)

    task = asyncio.create_task(run_periodically(0.01, tick, 0.02))
    await asyncio.sleep(0.2)
    assert task.done() is False
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert task.cancelled() is True
    assert len(started) >= 2
    assert finished == []