"""Periodic background jobs of the service."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Awaitable, Callable

from telemetry_store.app_context import AppContext
from telemetry_store.dto import MetricDto, PermanentMetricDto
from telemetry_store.metric_file import hour_key_from_micros
from telemetry_store.scripts import (
    gc_files,
    write_hour_app_data_statistics,
    write_hour_statistics_to_db,
)
from telemetry_store.to_write_queue import MetricsChunk

logger = logging.getLogger(__name__)

GC_INTERVAL = 10.0
GC_TIMEOUT = 300.0
SAVE_STATISTICS_INTERVAL = 1.0
METRICS_WRITER_INTERVAL = 0.621

CACHE_HOURS_TO_KEEP = timedelta(hours=2)
WRITE_BATCH_SIZE = 1000
MAX_WRITE_SECONDS = 20

_ONE_MICRO = timedelta(microseconds=1)


def _now_micros() -> int:
    return time.time_ns() // 1000


def _hour_key_before(duration: timedelta) -> int:
    return hour_key_from_micros(_now_micros() - duration // _ONE_MICRO)


class GcTimer:
    """Removes old metrics files and drops old hours from the caches."""

    def __init__(self, app: AppContext) -> None:
        self.app = app

    async def tick(self) -> None:
        gc_files(self.app, _hour_key_before(self.app.settings_reader.get_hours_to_gc()))

        cache_gc_hour_key = _hour_key_before(CACHE_HOURS_TO_KEEP)
        cache = self.app.cache
        cache.statistics_by_app_and_data.gc_old_data(cache_gc_hour_key)
        cache.event_amount_by_hours.gc_old_data(cache_gc_hour_key)


def _with_client_ids(app: AppContext, chunk: MetricsChunk) -> list[MetricDto]:
    client_id = app.cache.process_id_user_id_links.resolve_user_id(chunk.process_id)
    if client_id is not None:
        for metric in chunk.items:
            if metric.client_id is None:
                metric.client_id = client_id
    return chunk.items


class MetricsWriter:
    """Writes queued events to the database and updates the statistics caches."""

    def __init__(self, app: AppContext) -> None:
        self.app = app

    async def tick(self) -> None:
        app = self.app
        started = time.monotonic()
        seconds_to_flush = app.settings_reader.get_seconds_to_flush()
        do_gc = True

        while True:
            chunks = app.to_write_queue.get_events_to_write(WRITE_BATCH_SIZE, seconds_to_flush)
            if not chunks:
                break

            events = [metric for chunk in chunks for metric in _with_client_ids(app, chunk)]
            by_hour = app.repo.insert(events)

            cache = app.cache
            permanent_items = []
            for hour_key, grouped in by_hour.items():
                cache.statistics_by_app_and_data.update(hour_key, grouped)
                for metric in grouped:
                    cache.event_amount_by_hours.inc(hour_key, metric)
                    if metric.client_id is not None and cache.permanent_users_list.is_permanent(
                        metric.client_id
                    ):
                        permanent_items.append(PermanentMetricDto.from_metric(metric))

            if do_gc:
                cache.process_id_user_id_links.gc()
                do_gc = False

            if permanent_items:
                app.permanent_metrics.insert(permanent_items)

            if int(time.monotonic() - started) >= MAX_WRITE_SECONDS:
                break
            await asyncio.sleep(0)


class SaveStatisticsTimer:
    """Persists the statistics that changed since the last run."""

    def __init__(self, app: AppContext) -> None:
        self.app = app

    async def tick(self) -> None:
        cache = self.app.cache
        app_data_metrics = cache.statistics_by_app_and_data.get_to_persist()
        app_hour_metrics = cache.event_amount_by_hours.get_to_persist()

        if app_data_metrics is not None:
            write_hour_app_data_statistics(self.app, app_data_metrics)
        if app_hour_metrics is not None:
            write_hour_statistics_to_db(self.app, app_hour_metrics)


async def run_periodically(
    interval: float,
    tick: Callable[[], Awaitable[object]],
    timeout: float | None = None,
) -> None:
    """Run ``tick`` every ``interval`` seconds until cancelled.

    A tick that fails or outlives ``timeout`` is logged and the schedule goes on.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.wait_for(tick(), timeout)
        except asyncio.TimeoutError:
            logger.error("Timer tick exceeded %s seconds", timeout)
        except Exception:
            logger.exception("Timer tick failed")