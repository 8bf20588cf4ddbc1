"""Operations behind the service's endpoints and its start-up."""

from __future__ import annotations

import logging
import time
from typing import Iterable

from telemetry_store.app_context import AppContext
from telemetry_store.caches.app_data_statistics import AppDataHourStatistics
from telemetry_store.caches.app_duration_statistics import AppDurationStatistics
from telemetry_store.dto import MetricDto
from telemetry_store.metric_file import hour_key_from_micros, hour_key_to_micros
from telemetry_store.permanent_users import PermanentUser
from telemetry_store.scripts import (
    get_metrics_files,
    load_permanent_users,
    save_permanent_users,
)

logger = logging.getLogger(__name__)

MICROS_PER_HOUR = 3_600_000_000


def _now_micros() -> int:
    return time.time_ns() // 1000


def _full_hours(micros: int) -> int:
    hours = abs(micros) // MICROS_PER_HOUR
    return hours if micros >= 0 else -hours


def upload_events(app: AppContext, events: Iterable[MetricDto]) -> None:
    """Queue uploaded events for writing."""
    app.to_write_queue.enqueue(events, app.cache.process_id_user_id_links)


def init(app: AppContext) -> None:
    """Warm the caches with the current hour's statistics and load permanent users."""
    users = load_permanent_users(app)
    hour_key = hour_key_from_micros(_now_micros())

    hour_app_items = app.hour_statistics_repo.get(hour_key)
    hour_app_data_items = app.hour_app_data_statistics_repo.get(hour_key)

    cache = app.cache
    cache.statistics_by_app_and_data.restore(hour_key, hour_app_data_items)
    cache.event_amount_by_hours.restore(
        hour_key, (AppDurationStatistics.from_dto(dto) for dto in hour_app_items)
    )
    for user in users:
        cache.permanent_users_list.add_permanent_user(user)


def get_hour_app_data_statistics(
    app: AppContext, hour_key: int, service: str
) -> list[AppDataHourStatistics]:
    """Action statistics of one service for one hour, from the cache or the database."""
    cached = app.cache.statistics_by_app_and_data.get(hour_key, service)
    if cached is not None:
        return cached

    logger.info(
        "Loading statistics from DB for app: %s with hour_key %s", service, hour_key
    )
    return [
        AppDataHourStatistics.from_dto(dto)
        for dto in app.hour_app_data_statistics_repo.get_by_app(hour_key, service)
    ]


def get_hour_app_statistics(app: AppContext, hour_key: int) -> list[AppDurationStatistics]:
    """Statistics of every application for one hour, from the cache or the database."""
    cached = app.cache.event_amount_by_hours.get(hour_key)
    if cached is not None:
        return cached
    return [AppDurationStatistics.from_dto(dto) for dto in app.hour_statistics_repo.get(hour_key)]


def get_available_hours_ago(app: AppContext) -> list[tuple[int, int]]:
    """(hours ago, file size) of every hourly metrics file, ordered by hours ago."""
    now = _now_micros()
    result: dict[int, int] = {}
    for metric_file in get_metrics_files(app):
        hour_key = metric_file.get_hour_key()
        if hour_key is None:
            continue
        try:
            hour_start = hour_key_to_micros(hour_key)
        except ValueError:
            continue
        result[_full_hours(now - hour_start)] = metric_file.file_size
    return sorted(result.items())


def add_permanent_user(app: AppContext, user_id: str) -> None:
    users = app.cache.permanent_users_list.add_permanent_user(user_id)
    save_permanent_users(app, users)


def delete_permanent_user(app: AppContext, user_id: str) -> None:
    users = app.cache.permanent_users_list.remove_permanent_user(user_id)
    save_permanent_users(app, users)


def get_permanent_users(app: AppContext) -> list[PermanentUser]:
    return app.cache.permanent_users_list.get_all()