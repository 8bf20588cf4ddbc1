"""Housekeeping tasks: file scanning, garbage collection and persisting statistics."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Mapping

from telemetry_store.app_context import METRICS_FILE_PREFIX, AppContext
from telemetry_store.caches.app_data_statistics import AppDataHourStatistics
from telemetry_store.caches.app_duration_statistics import AppDurationStatistics
from telemetry_store.dto import HourAppDataStatisticsDto, HourStatisticsDto, data_hashed
from telemetry_store.metric_file import MetricFile
from telemetry_store.permanent_users import PermanentUser

logger = logging.getLogger(__name__)

PERMANENT_USERS_FILE = "permanent_users"


def get_metrics_files(app: AppContext) -> list[MetricFile]:
    """Metrics database files in the database directory, ordered by name."""
    result = []
    with os.scandir(app.settings_reader.get_db_path()) as entries:
        for entry in entries:
            if entry.is_file() and entry.name.startswith(METRICS_FILE_PREFIX):
                result.append(MetricFile(entry.path, entry.name, entry.stat().st_size))
    return sorted(result, key=lambda file: file.file_name)


def gc_files(app: AppContext, from_hour_key: int) -> None:
    """Close and delete metrics files of every hour up to and including ``from_hour_key``."""
    for file in get_metrics_files(app):
        hour_key = file.get_hour_key()
        if hour_key is None or hour_key > from_hour_key:
            continue
        app.repo.gc(hour_key)
        try:
            os.remove(file.file_name_and_path)
        except OSError as err:
            logger.error("Error deleting file %s. Err: %r", file.file_name_and_path, err)
        else:
            logger.info("File %s is deleted", file.file_name_and_path)


def write_hour_app_data_statistics(
    app: AppContext, to_save: Mapping[int, Iterable[AppDataHourStatistics]]
) -> None:
    dtos = [
        HourAppDataStatisticsDto(
            hour_key=hour_key,
            service=item.service,
            data_hashed=data_hashed(item.data),
            data=item.data,
            max=item.max,
            min=item.min,
            errors_amount=item.errors_amount,
            success_amount=item.success_amount,
            sum_of_duration=item.sum_of_duration,
            amount=item.amount,
        )
        for hour_key, items in to_save.items()
        for item in items
    ]
    app.hour_app_data_statistics_repo.update_metrics(dtos)


def write_hour_statistics_to_db(
    app: AppContext, to_save: Mapping[int, Iterable[AppDurationStatistics]]
) -> None:
    dtos = [
        HourStatisticsDto(
            hour_key=hour_key,
            app=item.name,
            duration_micros=item.duration_micros,
            amount=item.amount,
        )
        for hour_key, items in to_save.items()
        for item in items
    ]
    app.hour_statistics_repo.update(dtos)


def _user_id(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping) and isinstance(item.get("user"), str):
        return item["user"]
    raise ValueError(f"invalid permanent user entry: {item!r}")


def load_permanent_users(app: AppContext) -> list[str]:
    """Ids of the saved permanent users; empty when no file has been saved yet."""
    file_name = app.settings_reader.get_db_file_prefix(PERMANENT_USERS_FILE)
    try:
        raw = Path(file_name).read_bytes()
    except OSError:
        logger.info("No permanent users file found. Skipping loading permanent users. %s", file_name)
        return []
    items = json.loads(raw)
    if not isinstance(items, list):
        raise ValueError("permanent users file must hold a JSON array")
    return [_user_id(item) for item in items]


def save_permanent_users(app: AppContext, users: Iterable[PermanentUser]) -> None:
    file_name = app.settings_reader.get_db_file_prefix(PERMANENT_USERS_FILE)
    content = json.dumps([user.to_dict() for user in users])
    Path(file_name).write_text(content, encoding="utf-8")