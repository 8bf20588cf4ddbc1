"""SQLite repositories for hourly statistics and permanent users' events."""

from __future__ import annotations

import json
import sqlite3
from typing import Iterable

from telemetry_store.dto import (
    EventTag,
    HourAppDataStatisticsDto,
    HourStatisticsDto,
    MetricDto,
    PermanentMetricDto,
)


class _SqliteRepo:
    _schema: str = ""

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        self._db = sqlite3.connect(file_name, check_same_thread=False)
        with self._db:
            self._db.execute(self._schema)

    def close(self) -> None:
        self._db.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class HourStatisticsRepo(_SqliteRepo):
    """Per-hour event amounts and durations for each application."""

    _table = "hour_statistics"
    _schema = (
        "CREATE TABLE IF NOT EXISTS hour_statistics ("
        "hour_key INTEGER NOT NULL, "
        "app TEXT NOT NULL, "
        "duration_micros INTEGER NOT NULL, "
        "amount INTEGER NOT NULL, "
        "PRIMARY KEY (hour_key, app))"
    )

    def update(self, dtos: Iterable[HourStatisticsDto]) -> None:
        rows = [(d.hour_key, d.app, d.duration_micros, d.amount) for d in dtos]
        with self._db:
            self._db.executemany(
                "INSERT OR REPLACE INTO hour_statistics (hour_key, app, duration_micros, amount) "
                "VALUES (?, ?, ?, ?)",
                rows,
            )

    def get(self, hour_key: int) -> list[HourStatisticsDto]:
        rows = self._db.execute(
            "SELECT hour_key, app, duration_micros, amount FROM hour_statistics "
            "WHERE hour_key = ? ORDER BY app",
            (hour_key,),
        )
        return [HourStatisticsDto(*row) for row in rows]


_APP_DATA_COLUMNS = (
    "hour_key, service, data_hashed, data, max, min, "
    "errors_amount, success_amount, sum_of_duration, amount"
)


class HourAppDataStatisticsRepo(_SqliteRepo):
    """Per-hour statistics of each (service, event data) pair."""

    _schema = (
        "CREATE TABLE IF NOT EXISTS statistics ("
        "hour_key INTEGER NOT NULL, "
        "service TEXT NOT NULL, "
        "data_hashed TEXT NOT NULL, "
        "data TEXT NOT NULL, "
        "max INTEGER NOT NULL, "
        "min INTEGER NOT NULL, "
        "errors_amount INTEGER NOT NULL, "
        "success_amount INTEGER NOT NULL, "
        "sum_of_duration INTEGER NOT NULL, "
        "amount INTEGER NOT NULL, "
        "PRIMARY KEY (hour_key, service, data_hashed))"
    )

    def update_metrics(self, dtos: Iterable[HourAppDataStatisticsDto]) -> None:
        rows = [
            (
                d.hour_key,
                d.service,
                d.data_hashed,
                d.data,
                d.max,
                d.min,
                d.errors_amount,
                d.success_amount,
                d.sum_of_duration,
                d.amount,
            )
            for d in dtos
        ]
        with self._db:
            self._db.executemany(
                f"INSERT OR REPLACE INTO statistics ({_APP_DATA_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )

    def _select(self, where: str, params: tuple) -> list[HourAppDataStatisticsDto]:
        rows = self._db.execute(
            f"SELECT {_APP_DATA_COLUMNS} FROM statistics WHERE {where} "
            "ORDER BY hour_key DESC, service, data_hashed",
            params,
        )
        return [HourAppDataStatisticsDto(*row) for row in rows]

    def get(self, hour_key: int) -> list[HourAppDataStatisticsDto]:
        return self._select("hour_key = ?", (hour_key,))

    def get_by_app(self, hour_key: int, app: str) -> list[HourAppDataStatisticsDto]:
        return self._select("hour_key = ? AND service = ?", (hour_key, app))


def _tags_to_json(tags: list[EventTag] | None) -> str | None:
    if tags is None:
        return None
    return json.dumps([{"key": tag.key, "value": tag.value} for tag in tags])


_PERMANENT_COLUMNS = "id, client_id, started, duration_micro, name, data, success, fail, tags"


class PermanentMetricsRepo(_SqliteRepo):
    """Events of permanently tracked users."""

    _schema = (
        "CREATE TABLE IF NOT EXISTS permanent_metrics ("
        "id INTEGER NOT NULL, "
        "client_id TEXT NOT NULL, "
        "started INTEGER NOT NULL, "
        "duration_micro INTEGER NOT NULL, "
        "name TEXT NOT NULL, "
        "data TEXT NOT NULL, "
        "success TEXT, "
        "fail TEXT, "
        "tags TEXT, "
        "PRIMARY KEY (client_id, started, name, data))"
    )

    def __init__(self, file_name: str) -> None:
        super().__init__(file_name)
        with self._db:
            self._db.execute(
                "CREATE INDEX IF NOT EXISTS process_id_idx ON permanent_metrics (id ASC)"
            )
            self._db.execute(
                "CREATE INDEX IF NOT EXISTS started_idx ON permanent_metrics (started ASC)"
            )

    def insert(self, dtos: Iterable[PermanentMetricDto]) -> None:
        rows = [
            (
                d.id,
                d.client_id,
                d.started,
                d.duration_micro,
                d.name,
                d.data,
                d.success,
                d.fail,
                _tags_to_json(d.tags),
            )
            for d in dtos
        ]
        with self._db:
            self._db.executemany(
                f"INSERT OR REPLACE INTO permanent_metrics ({_PERMANENT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )

    def get_all(self) -> list[PermanentMetricDto]:
        rows = self._db.execute(
            f"SELECT {_PERMANENT_COLUMNS} FROM permanent_metrics "
            "ORDER BY client_id, started, name, data"
        )
        return [
            PermanentMetricDto(*row[:8], tags=MetricDto.tags_from_json(row[8])) for row in rows
        ]