"""Raw telemetry events stored in one SQLite file per hour."""

from __future__ import annotations

import logging
import os
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from telemetry_store.dto import MetricDto
from telemetry_store.metric_file import hour_key_from_micros

logger = logging.getLogger(__name__)

TABLE_NAME = "metrics"
SERVICE_NAME_QUERY_LIMIT = 100

_COLUMNS = "id, started, duration_micro, name, data, success, fail, tags, client_id"

_SCHEMA = (
    f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
    "id INTEGER NOT NULL, "
    "started INTEGER NOT NULL, "
    "duration_micro INTEGER NOT NULL, "
    "name TEXT NOT NULL, "
    "data TEXT NOT NULL, "
    "success TEXT, "
    "fail TEXT, "
    "tags TEXT, "
    "client_id TEXT, "
    "PRIMARY KEY (name, data, started))",
    f"CREATE INDEX IF NOT EXISTS process_id_idx ON {TABLE_NAME} (id ASC)",
    f"CREATE INDEX IF NOT EXISTS started_idx ON {TABLE_NAME} (started ASC)",
)


def compile_file_name(prefix: str, hour_key: int) -> str:
    """Return the name of the database file that holds the events of one hour."""
    return f"{prefix}-{hour_key}.db"


def _to_row(metric: MetricDto) -> tuple[Any, ...]:
    return (
        metric.id,
        metric.started,
        metric.duration_micro,
        metric.name,
        metric.data,
        metric.success,
        metric.fail,
        metric.tags_to_json(),
        metric.client_id,
    )


def _from_row(row: Sequence[Any]) -> MetricDto:
    id_, started, duration, name, data, success, fail, tags, client_id = row
    return MetricDto(
        id=id_,
        started=started,
        duration_micro=duration,
        name=name,
        data=data,
        success=success,
        fail=fail,
        tags=MetricDto.tags_from_json(tags),
        client_id=client_id,
    )


class MetricsConnection:
    """An open metrics database file."""

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        self._db = sqlite3.connect(file_name, check_same_thread=False)
        with self._db:
            for statement in _SCHEMA:
                self._db.execute(statement)

    def insert_if_not_exists(self, metrics: Iterable[MetricDto]) -> None:
        """Insert events, skipping those whose (name, data, started) is already stored."""
        rows = [_to_row(metric) for metric in metrics]
        with self._db:
            self._db.executemany(
                f"INSERT OR IGNORE INTO {TABLE_NAME} ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )

    def _query(self, conditions: list[str], params: list[Any], limit: int | None = None) -> list[MetricDto]:
        sql = f"SELECT {_COLUMNS} FROM {TABLE_NAME} WHERE " + " AND ".join(conditions)
        if limit is not None:
            sql += " LIMIT ?"
            params = [*params, limit]
        return [_from_row(row) for row in self._db.execute(sql, params)]

    def query_by_process_id(self, process_id: int) -> list[MetricDto]:
        return self._query(["id = ?"], [process_id])

    def query_by_service_name(
        self,
        name: str,
        data: str,
        client_id: str | None = None,
        started: int | None = None,
        limit: int = SERVICE_NAME_QUERY_LIMIT,
    ) -> list[MetricDto]:
        """Events of one action, optionally of one client and from a moment on."""
        conditions = ["name = ?", "data = ?"]
        params: list[Any] = [name, data]
        if client_id is not None:
            conditions.append("client_id = ?")
            params.append(client_id)
        if started is not None:
            conditions.append("started >= ?")
            params.append(started)
        return self._query(conditions, params, limit)

    def close(self) -> None:
        self._db.close()

    def __enter__(self) -> MetricsConnection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass
class _PoolItem:
    connection: MetricsConnection
    last_access: float = field(default_factory=time.time)


class SqlitePool:
    """Open connections to the hourly metrics files, keyed by hour."""

    def __init__(self, file_name_prefix: str) -> None:
        self.file_name_prefix = file_name_prefix
        self._items: dict[int, _PoolItem] = {}
        self._being_deleted: int | None = None

    def _open(self, hour_key: int) -> MetricsConnection:
        connection = MetricsConnection(compile_file_name(self.file_name_prefix, hour_key))
        self._items[hour_key] = _PoolItem(connection)
        return connection

    def get_for_read_access(self, hour_key: int) -> MetricsConnection | None:
        """Connection to an existing hour file, or None if there is none or it is being removed."""
        if self._being_deleted == hour_key:
            return None
        item = self._items.get(hour_key)
        if item is not None:
            item.last_access = time.time()
            return item.connection
        if not os.path.exists(compile_file_name(self.file_name_prefix, hour_key)):
            return None
        return self._open(hour_key)

    def get_for_write_access(self, hour_key: int) -> MetricsConnection:
        """Connection to an hour file, creating the file when needed."""
        item = self._items.get(hour_key)
        if item is not None:
            item.last_access = time.time()
            return item.connection
        return self._open(hour_key)

    def gc_file(self, hour_key: int) -> None:
        """Mark an hour as being removed and close its connection."""
        self._being_deleted = hour_key
        item = self._items.pop(hour_key, None)
        if item is not None:
            item.connection.close()
            logger.info(
                "File %s for hour key %s is removed from the pool",
                item.connection.file_name,
                hour_key,
            )

    def close(self) -> None:
        for item in self._items.values():
            item.connection.close()
        self._items.clear()


class MetricsRepo:
    """Writes events into hourly files and reads them back."""

    def __init__(self, file_name_prefix: str) -> None:
        self._pool = SqlitePool(file_name_prefix)

    def insert(self, metrics: Iterable[MetricDto]) -> dict[int, list[MetricDto]]:
        """Store events in their hour files and return them grouped by hour, in hour order."""
        grouped: dict[int, list[MetricDto]] = {}
        for metric in metrics:
            grouped.setdefault(hour_key_from_micros(metric.started), []).append(metric)
        by_hour = dict(sorted(grouped.items()))
        for hour_key, items in by_hour.items():
            connection = self._pool.get_for_write_access(hour_key)
            try:
                connection.insert_if_not_exists(items)
            except sqlite3.Error as err:
                logger.error("Failed to write metrics to db: %r", err)
        return by_hour

    def get_by_process_id(self, hour_key: int, process_id: int) -> list[MetricDto]:
        logger.info("Requested get_by_process_id process_id: %s", process_id)
        started = time.perf_counter()
        connection = self._pool.get_for_read_access(hour_key)
        result = connection.query_by_process_id(process_id) if connection is not None else []
        logger.info("get_by_process_id finished in: %.6fs", time.perf_counter() - started)
        return result

    def get_by_service_name(
        self,
        hour_key: int,
        service_name: str,
        data: str,
        client_id: str | None = None,
        started: int | None = None,
    ) -> list[MetricDto]:
        logger.info(
            "Requested get_by_service_name for: %s with data: %s. ClientId: %s",
            service_name,
            data,
            client_id,
        )
        began = time.perf_counter()
        connection = self._pool.get_for_read_access(hour_key)
        if connection is None:
            result: list[MetricDto] = []
        else:
            result = connection.query_by_service_name(
                service_name, data, client_id, started, SERVICE_NAME_QUERY_LIMIT
            )
        logger.info("get_by_service_name finished in: %.6fs", time.perf_counter() - began)
        return result

    def gc(self, hour_key: int) -> None:
        self._pool.gc_file(hour_key)

    def close(self) -> None:
        self._pool.close()