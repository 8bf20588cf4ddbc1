"""Shared state of the running service."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from telemetry_store.caches.app_data_statistics import StatisticsByAppAndData
from telemetry_store.caches.app_duration_statistics import EventAmountsByHour
from telemetry_store.db.metrics_repo import MetricsRepo
from telemetry_store.db.statistics_repos import (
    HourAppDataStatisticsRepo,
    HourStatisticsRepo,
    PermanentMetricsRepo,
)
from telemetry_store.permanent_users import PermanentUsersList
from telemetry_store.process_id_user_id_links import ProcessIdUserIdLinks
from telemetry_store.settings import SettingsReader
from telemetry_store.to_write_queue import ToWriteQueue

APP_VERSION = "0.1.0"

METRICS_FILE_PREFIX = "metrics"
HOUR_APP_DATA_STATISTICS_FILE = "h_app_statistics.db"
PERMANENT_METRICS_FILE = "permanent_metrics.db"
HOUR_STATISTICS_FILE = "h_statistics.db"


@dataclass
class StatisticsCache:
    """In-memory statistics and user bookkeeping."""

    event_amount_by_hours: EventAmountsByHour = field(default_factory=EventAmountsByHour)
    statistics_by_app_and_data: StatisticsByAppAndData = field(
        default_factory=StatisticsByAppAndData
    )
    process_id_user_id_links: ProcessIdUserIdLinks = field(default_factory=ProcessIdUserIdLinks)
    permanent_users_list: PermanentUsersList = field(default_factory=PermanentUsersList)


@dataclass(eq=False)
class AppContext:
    """Settings, repositories, queues and caches of one service instance."""

    settings_reader: SettingsReader
    process_id: str
    repo: MetricsRepo
    permanent_metrics: PermanentMetricsRepo
    to_write_queue: ToWriteQueue
    cache: StatisticsCache
    hour_statistics_repo: HourStatisticsRepo
    hour_app_data_statistics_repo: HourAppDataStatisticsRepo

    @classmethod
    def create(cls, settings_reader: SettingsReader) -> AppContext:
        """Open every database under the configured path."""
        prefix = settings_reader.get_db_file_prefix
        return cls(
            settings_reader=settings_reader,
            process_id=str(uuid.uuid4()),
            repo=MetricsRepo(prefix(METRICS_FILE_PREFIX)),
            permanent_metrics=PermanentMetricsRepo(prefix(PERMANENT_METRICS_FILE)),
            to_write_queue=ToWriteQueue(),
            cache=StatisticsCache(),
            hour_statistics_repo=HourStatisticsRepo(prefix(HOUR_STATISTICS_FILE)),
            hour_app_data_statistics_repo=HourAppDataStatisticsRepo(
                prefix(HOUR_APP_DATA_STATISTICS_FILE)
            ),
        )

    def close(self) -> None:
        self.repo.close()
        self.permanent_metrics.close()
        self.hour_statistics_repo.close()
        self.hour_app_data_statistics_repo.close()

    def __enter__(self) -> AppContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()