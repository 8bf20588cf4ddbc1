"""Records stored in the metrics and statistics databases."""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass


@dataclass
class EventTag:
    key: str
    value: str


@dataclass
class MetricDto:
    """A single telemetry event."""

    id: int
    started: int
    duration_micro: int
    name: str
    data: str
    success: str | None = None
    fail: str | None = None
    tags: list[EventTag] | None = None
    client_id: str | None = None

    def get_tag_value(self, key: str) -> str | None:
        for tag in self.tags or ():
            if tag.key == key:
                return tag.value
        return None

    def remove_tag_value(self, key: str) -> EventTag | None:
        if self.tags is None:
            return None
        for position, tag in enumerate(self.tags):
            if tag.key == key:
                return self.tags.pop(position)
        return None

    def update_user_id_to_client_id(self, user_id_tag: str, client_id_tag: str) -> None:
        removed = self.remove_tag_value(user_id_tag)
        if removed is not None:
            self.tags.append(EventTag(client_id_tag, removed.value))

    def add_tag(self, key: str, value: str) -> str:
        if self.tags is None:
            self.tags = []
        self.tags.append(EventTag(key, value))
        return value

    def tags_to_json(self) -> str | None:
        if self.tags is None:
            return None
        return json.dumps([{"key": tag.key, "value": tag.value} for tag in self.tags])

    @staticmethod
    def tags_from_json(text: str | None) -> list[EventTag] | None:
        if text is None:
            return None
        return [EventTag(item["key"], item["value"]) for item in json.loads(text)]


@dataclass
class PermanentMetricDto:
    """An event of a permanently tracked user."""

    id: int
    client_id: str
    started: int
    duration_micro: int
    name: str
    data: str
    success: str | None = None
    fail: str | None = None
    tags: list[EventTag] | None = None

    @classmethod
    def from_metric(cls, metric: MetricDto) -> PermanentMetricDto:
        return cls(
            id=metric.id,
            client_id=metric.client_id or "",
            started=metric.started,
            duration_micro=metric.duration_micro,
            name=metric.name,
            data=metric.data,
            success=metric.success,
            fail=metric.fail,
            tags=metric.tags,
        )


@dataclass
class HourStatisticsDto:
    hour_key: int
    app: str
    duration_micros: int
    amount: int


@dataclass
class HourAppDataStatisticsDto:
    hour_key: int
    service: str
    data_hashed: str
    data: str
    max: int
    min: int
    errors_amount: int
    success_amount: int
    sum_of_duration: int
    amount: int


def data_hashed(data: str) -> str:
    """Base64 of the SHA-256 digest of the UTF-8 text."""
    return base64.b64encode(hashlib.sha256(data.encode("utf-8")).digest()).decode("ascii")