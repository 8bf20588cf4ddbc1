"""Request and response models of the HTTP interface."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Mapping

from telemetry_store.caches.app_data_statistics import AppDataHourStatistics
from telemetry_store.caches.app_duration_statistics import AppDurationStatistics
from telemetry_store.dto import EventTag, MetricDto
from telemetry_store.metric_tags import split_tags
from telemetry_store.settings import IgnoreEvents

logger = logging.getLogger(__name__)

IP_TAG = "ip"
_PREVIEW_BYTES = 64


class InvalidMetricsError(ValueError):
    """Raised when an uploaded metrics body cannot be understood."""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _required_int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if not _is_int(value):
        raise InvalidMetricsError(f"field {key!r} must be an integer")
    return value


def _required_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise InvalidMetricsError(f"field {key!r} must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidMetricsError(f"field {key!r} must be a string or null")
    return value


def _parse_tags(raw: Any) -> list[EventTag] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise InvalidMetricsError("field 'tags' must be a list or null")
    tags = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise InvalidMetricsError("each tag must be an object")
        tags.append(EventTag(_required_str(item, "key"), _required_str(item, "value")))
    return tags


def _div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def _debug_str(text: str) -> str:
    escaped = []
    for ch in text:
        if ch == "\\":
            escaped.append("\\\\")
        elif ch == '"':
            escaped.append('\\"')
        elif ch == "\n":
            escaped.append("\\n")
        elif ch == "\r":
            escaped.append("\\r")
        elif ch == "\t":
            escaped.append("\\t")
        elif ch == "\0":
            escaped.append("\\0")
        elif not ch.isprintable() and ch != " ":
            escaped.append(f"\\u{{{ord(ch):x}}}")
        else:
            escaped.append(ch)
    return '"' + "".join(escaped) + '"'


def _describe_tags(tags: list[EventTag] | None) -> str | None:
    if tags is None:
        return None
    inner = ", ".join(
        f"EventTagDto {{ key: {_debug_str(tag.key)}, value: {_debug_str(tag.value)} }}"
        for tag in tags
    )
    return f"[{inner}]"


@dataclass
class NewMetric:
    """One event as posted to the upload endpoint."""

    process_id: int
    started: int
    ended: int
    service_name: str
    event_data: str
    success: str | None = None
    fail: str | None = None
    ip: str | None = None
    tags: list[EventTag] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NewMetric:
        if not isinstance(data, Mapping):
            raise InvalidMetricsError("each metric must be an object")
        return cls(
            process_id=_required_int(data, "processId"),
            started=_required_int(data, "started"),
            ended=_required_int(data, "ended"),
            service_name=_required_str(data, "serviceName"),
            event_data=_required_str(data, "eventData"),
            success=_optional_str(data, "success"),
            fail=_optional_str(data, "fail"),
            ip=_optional_str(data, "ip"),
            tags=_parse_tags(data.get("tags")),
        )


def parse_new_metrics(body: bytes | str, ignore_events: IgnoreEvents) -> list[MetricDto]:
    """Turn an uploaded JSON array of events into records, dropping ignored ones."""
    raw = body.encode("utf-8") if isinstance(body, str) else body
    try:
        items = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as err:
        preview = raw[:_PREVIEW_BYTES].decode("utf-8", errors="replace")
        logger.warning("Invalid json: %s", preview)
        raise InvalidMetricsError(f"invalid json: {err}") from err
    if not isinstance(items, list):
        raise InvalidMetricsError("metrics body must be a JSON array")

    result = []
    for metric in (NewMetric.from_dict(item) for item in items):
        if ignore_events.event_should_be_ignored(metric.service_name, metric.event_data):
            continue
        duration = max(metric.ended - metric.started, 0)
        tags = list(metric.tags) if metric.tags is not None else None
        if metric.ip is not None:
            tags = (tags or []) + [EventTag(IP_TAG, metric.ip)]
        split = split_tags(tags)
        logger.debug("Getting metrics by HTTP: %s", metric.service_name)
        result.append(
            MetricDto(
                id=metric.process_id,
                started=metric.started,
                duration_micro=duration,
                name=metric.service_name,
                data=metric.event_data,
                success=metric.success,
                fail=metric.fail,
                tags=split.tags,
                client_id=split.client_id,
            )
        )
    return result


@dataclass(frozen=True)
class ServiceHttpModel:
    id: str
    avg: int
    amount: int

    @classmethod
    def from_stats(cls, value: AppDurationStatistics) -> ServiceHttpModel:
        return cls(id=value.name, avg=_div(value.duration_micros, value.amount), amount=value.amount)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ServiceOverviewContract:
    data: str
    min: int
    max: int
    avg: int
    success: int
    error: int
    total: int

    @classmethod
    def from_stats(cls, value: AppDataHourStatistics) -> ServiceOverviewContract:
        total = value.success_amount + value.errors_amount
        return cls(
            data=value.data,
            min=value.min,
            max=value.max,
            avg=_div(value.sum_of_duration, total),
            success=value.success_amount,
            error=value.errors_amount,
            total=total,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MetricHttpModel:
    id: int
    started: int
    duration: int
    success: str | None
    error: str | None
    ip: str | None

    @classmethod
    def from_metric(cls, metric: MetricDto) -> MetricHttpModel:
        return cls(
            id=metric.id,
            started=metric.started,
            duration=metric.duration_micro,
            success=metric.success,
            error=metric.fail,
            ip=_describe_tags(metric.tags),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MetricByProcessModel:
    id: str
    data: str
    started: int
    duration: int
    success: str | None
    error: str | None
    ip: str | None

    @classmethod
    def from_metric(cls, metric: MetricDto) -> MetricByProcessModel:
        return cls(
            id=metric.name,
            data=metric.data,
            started=metric.started,
            duration=metric.duration_micro,
            success=metric.success,
            error=metric.fail,
            ip=_describe_tags(metric.tags),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)