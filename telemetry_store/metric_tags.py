"""Splitting of client ids out of event tags and back."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from telemetry_store.dto import EventTag, MetricDto

USER_ID_TAG = "user_id"
CLIENT_ID_TAG = "client_id"


@dataclass
class MetricTagsResult:
    tags: list[EventTag] | None = None
    client_id: str | None = None


def _key_value(tag: Any) -> tuple[str, str]:
    if isinstance(tag, Mapping):
        return tag["key"], tag["value"]
    return tag.key, tag.value


def split_tags(src: Iterable[Any] | None) -> MetricTagsResult:
    """Separate the user or client id tag from the other tags."""
    result = MetricTagsResult()
    if src is None:
        return result
    for tag in src:
        key, value = _key_value(tag)
        if key in (USER_ID_TAG, CLIENT_ID_TAG):
            result.client_id = value
            continue
        if result.tags is None:
            result.tags = []
        result.tags.append(EventTag(key, value))
    return result


def tags_with_client_id(metric: MetricDto) -> list[EventTag]:
    """Return the metric's tags with the client id appended as a tag."""
    tags = [EventTag(tag.key, tag.value) for tag in metric.tags or ()]
    if metric.client_id is not None:
        tags.append(EventTag(CLIENT_ID_TAG, metric.client_id))
    return tags