"""Service settings and the list of events that are dropped on upload."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

DEFAULT_SECONDS_TO_FLUSH = 3


class SettingsError(ValueError):
    """Raised when a settings document is missing a field or has a bad value."""


@dataclass(frozen=True)
class IgnoreEvent:
    """A (service name, event data) pair whose events are not stored."""

    name: str
    data: str


class IgnoreEvents:
    """Lookup of events that must be skipped."""

    def __init__(self, events: Iterable[IgnoreEvent] = ()) -> None:
        self._events = frozenset((event.name, event.data) for event in events)

    def event_should_be_ignored(self, name: str, data: str) -> bool:
        return (name, data) in self._events

    def __len__(self) -> int:
        return len(self._events)


def _require(data: Mapping[str, Any], key: str, kind: type) -> Any:
    if key not in data:
        raise SettingsError(f"missing setting {key!r}")
    value = data[key]
    if not isinstance(value, kind) or isinstance(value, bool):
        raise SettingsError(f"setting {key!r} must be of type {kind.__name__}")
    return value


def _parse_ignore_event(item: Any) -> IgnoreEvent:
    if not isinstance(item, Mapping):
        raise SettingsError("each IgnoreEvents entry must be a mapping")
    return IgnoreEvent(name=_require(item, "name", str), data=_require(item, "data", str))


@dataclass(frozen=True)
class SettingsModel:
    """Settings as they are stored in the settings file."""

    db_path: str
    hours_to_gc: int
    ignore_events: tuple[IgnoreEvent, ...] = field(default_factory=tuple)
    seconds_to_flush: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SettingsModel:
        if not isinstance(data, Mapping):
            raise SettingsError("settings document must be a mapping")
        ignore = _require(data, "IgnoreEvents", list)
        seconds = data.get("SecondsToFlush")
        if seconds is not None and (not isinstance(seconds, int) or isinstance(seconds, bool)):
            raise SettingsError("setting 'SecondsToFlush' must be of type int")
        return cls(
            db_path=_require(data, "DbPath", str),
            hours_to_gc=_require(data, "HoursToGc", int),
            ignore_events=tuple(_parse_ignore_event(item) for item in ignore),
            seconds_to_flush=seconds,
        )


def _home() -> str:
    try:
        return os.environ["HOME"]
    except KeyError:
        raise SettingsError("HOME environment variable is not set") from None


class SettingsReader:
    """Read access to the service settings."""

    def __init__(self, model: SettingsModel) -> None:
        self.model = model

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> SettingsReader:
        text = Path(path).read_text(encoding="utf-8")
        return cls(SettingsModel.from_dict(yaml.safe_load(text) or {}))

    def get_ignore_events(self) -> IgnoreEvents:
        return IgnoreEvents(self.model.ignore_events)

    def get_db_path(self) -> str:
        path = self.model.db_path
        if path.endswith(os.sep):
            path = path[:-1]
        if path.startswith("~"):
            path = path.replace("~", _home())
        return path

    def get_db_file_prefix(self, file_name: str) -> str:
        result = self.model.db_path
        if result.startswith("~"):
            result = result.replace("~", _home())
        if not result.endswith(os.sep):
            result += os.sep
        return result + file_name

    def get_hours_to_gc(self) -> timedelta:
        return timedelta(seconds=self.model.hours_to_gc * 3600)

    def get_seconds_to_flush(self) -> int:
        if self.model.seconds_to_flush is None:
            return DEFAULT_SECONDS_TO_FLUSH
        return self.model.seconds_to_flush