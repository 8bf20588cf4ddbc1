"""Hour keys and the per-hour metrics database files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICRO = timedelta(microseconds=1)
_INTEGER = re.compile(r"[+-]?[0-9]+")


def hour_key_from_micros(micros: int) -> int:
    """Return the YYYYMMDDHH key of the UTC hour holding a unix timestamp in microseconds."""
    moment = _EPOCH + timedelta(microseconds=micros)
    return moment.year * 1_000_000 + moment.month * 10_000 + moment.day * 100 + moment.hour


def hour_key_to_micros(hour_key: int) -> int:
    """Return the unix timestamp in microseconds at which a YYYYMMDDHH hour starts."""
    if hour_key < 0:
        raise ValueError(f"invalid hour key {hour_key}")
    year, rest = divmod(hour_key, 1_000_000)
    month, rest = divmod(rest, 10_000)
    day, hour = divmod(rest, 100)
    try:
        moment = datetime(year, month, day, hour, tzinfo=timezone.utc)
    except ValueError as err:
        raise ValueError(f"invalid hour key {hour_key}") from err
    return (moment - _EPOCH) // _ONE_MICRO


@dataclass(frozen=True)
class MetricFile:
    """A metrics database file found on disk."""

    file_name_and_path: str
    file_name: str
    file_size: int

    def get_hour_key(self) -> int | None:
        raw = self.file_name.encode("utf-8")
        if len(raw) < 18:
            return None
        try:
            index = raw[8:18].decode("ascii")
        except UnicodeDecodeError:
            return None
        if not _INTEGER.fullmatch(index):
            return None
        return int(index)