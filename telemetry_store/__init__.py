"""Telemetry collector with hourly SQLite storage and per-hour statistics."""

__version__ = "0.1.0"