"""Command that starts the telemetry service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import sys
from pathlib import Path

import yaml
from aiohttp import web

from telemetry_store import flows
from telemetry_store.app_context import AppContext
from telemetry_store.http.routes import build_app
from telemetry_store.settings import SettingsError, SettingsReader
from telemetry_store.timers import (
    GC_INTERVAL,
    GC_TIMEOUT,
    METRICS_WRITER_INTERVAL,
    SAVE_STATISTICS_INTERVAL,
    GcTimer,
    MetricsWriter,
    SaveStatisticsTimer,
    run_periodically,
)

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 8000
DEFAULT_SETTINGS_FILE = ".my-telemetry"
_MAX_PORT = 65535
_PORT = re.compile(r"\+?[0-9]+")


def get_port(env_name: str, default: int) -> int:
    """Port from an environment variable, or ``default`` when unset or invalid."""
    raw = os.environ.get(env_name)
    if raw is None or not _PORT.fullmatch(raw):
        return default
    port = int(raw)
    return port if port <= _MAX_PORT else default


async def run(settings_path: str | os.PathLike[str], http_port: int) -> None:
    """Run the service until the task is cancelled."""
    settings = SettingsReader.from_file(settings_path)
    app = AppContext.create(settings)
    runner = web.AppRunner(build_app(app))
    runner_ready = False
    tasks: list[asyncio.Task] = []
    try:
        await runner.setup()
        runner_ready = True
        logger.info("Http server port is: %s", http_port)

        flows.init(app)

        tasks = [
            asyncio.create_task(run_periodically(GC_INTERVAL, GcTimer(app).tick, GC_TIMEOUT)),
            asyncio.create_task(
                run_periodically(SAVE_STATISTICS_INTERVAL, SaveStatisticsTimer(app).tick)
            ),
            asyncio.create_task(
                run_periodically(METRICS_WRITER_INTERVAL, MetricsWriter(app).tick)
            ),
        ]

        site = web.TCPSite(runner, "0.0.0.0", http_port)
        await site.start()
        await asyncio.Event().wait()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if runner_ready:
            await runner.cleanup()
        app.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="telemetry-store", description="Collect and serve telemetry events."
    )
    parser.add_argument(
        "--settings",
        default=None,
        help=f"settings file (default: ~/{DEFAULT_SETTINGS_FILE})",
    )
    parser.add_argument(
        "--http-port",
        type=int,
        default=None,
        help=f"HTTP port (default: $HTTP_PORT or {DEFAULT_HTTP_PORT})",
    )
    args = parser.parse_args(argv)

    settings_path = args.settings or str(Path.home() / DEFAULT_SETTINGS_FILE)
    http_port = (
        args.http_port if args.http_port is not None else get_port("HTTP_PORT", DEFAULT_HTTP_PORT)
    )

    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(run(settings_path, http_port))
    except KeyboardInterrupt:
        return 0
    except (SettingsError, yaml.YAMLError, OSError) as err:
        print(f"error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())