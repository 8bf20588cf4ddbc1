"""HTTP endpoints of the service."""

from __future__ import annotations

from pathlib import Path

from aiohttp import web

from telemetry_store import flows
from telemetry_store.app_context import APP_VERSION, AppContext
from telemetry_store.http.models import (
    InvalidMetricsError,
    MetricByProcessModel,
    MetricHttpModel,
    ServiceHttpModel,
    ServiceOverviewContract,
    parse_new_metrics,
)
from telemetry_store.metric_file import hour_key_to_micros

STATIC_DIR = Path("wwwroot")
MICROS_PER_SECOND = 1_000_000


def index_page(app: AppContext) -> str:
    """The HTML shell of the web interface."""
    return (
        f"<html><head><title>{APP_VERSION} Telemetry</title>\n"
        '        <link rel="icon" type="image/png" href="/img/favicon.png" />\n'
        '        <link href="/css/bootstrap.css" rel="stylesheet" type="text/css" />\n'
        '        <link href="/css/site.css" rel="stylesheet" type="text/css" />\n'
        '        <script src="/js/jquery.js"></script>'
        f'<script src="/js/app.js?ver={app.process_id}"></script>\n'
        "        </head><body></body></html>"
    )


def _query_str(request: web.Request, name: str) -> str:
    value = request.query.get(name)
    if value is None:
        raise web.HTTPBadRequest(text=f"missing query parameter {name!r}")
    return value


def _query_int(request: web.Request, name: str) -> int:
    raw = _query_str(request, name)
    try:
        return int(raw)
    except ValueError:
        raise web.HTTPBadRequest(text=f"query parameter {name!r} must be an integer") from None


def build_app(app: AppContext) -> web.Application:
    """Create the web application serving the upload and UI endpoints."""

    async def index(_: web.Request) -> web.Response:
        return web.Response(text=index_page(app), content_type="text/html")

    async def post_metrics(request: web.Request) -> web.Response:
        body = await request.read()
        try:
            metrics = parse_new_metrics(body, app.settings_reader.get_ignore_events())
        except InvalidMetricsError as err:
            return web.Response(status=400, text=str(err))
        flows.upload_events(app, metrics)
        return web.Response(status=200)

    async def get_services(request: web.Request) -> web.Response:
        hour_key = _query_int(request, "hour_key")
        services = flows.get_hour_app_statistics(app, hour_key)
        return web.json_response(
            {"services": [ServiceHttpModel.from_stats(item).to_dict() for item in services]}
        )

    async def get_service_overview(request: web.Request) -> web.Response:
        service = _query_str(request, "id")
        hour_key = _query_int(request, "hour_key")
        data = flows.get_hour_app_data_statistics(app, hour_key, service)
        return web.json_response(
            {"data": [ServiceOverviewContract.from_stats(item).to_dict() for item in data]}
        )

    async def get_by_process_id(request: web.Request) -> web.Response:
        process_id = _query_int(request, "processId")
        hour_key = _query_int(request, "hour_key")
        events = app.repo.get_by_process_id(hour_key, process_id)
        return web.json_response(
            {"metrics": [MetricByProcessModel.from_metric(event).to_dict() for event in events]}
        )

    async def get_by_service_data(request: web.Request) -> web.Response:
        service = _query_str(request, "id")
        data = _query_str(request, "data")
        hour_key = _query_int(request, "hourKey")
        client_id = request.query.get("clientId")
        from_second = _query_int(request, "fromSecondWithinHour")

        from_started = None
        if from_second != 0:
            try:
                hour_start = hour_key_to_micros(hour_key)
            except ValueError as err:
                raise web.HTTPBadRequest(text=str(err)) from None
            from_started = hour_start + from_second * MICROS_PER_SECOND

        events = app.repo.get_by_service_name(hour_key, service, data, client_id, from_started)
        return web.json_response(
            {"metrics": [MetricHttpModel.from_metric(event).to_dict() for event in events]}
        )

    web_app = web.Application()
    web_app.router.add_post("/api/add", post_metrics)
    web_app.router.add_get("/ui/GetServices", get_services)
    web_app.router.add_get("/ui/GetServiceOverview", get_service_overview)
    web_app.router.add_get("/ui/GetByProcessId", get_by_process_id)
    web_app.router.add_get("/ui/GetByServiceData", get_by_service_data)
    web_app.router.add_get("/", index)
    if STATIC_DIR.is_dir():
        web_app.router.add_static("/", STATIC_DIR)
    return web_app