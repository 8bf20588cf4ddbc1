# telemetry_store

A small telemetry collector. Applications post metric events (a service
name, the event data, start and end times, success or failure, and
optional tags) over HTTP. The events are written to one SQLite file per
UTC hour, and per-hour statistics are kept in memory and saved every
second, so they can be looked up quickly:

- per service: number of events and average duration;
- per service and event data: min, max and average duration, and
  success and error counts;
- raw events by process id, or by service and event data.

Events from users marked as *permanent* are also copied to a separate
database (`permanent_metrics.db`) that the clean-up of old hourly files
never touches.

## Installing

```
pip install .
```

## Running

```
telemetry-store [--settings PATH] [--http-port PORT]
```

- `--settings` – the YAML settings file; defaults to `~/.my-telemetry`.
- `--http-port` – the port to listen on. Without it the port is read from
  the `HTTP_PORT` environment variable, and is 8000 if that variable is
  unset, not a number or above 65535.

The server listens on all interfaces and runs until interrupted. If the
settings file cannot be read or is invalid, the command prints an error
and exits with status 1.

### Settings

| Key              | Meaning                                                           |
|------------------|-------------------------------------------------------------------|
| `DbPath`         | Directory where the SQLite files are kept (a leading `~` is expanded from `HOME`) |
| `HoursToGc`      | Hourly metric files this many hours old or older are deleted      |
| `IgnoreEvents`   | List of `{name, data}` pairs whose events are dropped on upload   |
| `SecondsToFlush` | Seconds events wait in the queue before being written (default 3) |

`DbPath`, `HoursToGc` and `IgnoreEvents` are required; a missing key or
a value of the wrong type raises `telemetry_store.settings.SettingsError`.

Example:

```yaml
DbPath: ~/telemetry
HoursToGc: 48
SecondsToFlush: 3
IgnoreEvents:
  - name: health-service
    data: /ping
```

### Files under `DbPath`

| File                          | Contents                                      |
|-------------------------------|-----------------------------------------------|
| `metrics-YYYYMMDDHH.db`       | Raw events of one hour                        |
| `h_statistics.db`             | Per-hour statistics of each service           |
| `h_app_statistics.db`         | Per-hour statistics of each service and data  |
| `permanent_metrics.db`        | Events of permanent users                     |
| `permanent_users`             | JSON list of permanent users                  |

At start-up the statistics of the current hour and the list of permanent
users are loaded back into memory. Every 10 seconds, hourly metric files
older than `HoursToGc` are closed and deleted, and cached statistics
older than two hours are dropped from memory (they stay in the
statistics databases and are read from there when asked for).

## HTTP interface

| Method | Path                      | Query parameters                                     | Response                 |
|--------|---------------------------|------------------------------------------------------|--------------------------|
| GET    | `/`                       |                                                      | Start page (HTML)        |
| POST   | `/api/add`                |                                                      | Empty on success         |
| GET    | `/ui/GetServices`         | `hour_key`                                           | `{"services": [...]}`    |
| GET    | `/ui/GetServiceOverview`  | `id`, `hour_key`                                     | `{"data": [...]}`        |
| GET    | `/ui/GetByProcessId`      | `processId`, `hour_key`                              | `{"metrics": [...]}`     |
| GET    | `/ui/GetByServiceData`    | `id`, `data`, `hourKey`, `fromSecondWithinHour`, optional `clientId` | `{"metrics": [...]}` |

A missing or non-numeric query parameter gives status 400.
`/ui/GetByServiceData` returns at most 100 events; a non-zero
`fromSecondWithinHour` keeps only events started that many seconds or
more into the hour. Files in a `wwwroot` directory under the working
directory, if there is one, are served as static files.

`/api/add` takes a JSON array of events:

```json
[
  {
    "processId": 42,
    "started": 1700000000000000,
    "ended": 1700000000250000,
    "serviceName": "orders",
    "eventData": "/api/orders",
    "success": "ok",
    "fail": null,
    "ip": "127.0.0.1",
    "tags": [{"key": "user_id", "value": "user-1"}]
  }
]
```

Times are Unix microseconds; a negative duration is stored as 0. The
`ip` field is stored as an `ip` tag. A `user_id` or `client_id` tag
becomes the client id of the event; other tags are kept as they are. An
event without a client id gets the one recorded for the same process id,
if that link is still held (links are dropped after about 20 seconds).
A body that is not valid JSON, or an event with a missing or mistyped
field, gives status 400.

Hour keys have the form `YYYYMMDDHH` (UTC);
`telemetry_store.metric_file.hour_key_from_micros` and
`hour_key_to_micros` convert between them and timestamps.

## Using it from Python

`telemetry_store.app_context.AppContext.create(SettingsReader.from_file(path))`
opens every database; the functions in `telemetry_store.flows`
(`upload_events`, `get_hour_app_statistics`,
`get_hour_app_data_statistics`, `get_available_hours_ago`,
`add_permanent_user`, `delete_permanent_user`, `get_permanent_users`)
work on it, and `telemetry_store.http.routes.build_app` returns the
aiohttp application.

## What it does not do

- There is no gRPC interface; events are uploaded and read over HTTP only.
- Permanent users cannot be added or removed over HTTP. Use
  `flows.add_permanent_user` / `flows.delete_permanent_user`, or edit the
  `permanent_users` file (a JSON list of user ids or of
  `{"user", "created", "status"}` objects) before start-up.
- The start page refers to `/js/app.js`, `/css/site.css` and similar
  assets, which are not included; place them in `wwwroot` yourself.

## Tests

```
pip install .[test]
pytest
```