import os

import pytest

from telemetry_store.db.metrics_repo import (
    MetricsConnection,
    MetricsRepo,
    SqlitePool,
    compile_file_name,
)
from telemetry_store.dto import EventTag, MetricDto
from telemetry_store.metric_file import hour_key_from_micros, hour_key_to_micros

HOUR = 2024010112
BASE = hour_key_to_micros(HOUR)
HOUR_MICROS = 3_600_000_000


def _metric(pid, started, name="svc", data="act", **kwargs):
    return MetricDto(id=pid, started=started, duration_micro=10, name=name, data=data, **kwargs)


@pytest.fixture
def connection(tmp_path):
    conn = MetricsConnection(str(tmp_path / "m.db"))
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_path):
    repository = MetricsRepo(str(tmp_path / "metrics"))
    yield repository
    repository.close()


def test_compile_file_name():
    assert compile_file_name("dir/metrics", HOUR) == "dir/metrics-2024010112.db"


def test_connection_round_trip(connection):
    metric = _metric(
        1, BASE, success="ok", tags=[EventTag("ip", "10.0.0.1")], client_id="c1"
    )
    connection.insert_if_not_exists([metric])
    assert connection.query_by_process_id(1) == [metric]
    assert connection.query_by_process_id(2) == []


def test_duplicates_are_ignored(connection):
    first = _metric(1, BASE)
    second = MetricDto(id=2, started=BASE, duration_micro=99, name="svc", data="act")
    connection.insert_if_not_exists([first])
    connection.insert_if_not_exists([second])
    assert connection.query_by_service_name("svc", "act") == [first]


def test_query_by_service_name_filters(connection):
    metrics = [
        _metric(1, BASE, client_id="a"),
        _metric(2, BASE + 1, client_id="b"),
        _metric(3, BASE + 2, client_id="a"),
        _metric(4, BASE + 3, data="other", client_id="a"),
    ]
    connection.insert_if_not_exists(metrics)
    by_client = connection.query_by_service_name("svc", "act", client_id="a")
    assert sorted(m.id for m in by_client) == [1, 3]
    from_started = connection.query_by_service_name("svc", "act", started=BASE + 1)
    assert sorted(m.id for m in from_started) == [2, 3]
    assert len(connection.query_by_service_name("svc", "act", limit=2)) == 2


def test_pool_read_access_requires_file(tmp_path):
    pool = SqlitePool(str(tmp_path / "metrics"))
    assert pool.get_for_read_access(HOUR) is None
    written = pool.get_for_write_access(HOUR)
    assert os.path.exists(compile_file_name(str(tmp_path / "metrics"), HOUR))
    assert pool.get_for_read_access(HOUR) is written
    pool.close()


def test_pool_gc_blocks_reads(tmp_path):
    pool = SqlitePool(str(tmp_path / "metrics"))
    pool.get_for_write_access(HOUR)
    pool.gc_file(HOUR)
    assert pool.get_for_read_access(HOUR) is None
    pool.close()


def test_insert_groups_by_hour(repo, tmp_path):
    later = BASE + HOUR_MICROS
    metrics = [_metric(1, later), _metric(2, BASE), _metric(3, BASE + 5)]
    result = repo.insert(metrics)
    later_key = hour_key_from_micros(later)
    assert list(result) == [HOUR, later_key]
    assert [m.id for m in result[HOUR]] == [2, 3]
    assert [m.id for m in result[later_key]] == [1]
    assert os.path.exists(compile_file_name(str(tmp_path / "metrics"), later_key))


def test_get_by_process_id(repo):
    repo.insert([_metric(7, BASE), _metric(8, BASE + 1)])
    assert [m.id for m in repo.get_by_process_id(HOUR, 7)] == [7]
    assert repo.get_by_process_id(HOUR + 1, 7) == []


def test_get_by_service_name_is_limited(repo):
    repo.insert([_metric(i, BASE + i) for i in range(150)])
    assert len(repo.get_by_service_name(HOUR, "svc", "act")) == 100


def test_data_is_read_by_a_new_repo(tmp_path):
    prefix = str(tmp_path / "metrics")
    writer = MetricsRepo(prefix)
    metric = _metric(5, BASE, client_id="c")
    writer.insert([metric])
    writer.close()
    reader = MetricsRepo(prefix)
    assert reader.get_by_service_name(HOUR, "svc", "act", client_id="c") == [metric]
    reader.close()


def test_gc_hides_hour(repo):
    repo.insert([_metric(1, BASE)])
    repo.gc(HOUR)
    assert repo.get_by_process_id(HOUR, 1) == []
    assert repo.get_by_service_name(HOUR, "svc", "act") == []