import base64

import pytest

from telemetry_store.dto import EventTag, MetricDto, PermanentMetricDto, data_hashed


def _metric(**kwargs):
    values = dict(id=1, started=100, duration_micro=5, name="svc", data="action")
    values.update(kwargs)
    return MetricDto(**values)


def test_get_tag_value():
    metric = _metric(tags=[EventTag("a", "1"), EventTag("b", "2")])
    assert metric.get_tag_value("b") == "2"
    assert metric.get_tag_value("c") is None
    assert _metric().get_tag_value("a") is None


def test_remove_tag_value():
    metric = _metric(tags=[EventTag("a", "1"), EventTag("b", "2")])
    assert metric.remove_tag_value("a") == EventTag("a", "1")
    assert metric.tags == [EventTag("b", "2")]
    assert metric.remove_tag_value("a") is None


def test_update_user_id_to_client_id_moves_tag_to_end():
    metric = _metric(tags=[EventTag("user_id", "u1"), EventTag("b", "2")])
    metric.update_user_id_to_client_id("user_id", "client_id")
    assert metric.tags == [EventTag("b", "2"), EventTag("client_id", "u1")]


def test_update_user_id_without_tag_leaves_tags():
    metric = _metric(tags=[EventTag("b", "2")])
    metric.update_user_id_to_client_id("user_id", "client_id")
    assert metric.tags == [EventTag("b", "2")]


def test_add_tag_creates_list():
    metric = _metric()
    assert metric.add_tag("ip", "10.0.0.1") == "10.0.0.1"
    assert metric.add_tag("x", "y") == "y"
    assert metric.tags == [EventTag("ip", "10.0.0.1"), EventTag("x", "y")]


def test_tags_json_round_trip():
    metric = _metric(tags=[EventTag("a", "1"), EventTag("b", "ü")])
    assert MetricDto.tags_from_json(metric.tags_to_json()) == metric.tags


def test_tags_json_none():
    assert _metric().tags_to_json() is None
    assert MetricDto.tags_from_json(None) is None


def test_permanent_from_metric():
    metric = _metric(client_id="alice", success="ok", tags=[EventTag("a", "1")])
    permanent = PermanentMetricDto.from_metric(metric)
    assert permanent.client_id == "alice"
    assert permanent.success == "ok"
    assert permanent.tags == [EventTag("a", "1")]
    assert (permanent.id, permanent.started, permanent.name) == (1, 100, "svc")


def test_permanent_from_metric_without_client():
    assert PermanentMetricDto.from_metric(_metric()).client_id == ""


def test_data_hashed_of_empty_string():
    assert data_hashed("") == "47DEQpj8HBSa+/TImW7Jwr6Q8CoyB3l4ApWTbdhG6/g="


@pytest.mark.parametrize("text", ["a", "some action", "ünïcode"])
def test_data_hashed_is_32_byte_digest(text):
    assert len(base64.b64decode(data_hashed(text))) == 32
    assert data_hashed(text) == data_hashed(text)


def test_data_hashed_differs_for_different_data():
    assert data_hashed("a") != data_hashed("b")