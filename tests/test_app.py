import pytest
from fastapi.testclient import TestClient

from apps.pgbouncer_exporter.app import create_app
from apps.pgbouncer_exporter.config import Settings

from conftest import FakeExecutor, FakeResult


@pytest.fixture
def executor():
    return FakeExecutor(
        {
            "SHOW pools;": FakeResult(
                ["database", "user", "pool_mode", "cl_active", "maxwait_us"],
                [("db1", "app", "transaction", 4, 2500)],
            ),
            "SHOW lists;": FakeResult(["list", "items"], [("users", 2), ("dns_pending", 0)]),
        }
    )


def _settings(**overrides):
    values = {
        "connection_string": "host=localhost port=6543 dbname=pgbouncer",
        "namespace": "pgbouncer",
        "telemetry_path": "/metrics",
        "otlp_endpoint": None,
    }
    values.update(overrides)
    return Settings(**values)


def test_metrics_endpoint(executor):
    client = TestClient(create_app(_settings(), executor=executor))

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    body = resp.text
    assert 'pgbouncer_pools_client_active_connections{database="db1",pool_mode="transaction",user="app"} 4.0' in body
    assert 'pgbouncer_pools_client_maxwait_subsecond_seconds{database="db1",pool_mode="transaction",user="app"} 0.0025' in body
    assert "pgbouncer_lists_users 2.0" in body
    assert "pgbouncer_up 1.0" in body
    assert "pgbouncer_last_scrape_error 0.0" in body


def test_custom_namespace_and_path(executor):
    client = TestClient(create_app(_settings(namespace="edge", telemetry_path="scrape"), executor=executor))

    assert client.get("/metrics").status_code == 404
    body = client.get("/scrape").text
    assert "edge_up 1.0" in body
    assert "edge_lists_users 2.0" in body


def test_backend_down(executor):
    executor.up = False
    client = TestClient(create_app(_settings(), executor=executor))

    body = client.get("/metrics").text

    assert "pgbouncer_up 0.0" in body
    assert "pgbouncer_last_scrape_error 1.0" in body
    assert "pgbouncer_pools_" not in body
    assert client.get("/healthz").json()["status"] == "degraded"


def test_healthz_reports_last_scrape(executor):
    client = TestClient(create_app(_settings(), executor=executor))
    client.get("/metrics")

    payload = client.get("/healthz").json()

    assert payload["status"] == "ok"
    assert payload["up"] is True
    assert payload["namespace"] == "pgbouncer"
    # one scrape on registration, one for /metrics
    assert payload["scrapes_total"] == 2


def test_landing_page(executor):
    client = TestClient(create_app(_settings(telemetry_path="/probe"), executor=executor))

    resp = client.get("/")

    assert resp.status_code == 200
    assert 'href="/probe"' in resp.text


def test_root_telemetry_path_is_rejected():
    with pytest.raises(ValueError):
        _settings(telemetry_path="/")
