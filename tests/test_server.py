"""Tests for the FastAPI app and the /metrics WebSocket route."""

import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from fakes import FakePm2, FakeProvider, make_process
from metricast.config import MetricastConfig, Pm2Config
from metricast.core.snapshot import SnapshotBuilder
from metricast.server.app import build_snapshot_builder, create_app


@pytest.fixture
def config(tmp_path):
    return MetricastConfig(project_path=tmp_path)


def _app(config, provider=None, pm2=None):
    builder = SnapshotBuilder(provider or FakeProvider(), pm2)
    return create_app(config, builder=builder, interval=0.02)


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestMetricsStream:
    def test_receives_snapshots(self, config):
        app = _app(config, pm2=FakePm2([make_process()]))
        with TestClient(app) as client:
            with client.websocket_connect("/metrics") as ws:
                payload = ws.receive_json()

        assert set(payload) == {"cpu", "memory", "disk", "network", "pm2"}
        assert payload["cpu"] == [12.34, 50.0]
        assert payload["pm2"][0]["pm2_env"]["status"] == "online"

    def test_network_deltas_across_ticks(self, config):
        provider = FakeProvider(network={"eth0": (100, 100)})
        app = _app(config, provider)
        with TestClient(app) as client:
            with client.websocket_connect("/metrics") as ws:
                first = ws.receive_json()
                second = ws.receive_json()

        assert first["network"] == [{"name": "eth0", "bytes_sent": 100, "bytes_recv": 100}]
        assert second["network"] == [{"name": "eth0", "bytes_sent": 0, "bytes_recv": 0}]

    def test_pm2_unavailable_omits_field(self, config):
        app = _app(config, pm2=FakePm2(error="pm2 not found"))
        with TestClient(app) as client:
            with client.websocket_connect("/metrics") as ws:
                payload = ws.receive_json()
        assert "pm2" not in payload

    def test_two_subscribers(self, config):
        app = _app(config)
        with TestClient(app) as client:
            with client.websocket_connect("/metrics") as a, client.websocket_connect("/metrics") as b:
                assert _wait_for(lambda: len(app.state.registry) == 2)
                assert a.receive_json()["disk"]["total"] == 100000
                assert b.receive_json()["disk"]["total"] == 100000

    def test_disconnect_unregisters(self, config):
        app = _app(config)
        with TestClient(app) as client:
            with client.websocket_connect("/metrics") as ws:
                ws.receive_json()
                assert len(app.state.registry) == 1
            assert _wait_for(lambda: len(app.state.registry) == 0)

    def test_lifespan_owns_scheduler(self, config):
        app = _app(config)
        with TestClient(app):
            assert app.state.scheduler.is_running
        assert not app.state.scheduler.is_running


class TestUpgradeFailure:
    def test_plain_get_is_rejected(self, config):
        with TestClient(_app(config)) as client:
            resp = client.get("/metrics")
        assert resp.status_code == 400
        body = resp.json()
        assert body["message"] == "Could not open websocket connection"
        assert "'upgrade' token not found" in body["error"]

    def test_missing_upgrade_header(self, config):
        with TestClient(_app(config)) as client:
            resp = client.get("/metrics", headers={"Connection": "Upgrade"})
        assert resp.status_code == 400
        assert "'websocket' token not found" in resp.json()["error"]

    def test_no_other_routes(self, config):
        with TestClient(_app(config)) as client:
            assert client.get("/").status_code == 404
            assert client.get("/docs").status_code == 404


class TestBuildSnapshotBuilder:
    @patch("metricast.core.provider.psutil.cpu_percent")
    def test_pm2_enabled(self, _cpu, config):
        builder = build_snapshot_builder(config)
        assert builder._pm2 is not None
        assert builder._disk_path == "/"

    @patch("metricast.core.provider.psutil.cpu_percent")
    def test_pm2_disabled(self, _cpu, tmp_path):
        config = MetricastConfig(project_path=tmp_path, pm2=Pm2Config(enabled=False))
        assert build_snapshot_builder(config)._pm2 is None
