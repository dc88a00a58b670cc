"""
Tests for the web API — app factory and JSON routes.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from flask.testing import FlaskClient

from sysprobe.core.config.loader import ConfigError
from sysprobe.ui.web.server import create_app


@pytest.fixture()
def app(config_file: Path):
    app = create_app(config_path=config_file, mock_mode=True)
    app.config["TESTING"] = True
    yield app
    app.config["MONITOR"].stop()


@pytest.fixture()
def client(app) -> FlaskClient:
    return app.test_client()


class TestAppFactory:
    def test_mock_runner(self, app):
        assert app.config["ENGINE"].runner.name == "mock"
        assert app.config["MOCK_MODE"] is True

    def test_monitor_not_started_without_interval(self, app):
        assert not app.config["MONITOR"].running

    def test_monitor_started_with_interval(self, config_file: Path):
        app = create_app(config_path=config_file, mock_mode=True, monitor_interval=60)
        try:
            assert app.config["MONITOR"].running
        finally:
            app.config["MONITOR"].stop()

    def test_invalid_config(self, tmp_path: Path):
        bad = tmp_path / "sysprobe.yml"
        bad.write_text("engine: {max_workers: 0}\n")
        with pytest.raises(ConfigError):
            create_app(config_path=bad)


class TestStatusRoute:
    def test_before_refresh(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 503

    def test_after_refresh(self, client):
        client.post("/api/refresh")
        resp = client.get("/api/status")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["capabilities"] == {
            "bluetooth": True,
            "usb": True,
            "firewall": True,
            "network": True,
        }
        assert data["defaulted"] == []
        assert data["monitor"]["cycles"] == 1


class TestRefreshRoute:
    def test_returns_report(self, client, config_file: Path):
        resp = client.post("/api/refresh")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["report_id"].startswith("rpt-")
        assert data["results"]["usb"]["value"] is True
        assert (config_file.parent / "state" / "current.json").is_file()

    def test_get_not_allowed(self, client):
        assert client.get("/api/refresh").status_code == 405


class TestCapabilityRoute:
    def test_value_and_diagnostics(self, client):
        client.post("/api/refresh")
        resp = client.get("/api/capabilities/firewall")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["value"] is True
        assert data["source"] == "socketfilterfw"
        assert data["diagnostics"][0]["probe"] == "socketfilterfw"

    def test_unknown_capability(self, client):
        assert client.get("/api/capabilities/wifi").status_code == 404

    def test_before_refresh(self, client):
        assert client.get("/api/capabilities/usb").status_code == 503


class TestHistoryRoute:
    def test_history(self, client):
        for _ in range(3):
            client.post("/api/refresh")
        resp = client.get("/api/history?limit=2")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["total"] == 3
        assert len(data["records"]) == 2

    def test_empty(self, client):
        data = client.get("/api/history").get_json()
        assert data == {"total": 0, "records": []}
