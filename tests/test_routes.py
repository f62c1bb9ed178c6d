"""Tests for Flask routes."""

import os
from datetime import datetime
from unittest.mock import patch

import pytest
import yaml
from flask import Flask

from loopkeeper.models.config import SessionConfig
from loopkeeper.models.signal import UsageLimitEvent
from loopkeeper.routes import register_blueprints
from loopkeeper.services.config_service import ConfigService
from loopkeeper.services.monitor_manager import MonitorManager
from loopkeeper.services.pause_signal import PauseSignalService


@pytest.fixture
def config(make_config):
    """Config with one configured session."""
    return make_config(sessions=[SessionConfig(name="work", pane="work:0.1")])


@pytest.fixture
def manager(config, fake_backend):
    """Monitor manager over the fake backend."""
    manager = MonitorManager(config, backend=fake_backend)
    yield manager
    manager.stop_all()


@pytest.fixture
def app(config, manager, temp_dir):
    """Create a Flask test app with all blueprints."""
    app = Flask(__name__)
    app.config["TESTING"] = True
    config_service = ConfigService(temp_dir / "config.yaml")
    config_service.set_config(config)
    app.extensions["config"] = config
    app.extensions["config_service"] = config_service
    app.extensions["monitor_manager"] = manager
    app.extensions["pause_signal"] = PauseSignalService(config.signals.state_dir)
    register_blueprints(app)
    return app


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()


class TestMonitorRoutes:
    """Tests for /api/monitors."""

    def test_list_configured_sessions(self, client):
        """Configured sessions are listed even when not running."""
        response = client.get("/api/monitors")

        assert response.status_code == 200
        data = response.get_json()
        assert data["count"] == 1
        assert data["monitors"][0]["session"] == "work"
        assert data["monitors"][0]["pane_ref"] == "work:0.1"
        assert data["monitors"][0]["running"] is False

    def test_get_unknown_monitor(self, client):
        """Unknown sessions are 404."""
        response = client.get("/api/monitors/nope")

        assert response.status_code == 404
        assert response.get_json()["success"] is False

    def test_start_and_stop(self, client, fake_backend):
        """A session can be started and stopped."""
        fake_backend.panes["scratch"] = "hello"

        response = client.post("/api/monitors/scratch/start", json={})
        assert response.status_code == 200
        assert response.get_json()["monitor"]["state"] == "running"

        health = client.get("/api/health").get_json()
        assert health == {"monitors_running": 1, "sessions": ["scratch"]}

        response = client.post("/api/monitors/scratch/stop")
        assert response.status_code == 200
        assert response.get_json()["monitor"]["state"] == "stopped"

        logs = client.get("/api/logs?session=scratch").get_json()
        assert logs["content"] == "hello\n"

    def test_start_with_invalid_pane(self, client):
        """An empty pane name is rejected."""
        response = client.post("/api/monitors/work/start", json={"pane": ""})

        assert response.status_code == 400

    def test_stop_unknown(self, client):
        """Stopping a session that was never started is 404."""
        assert client.post("/api/monitors/nope/stop").status_code == 404

    def test_rotate_without_log(self, client):
        """Rotating with no current log is 404."""
        assert client.post("/api/monitors/work/rotate").status_code == 404

    def test_rotate(self, client, manager):
        """Rotation of an existing log is accepted."""
        with patch.object(manager, "rotate", return_value=True) as mock_rotate:
            response = client.post("/api/monitors/work/rotate")

        assert response.status_code == 200
        mock_rotate.assert_called_once_with("work")

    def test_interval_validation(self, client):
        """seconds must be a positive number."""
        assert client.post("/api/monitors/work/interval", json={}).status_code == 400
        assert client.post("/api/monitors/work/interval", json={"seconds": "5"}).status_code == 400
        assert client.post("/api/monitors/work/interval", json={"seconds": -1}).status_code == 400
        assert client.post("/api/monitors/work/interval", json={"seconds": True}).status_code == 400

    def test_interval_unknown_session(self, client):
        """Setting the interval of an unmonitored session is 404."""
        response = client.post("/api/monitors/nope/interval", json={"seconds": 5})

        assert response.status_code == 404

    def test_interval_override(self, client, manager):
        """A running monitor takes the new interval."""
        manager.start("work")

        response = client.post("/api/monitors/work/interval", json={"seconds": 4.5})

        assert response.status_code == 200
        assert response.get_json()["monitor"]["interval_seconds"] == 4.5

    def test_pause_and_resume(self, client, manager):
        """A running monitor is paused and resumed over the API."""
        manager.start("work")

        response = client.post("/api/monitors/work/pause")
        assert response.status_code == 200
        assert response.get_json()["monitor"]["state"] == "paused"

        response = client.post("/api/monitors/work/resume")
        assert response.status_code == 200
        assert response.get_json()["monitor"]["state"] == "running"

    def test_pause_not_running(self, client, manager):
        """A stopped monitor cannot be paused."""
        manager.start("work")
        manager.stop("work")

        assert client.post("/api/monitors/work/pause").status_code == 409
        assert client.post("/api/monitors/nope/pause").status_code == 404


class TestLogRoutes:
    """Tests for /api/logs."""

    def test_session_required(self, client):
        """The session parameter is required."""
        assert client.get("/api/logs").status_code == 400

    def test_max_lines_validation(self, client):
        """max_lines must be a positive integer."""
        assert client.get("/api/logs?session=work&max_lines=abc").status_code == 400
        assert client.get("/api/logs?session=work&max_lines=0").status_code == 400

    def test_tail(self, client, config):
        """The tail of the current log is returned."""
        path = f"{config.log_sync.log_dir}/work_2026-03-01.log"
        os.makedirs(config.log_sync.log_dir, exist_ok=True)
        with open(path, "w") as f:
            f.write("a\nb\nc\n")

        data = client.get("/api/logs?session=work&max_lines=2").get_json()

        assert data["content"] == "b\nc\n"
        assert data["line_count"] == 2

    def test_missing_log_is_empty(self, client):
        """A session without a log has empty content."""
        data = client.get("/api/logs?session=ghost").get_json()

        assert data["success"] is True
        assert data["content"] == ""

    def test_archives(self, client, config):
        """Archives are listed newest first."""
        os.makedirs(config.log_sync.log_dir, exist_ok=True)
        with open(f"{config.log_sync.log_dir}/work_2026-01-01_10-00-00_size.log", "w") as f:
            f.write("old")

        data = client.get("/api/logs/work/archives").get_json()

        assert data["count"] == 1
        assert data["archives"][0]["name"] == "work_2026-01-01_10-00-00_size.log"
        assert data["archives"][0]["created_on"] == "2026-01-01"


class TestPauseRoutes:
    """Tests for /api/pause and /api/usage-limit."""

    def test_not_paused(self, client):
        """No pause file means not paused."""
        assert client.get("/api/pause").get_json() == {"paused": False, "state": None}

    def test_pause_and_clear(self, client):
        """Pausing writes the pause file; DELETE removes it."""
        response = client.post("/api/pause", json={"minutes": 30, "reason": "lunch"})

        assert response.status_code == 200
        data = response.get_json()
        assert data["paused"] is True
        assert data["state"]["reason"] == "lunch"
        assert data["state"]["resume_at"] is not None

        assert client.delete("/api/pause").get_json() == {"success": True, "cleared": True}
        assert client.get("/api/pause").get_json()["paused"] is False

    def test_pause_invalid_resume_at(self, client):
        """resume_at must be an ISO timestamp."""
        response = client.post("/api/pause", json={"resume_at": "tomorrow"})

        assert response.status_code == 400

    def test_pause_resume_at_with_offset(self, client):
        """UTC timestamps are stored as local time."""
        response = client.post("/api/pause", json={"resume_at": "2099-01-01T00:00:00Z"})

        assert response.status_code == 200
        data = response.get_json()
        assert data["paused"] is True
        assert "+" not in data["state"]["resume_at"]
        assert not data["state"]["resume_at"].endswith("Z")

    def test_pause_file_with_offset(self, client, app):
        """A pause file written with an offset is still readable."""
        service = app.extensions["pause_signal"]
        service.state_dir.mkdir(parents=True, exist_ok=True)
        service.pause_path.write_text('{"resume_at": "2001-01-01T15:00:00+00:00"}')

        response = client.get("/api/pause")

        assert response.status_code == 200
        assert response.get_json()["paused"] is False

    def test_pause_invalid_minutes(self, client):
        """minutes must be positive."""
        assert client.post("/api/pause", json={"minutes": 0}).status_code == 400

    def test_usage_limit(self, client, app):
        """The latest detection is served per session."""
        assert client.get("/api/usage-limit/work").get_json() == {"detected": False, "event": None}

        app.extensions["pause_signal"].record_usage_limit(
            UsageLimitEvent(
                session="work",
                line="usage limit reached",
                resume_at=datetime(2026, 3, 1, 15, 0),
            )
        )
        data = client.get("/api/usage-limit/work").get_json()

        assert data["detected"] is True
        assert data["event"]["resume_at"] == "2026-03-01T15:00:00"


class TestConfigRoutes:
    """Tests for /api/config."""

    def test_get_config(self, client):
        """The current configuration is returned."""
        data = client.get("/api/config").get_json()

        assert data["log_sync"]["match_mode"] == "fuzzy"
        assert data["sessions"][0]["name"] == "work"

    def test_update_config(self, client, app, manager, temp_dir):
        """Updates are merged, saved and published."""
        response = client.post("/api/config", json={"log_sync": {"max_log_size_bytes": 2048}})

        assert response.status_code == 200
        assert response.get_json()["log_sync"]["max_log_size_bytes"] == 2048
        assert app.extensions["config"].log_sync.max_log_size_bytes == 2048
        assert manager.config.log_sync.max_log_size_bytes == 2048

        saved = yaml.safe_load((temp_dir / "config.yaml").read_text())
        assert saved["log_sync"]["max_log_size_bytes"] == 2048

    def test_update_config_invalid(self, client):
        """Invalid values are rejected with 400."""
        response = client.post("/api/config", json={"log_sync": {"match_mode": "diff"}})

        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_update_config_unknown_key(self, client):
        """Unknown top-level keys are rejected."""
        response = client.post("/api/config", json={"scan_interval": 5})

        assert response.status_code == 400

    def test_update_config_not_object(self, client):
        """The body must be a JSON object."""
        response = client.post("/api/config", json=[1, 2])

        assert response.status_code == 400
