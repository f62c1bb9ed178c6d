"""Tests for the application factory and entry points."""

from unittest.mock import patch

import pytest
import yaml

import monitor
from loopkeeper.app import create_app, start_background_tasks


@pytest.fixture
def config_file(temp_dir):
    """Write a config with one autostart session."""
    path = temp_dir / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "log_sync": {"log_dir": str(temp_dir / "logs")},
                "interval": {"tick_interval_seconds": 0.1},
                "signals": {"state_dir": str(temp_dir / "state")},
                "sessions": [
                    {"name": "auto", "autostart": True},
                    {"name": "manual"},
                ],
            }
        )
    )
    return path


@pytest.fixture
def app(config_file, fake_backend):
    """Create the app over the fake backend."""
    with (
        patch("loopkeeper.app.get_tmux_backend", return_value=fake_backend),
        patch("loopkeeper.services.monitor_manager.get_tmux_backend", return_value=fake_backend),
    ):
        app = create_app(str(config_file))
    app.config["TESTING"] = True
    yield app
    app.extensions["monitor_manager"].stop_all()


class TestCreateApp:
    """Tests for create_app."""

    def test_services_registered(self, app, fake_backend):
        """Services are stored in app extensions."""
        assert app.extensions["config"].sessions[0].name == "auto"
        assert app.extensions["config_service"] is not None
        assert app.extensions["terminal_backend"] is fake_backend
        assert app.extensions["monitor_manager"].backend is fake_backend
        assert app.extensions["pause_signal"].state_dir.name == "state"

    def test_health_before_start(self, app):
        """No monitors run until background tasks start."""
        data = app.test_client().get("/api/health").get_json()

        assert data == {"monitors_running": 0, "sessions": []}

    def test_autostart(self, app):
        """Autostart sessions are started with background tasks."""
        with patch("loopkeeper.app.atexit.register") as mock_register:
            start_background_tasks(app)

        data = app.test_client().get("/api/health").get_json()
        assert data == {"monitors_running": 1, "sessions": ["auto"]}
        mock_register.assert_called_once_with(app.extensions["monitor_manager"].stop_all)


class TestMonitorCli:
    """Tests for the monitor.py command line."""

    def test_parser(self):
        """Arguments are parsed."""
        args = monitor.build_parser().parse_args(["work", "--pane", "work:1", "--interval", "3", "--once"])

        assert args.session == "work"
        assert args.pane == "work:1"
        assert args.interval == 3.0
        assert args.once is True
        assert args.config == "config.yaml"

    def test_once(self, config_file, fake_backend, temp_dir, capsys):
        """--once runs one sync and exits."""
        fake_backend.panes["work"] = "hello\nworld"
        with patch("monitor.get_tmux_backend", return_value=fake_backend):
            code = monitor.run(monitor.build_parser().parse_args(["work", "--config", str(config_file), "--once"]))

        assert code == 0
        assert "full_replace" in capsys.readouterr().out
        logs = list((temp_dir / "logs").glob("work_*.log"))
        assert len(logs) == 1
        assert logs[0].read_text() == "hello\nworld\n"

    def test_tmux_missing(self, config_file):
        """Without tmux the monitor exits with an error."""
        with patch("monitor.get_tmux_backend") as mock_backend:
            mock_backend.return_value.is_available.return_value = False
            code = monitor.run(monitor.build_parser().parse_args(["work", "--config", str(config_file)]))

        assert code == 1
