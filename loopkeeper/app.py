"""Flask application factory for Loop Keeper.

This module creates and configures the Flask application, wiring together
the services:

- ConfigService: Configuration loading and migration
- TmuxBackend: Pane capture
- MonitorManager: One log sync scheduler per session
- PauseSignalService: Shared pause file and usage-limit state

Usage:
    from loopkeeper.app import create_app
    app = create_app()
    app.run(port=5050)
"""

import atexit
import logging

from flask import Flask

from loopkeeper.backends.tmux import get_tmux_backend
from loopkeeper.models import AppConfig
from loopkeeper.routes import register_blueprints
from loopkeeper.services import (
    PauseSignalService,
    get_config_service,
    get_monitor_manager,
)

logger = logging.getLogger(__name__)


def create_app(config_path: str = "config.yaml") -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configured Flask application.
    """
    config_service = get_config_service(config_path)
    config = config_service.get_config()

    app = Flask(__name__)
    app.config["TESTING"] = False

    # Store services on app for access in routes
    app.extensions["config"] = config
    app.extensions["config_service"] = config_service

    _init_services(app, config)

    register_blueprints(app)

    return app


def _init_services(app: Flask, config: AppConfig) -> None:
    """Initialize all services and wire them together.

    Args:
        app: Flask application.
        config: Application configuration.
    """
    backend = get_tmux_backend()
    app.extensions["terminal_backend"] = backend
    if not backend.is_available():
        logger.warning("tmux not found on PATH, monitors will see no panes")

    manager = get_monitor_manager(config)
    manager.apply_config(config)
    app.extensions["monitor_manager"] = manager

    app.extensions["pause_signal"] = PauseSignalService(
        config.signals.state_dir, config.signals.pause_file
    )

    logger.info("Services initialized")


def start_background_tasks(app: Flask) -> None:
    """Start monitors for autostart sessions.

    Args:
        app: Flask application.
    """
    manager = app.extensions.get("monitor_manager")
    config = app.extensions.get("config")
    if not manager or not config:
        return

    # Final flush of every log when the server exits
    atexit.register(manager.stop_all)

    for session in config.sessions:
        if session.autostart:
            manager.start(session.name, pane=session.pane)
            logger.info(f"Autostarted monitor for {session.name}")


def main():
    """Run the Flask application."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = create_app()
    config = app.extensions.get("config")

    start_background_tasks(app)

    host = config.host if config else "127.0.0.1"
    port = config.port if config else 5050
    debug = config.debug if config else False

    logger.info(f"Starting Loop Keeper on {host}:{port}")
    # The reloader would start a second set of monitors on the same logs
    app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
