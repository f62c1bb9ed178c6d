"""Flask routes for Loop Keeper."""

from loopkeeper.routes.config import config_bp
from loopkeeper.routes.logs import logs_bp
from loopkeeper.routes.monitors import monitors_bp
from loopkeeper.routes.pause import pause_bp

__all__ = [
    "config_bp",
    "logs_bp",
    "monitors_bp",
    "pause_bp",
]


def register_blueprints(app):
    """Register all blueprints with the Flask app.

    Args:
        app: The Flask application instance.
    """
    app.register_blueprint(config_bp, url_prefix="/api")
    app.register_blueprint(logs_bp, url_prefix="/api")
    app.register_blueprint(monitors_bp, url_prefix="/api")
    app.register_blueprint(pause_bp, url_prefix="/api")
