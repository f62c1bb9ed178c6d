"""Log routes for Loop Keeper.

Provides read-only REST API endpoints over session logs:
- Tail of the current log
- Archived logs of a session
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from loopkeeper.services.monitor_manager import MonitorManager, get_monitor_manager

logger = logging.getLogger(__name__)

logs_bp = Blueprint("logs", __name__)

MAX_TAIL_LINES = 100000


def _get_manager() -> MonitorManager:
    """Get the monitor manager from app extensions (shared instance)."""
    manager = current_app.extensions.get("monitor_manager")
    if manager is None:
        manager = get_monitor_manager()
    return manager


@logs_bp.route("/logs", methods=["GET"])
def get_log():
    """Get the tail of a session's current log.

    Query params:
        session: Session name (required)
        max_lines: Number of trailing lines (optional, whole file if omitted)

    Returns:
        JSON object with:
        - success: True
        - session: Session name
        - content: Log text
        - line_count: Number of lines returned
    """
    session = request.args.get("session", "").strip()
    if not session:
        return jsonify({"success": False, "error": "session is required"}), 400

    max_lines = request.args.get("max_lines")
    if max_lines is not None:
        try:
            max_lines = int(max_lines)
        except ValueError:
            return jsonify({"success": False, "error": "max_lines must be an integer"}), 400
        if not 1 <= max_lines <= MAX_TAIL_LINES:
            return jsonify(
                {"success": False, "error": f"max_lines must be between 1 and {MAX_TAIL_LINES}"}
            ), 400

    content = _get_manager().read_log(session, max_lines)
    return jsonify(
        {
            "success": True,
            "session": session,
            "content": content,
            "line_count": len(content.splitlines()),
        }
    )


@logs_bp.route("/logs/<session>/archives", methods=["GET"])
def list_archives(session):
    """List archived logs of a session, newest first.

    Returns:
        JSON object with:
        - success: True
        - archives: List of {name, path, size_bytes, created_on, modified_at}
        - count: Number of archives
    """
    archives = _get_manager().list_archives(session)
    result = [
        {
            "name": info.path.name,
            "path": str(info.path),
            "size_bytes": info.size_bytes,
            "created_on": info.created_on.isoformat(),
            "modified_at": info.modified_at.isoformat() if info.modified_at else None,
        }
        for info in archives
    ]
    return jsonify({"success": True, "archives": result, "count": len(result)})
