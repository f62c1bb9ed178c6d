"""Monitor routes for Loop Keeper.

Provides REST API endpoints for controlling log sync monitors:
- List monitors and their status
- Start/stop monitoring a session
- Pause/resume log writes of a running monitor
- Rotate a session log
- Override a monitor's tick interval
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from loopkeeper.models.monitor import MonitorState, MonitorStatus
from loopkeeper.services.monitor_manager import MonitorManager, get_monitor_manager

logger = logging.getLogger(__name__)

monitors_bp = Blueprint("monitors", __name__)


def _get_manager() -> MonitorManager:
    """Get the monitor manager from app extensions (shared instance)."""
    manager = current_app.extensions.get("monitor_manager")
    if manager is None:
        manager = get_monitor_manager()
    return manager


def _status_dict(status: MonitorStatus) -> dict:
    data = status.model_dump(mode="json")
    data["running"] = status.running
    return data


def _not_found(session: str):
    return jsonify({"success": False, "error": f"Unknown session: {session}"}), 404


@monitors_bp.route("/monitors", methods=["GET"])
def list_monitors():
    """List monitored and configured sessions.

    Returns:
        JSON object with:
        - monitors: List of monitor status objects
        - count: Number of monitors
    """
    statuses = _get_manager().list_status()
    return jsonify({"monitors": [_status_dict(s) for s in statuses], "count": len(statuses)})


@monitors_bp.route("/monitors/<session>", methods=["GET"])
def get_monitor(session):
    """Get the status of one monitor."""
    manager = _get_manager()
    status = manager.status(session)
    if status is None:
        status = next((s for s in manager.list_status() if s.session == session), None)
    if status is None:
        return _not_found(session)
    return jsonify(_status_dict(status))


@monitors_bp.route("/monitors/<session>/start", methods=["POST"])
def start_monitor(session):
    """Start monitoring a session.

    Request body (optional):
        {"pane": "tmux target"}

    Returns:
        JSON object with success and the monitor status.
    """
    data = request.get_json(silent=True) or {}
    pane = data.get("pane")
    if pane is not None and (not isinstance(pane, str) or not pane.strip()):
        return jsonify({"success": False, "error": "pane must be a non-empty string"}), 400

    status = _get_manager().start(session, pane=pane)
    logger.info(f"[API] Started monitor for {session}")
    return jsonify({"success": True, "monitor": _status_dict(status)})


@monitors_bp.route("/monitors/<session>/stop", methods=["POST"])
def stop_monitor(session):
    """Stop monitoring a session (after a final flush of the pane)."""
    status = _get_manager().stop(session)
    if status is None:
        return _not_found(session)
    logger.info(f"[API] Stopped monitor for {session}")
    return jsonify({"success": True, "monitor": _status_dict(status)})


@monitors_bp.route("/monitors/<session>/pause", methods=["POST"])
def pause_monitor(session):
    """Pause log writes for one monitor; sampling continues."""
    status = _get_manager().pause(session)
    if status is None:
        return _not_found(session)
    if status.state is MonitorState.STOPPED:
        return jsonify({"success": False, "error": f"Monitor is not running: {session}"}), 409
    return jsonify({"success": True, "monitor": _status_dict(status)})


@monitors_bp.route("/monitors/<session>/resume", methods=["POST"])
def resume_monitor(session):
    """Resume log writes for a paused monitor."""
    status = _get_manager().resume(session)
    if status is None:
        return _not_found(session)
    if status.state is MonitorState.STOPPED:
        return jsonify({"success": False, "error": f"Monitor is not running: {session}"}), 409
    return jsonify({"success": True, "monitor": _status_dict(status)})


@monitors_bp.route("/monitors/<session>/rotate", methods=["POST"])
def rotate_monitor(session):
    """Rotate a session's log.

    A running monitor rotates at its next tick; otherwise the rotation
    happens immediately.
    """
    if not _get_manager().rotate(session):
        return jsonify({"success": False, "error": f"No current log for session: {session}"}), 404
    return jsonify({"success": True, "message": f"Rotation requested for {session}"})


@monitors_bp.route("/monitors/<session>/interval", methods=["POST"])
def set_monitor_interval(session):
    """Override the tick interval of a monitor.

    Request body:
        {"seconds": 5.0}   (null restores the configured policy)
    """
    data = request.get_json(silent=True) or {}
    if "seconds" not in data:
        return jsonify({"success": False, "error": "seconds is required"}), 400

    seconds = data["seconds"]
    if seconds is not None:
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            return jsonify({"success": False, "error": "seconds must be a number"}), 400
        if seconds <= 0:
            return jsonify({"success": False, "error": "seconds must be positive"}), 400

    status = _get_manager().set_interval(session, seconds)
    if status is None:
        return _not_found(session)
    return jsonify({"success": True, "monitor": _status_dict(status)})


@monitors_bp.route("/health", methods=["GET"])
def health():
    """Health check.

    Returns:
        JSON object with:
        - monitors_running: Number of running monitors
        - sessions: Names of running sessions
    """
    manager = _get_manager()
    running = [s.session for s in manager.list_status() if s.running]
    return jsonify({"monitors_running": len(running), "sessions": running})
