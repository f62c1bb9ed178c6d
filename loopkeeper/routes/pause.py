"""Pause signal routes for Loop Keeper.

Provides REST API endpoints over the shared pause file:
- GET /api/pause - Current pause state
- POST /api/pause - Write the pause file
- DELETE /api/pause - Clear the pause file
- GET /api/usage-limit/<session> - Latest usage-limit detection
"""

import logging
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request

from loopkeeper.models.signal import to_local_naive
from loopkeeper.services.pause_signal import PauseSignalService

logger = logging.getLogger(__name__)

pause_bp = Blueprint("pause", __name__)


def _get_pause_signal() -> PauseSignalService:
    """Get the pause signal service from app extensions."""
    service = current_app.extensions.get("pause_signal")
    if service is None:
        service = PauseSignalService()
    return service


def _pause_dict(service: PauseSignalService) -> dict:
    state = service.read()
    if state is None:
        return {"paused": False, "state": None}
    return {
        "paused": not state.is_expired(),
        "state": state.model_dump(mode="json"),
    }


@pause_bp.route("/pause", methods=["GET"])
def get_pause():
    """Get the current pause state.

    Returns:
        JSON object with:
        - paused: Whether a pause is in effect
        - state: Pause file contents (null when not paused)
    """
    return jsonify(_pause_dict(_get_pause_signal()))


@pause_bp.route("/pause", methods=["POST"])
def set_pause():
    """Pause the loop.

    Request body (all optional):
        {
            "resume_at": "2026-01-01T15:00:00",   ISO timestamp
            "minutes": 30,                        alternative to resume_at
            "reason": "manual"
        }
    """
    data = request.get_json(silent=True) or {}
    reason = data.get("reason") or "manual"
    if not isinstance(reason, str):
        return jsonify({"success": False, "error": "reason must be a string"}), 400

    resume_at = None
    if data.get("resume_at") is not None:
        try:
            text = str(data["resume_at"])
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            resume_at = to_local_naive(datetime.fromisoformat(text))
        except ValueError:
            return jsonify({"success": False, "error": "resume_at must be an ISO timestamp"}), 400
    elif data.get("minutes") is not None:
        minutes = data["minutes"]
        if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or minutes <= 0:
            return jsonify({"success": False, "error": "minutes must be a positive number"}), 400
        resume_at = datetime.now() + timedelta(minutes=minutes)

    service = _get_pause_signal()
    try:
        service.pause(resume_at=resume_at, reason=reason)
    except OSError as e:
        logger.error(f"[API] Failed to write pause file: {e}")
        return jsonify({"success": False, "error": "Failed to write pause file"}), 500

    return jsonify({"success": True, **_pause_dict(service)})


@pause_bp.route("/pause", methods=["DELETE"])
def clear_pause():
    """Resume the loop by clearing the pause file."""
    cleared = _get_pause_signal().clear()
    return jsonify({"success": True, "cleared": cleared})


@pause_bp.route("/usage-limit/<session>", methods=["GET"])
def get_usage_limit(session):
    """Get the latest usage-limit detection for a session.

    Returns:
        JSON object with:
        - detected: Whether a detection is recorded
        - event: {session, detected_at, line, resume_at} or null
    """
    event = _get_pause_signal().read_usage_limit(session)
    if event is None:
        return jsonify({"detected": False, "event": None})
    return jsonify({"detected": True, "event": event.model_dump(mode="json")})
