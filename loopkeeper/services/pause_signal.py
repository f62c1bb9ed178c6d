"""File-based pause signal and detection state.

The pause file belongs to the injection loop: while it exists the loop stops
sending prompts and the log schedulers stop writing. It holds JSON
(PauseState); a legacy flag file with arbitrary content still means paused.

Usage-limit detections are written next to it as
usage_limit_{session}.json for the dashboard to display.
"""

import json
import logging
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from loopkeeper.models.signal import PauseState, UsageLimitEvent
from loopkeeper.services.log_store import atomic_write_text, safe_session_name

logger = logging.getLogger(__name__)


def _from_legacy_keys(data: dict) -> dict:
    """Map the camelCase pause file written by the old dashboard."""
    migrated = dict(data)
    if "pausedAt" in migrated:
        migrated.setdefault("paused_at", migrated.pop("pausedAt"))
    if "resumeTime" in migrated:
        migrated.setdefault("resume_at", migrated.pop("resumeTime"))
    loops = migrated.get("loops") or {}
    migrated["loops"] = {
        session: {"time_remaining_ms": int(info.get("time_remaining_ms", info.get("timeRemaining", 0)))}
        for session, info in loops.items()
        if isinstance(info, dict)
    }
    return migrated


class PauseSignalService:
    """Reads and writes the pause file and usage-limit state files."""

    def __init__(self, state_dir: str | Path = "data/state", pause_file: str = "pause.json"):
        """Initialize the service.

        Args:
            state_dir: Directory holding the signal files.
            pause_file: Name of the pause file inside state_dir.
        """
        self.state_dir = Path(state_dir)
        self.pause_path = self.state_dir / pause_file

    def read(self) -> PauseState | None:
        """Current pause state, or None when not paused."""
        try:
            raw = self.pause_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cannot read pause file {self.pause_path}: {e}")
            # The file exists, so the loop is paused even if we cannot read why
            return PauseState(reason="legacy")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return PauseState(reason="legacy")
        if not isinstance(data, dict):
            return PauseState(reason="legacy")

        try:
            return PauseState(**_from_legacy_keys(data))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"Malformed pause file, treating as plain flag: {e}")
            return PauseState(reason="legacy")

    def is_paused(self, now: datetime | None = None) -> bool:
        """Whether a pause is in effect (present and not expired)."""
        state = self.read()
        return state is not None and not state.is_expired(now)

    def pause(
        self,
        resume_at: datetime | None = None,
        reason: str = "manual",
        loops: dict[str, dict[str, int]] | None = None,
    ) -> PauseState:
        """Write the pause file.

        Raises:
            OSError: The file could not be written.
        """
        state = PauseState(resume_at=resume_at, reason=reason, loops=loops or {})
        self.state_dir.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self.pause_path, json.dumps(state.model_dump(mode="json"), indent=2))
        logger.info(
            f"Pause signal written ({reason}"
            + (f", resume at {resume_at.isoformat()})" if resume_at else ")")
        )
        return state

    def clear(self) -> bool:
        """Remove the pause file.

        Returns:
            True if a pause file was removed.
        """
        try:
            self.pause_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Cannot remove pause file {self.pause_path}: {e}")
            return False
        logger.info("Pause signal cleared")
        return True

    def usage_limit_path(self, session: str) -> Path:
        return self.state_dir / f"usage_limit_{safe_session_name(session)}.json"

    def record_usage_limit(self, event: UsageLimitEvent) -> bool:
        """Persist the latest usage-limit detection for a session."""
        path = self.usage_limit_path(event.session)
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            atomic_write_text(path, json.dumps(event.model_dump(mode="json"), indent=2))
            return True
        except OSError as e:
            logger.warning(f"Cannot write usage limit state {path}: {e}")
            return False

    def read_usage_limit(self, session: str) -> UsageLimitEvent | None:
        """Latest recorded usage-limit detection for a session."""
        path = self.usage_limit_path(session)
        try:
            return UsageLimitEvent(**json.loads(path.read_text(encoding="utf-8")))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Ignoring unreadable usage limit state {path}: {e}")
            return None
