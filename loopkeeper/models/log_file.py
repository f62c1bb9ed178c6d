"""Log file, rotation and reconciliation models."""

from datetime import date, datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class RotationReason(str, Enum):
    """Why a current log was archived."""

    DAILY = "daily"
    """The calendar day changed since the log was started."""

    SIZE = "size"
    """The log grew past max_log_size_bytes."""

    MANUAL = "manual"
    """An operator asked for a rotation."""


class ReconcileAction(str, Enum):
    """Update needed to converge the log with a pane snapshot."""

    NO_CHANGE = "no_change"
    APPEND = "append"
    FULL_REPLACE = "full_replace"


class ReconcileResult(BaseModel):
    """Outcome of reconciling a snapshot against the previous log content.

    Attributes:
        action: What the log store must do.
        content: Text to append (APPEND) or the bounded new baseline
            (FULL_REPLACE). Empty for NO_CHANGE.
        overlap: Number of old log lines matched in the snapshot (0 when
            no overlap was found).
    """

    action: ReconcileAction
    content: str = ""
    overlap: int = 0

    @property
    def changed(self) -> bool:
        return self.action is not ReconcileAction.NO_CHANGE


class LogFileInfo(BaseModel):
    """On-disk log file for a session."""

    path: Path
    size_bytes: int = 0
    created_on: date
    is_current: bool = True
    modified_at: datetime | None = None


class RotationEvent(BaseModel):
    """A current log renamed into the archive.

    Attributes:
        session: Session name.
        timestamp: When the rotation happened.
        reason: daily, size or manual.
        archived_path: Path of the archive file.
    """

    session: str
    timestamp: datetime = Field(default_factory=datetime.now)
    reason: RotationReason
    archived_path: Path
