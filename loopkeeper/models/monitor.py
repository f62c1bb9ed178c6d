"""Monitor state machine states and status snapshots."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from loopkeeper.models.log_file import ReconcileAction


class MonitorState(str, Enum):
    """Log sync scheduler states.

    State transitions:
    - STOPPED → RUNNING (start)
    - RUNNING → PAUSED (pause)
    - PAUSED → RUNNING (resume)
    - RUNNING/PAUSED → STOPPED (stop)
    """

    STOPPED = "stopped"
    """No tick loop; the log is not touched."""

    RUNNING = "running"
    """Ticking: sample, reconcile, write, rotate, prune."""

    PAUSED = "paused"
    """Ticking, but only sampling and signal detection run."""


class MonitoredSession(BaseModel):
    """A logical session bound to one terminal pane."""

    name: str
    pane_ref: str
    log_path: str | None = None
    last_content_hash: str | None = None


class MonitorStatus(BaseModel):
    """Point-in-time view of one monitor, as served to the dashboard."""

    session: str
    pane_ref: str
    state: MonitorState = MonitorState.STOPPED
    interval_seconds: float = 0.0
    tick_count: int = 0
    error_count: int = 0
    last_error: str | None = None
    last_tick_at: datetime | None = None
    last_action: ReconcileAction | None = None
    log_path: str | None = None
    rotations: int = 0
    pane_present: bool = False
    started_at: datetime | None = Field(default=None)

    @property
    def running(self) -> bool:
        return self.state is not MonitorState.STOPPED
