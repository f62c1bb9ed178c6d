"""Domain models for Loop Keeper."""

from loopkeeper.models.config import (
    AppConfig,
    IntervalConfig,
    LogSyncConfig,
    SessionConfig,
    SignalConfig,
)
from loopkeeper.models.log_file import (
    LogFileInfo,
    ReconcileAction,
    ReconcileResult,
    RotationEvent,
    RotationReason,
)
from loopkeeper.models.monitor import MonitoredSession, MonitorState, MonitorStatus
from loopkeeper.models.signal import PauseState, UsageLimitEvent

__all__ = [
    # Config
    "AppConfig",
    "IntervalConfig",
    "LogSyncConfig",
    "SessionConfig",
    "SignalConfig",
    # Log files
    "LogFileInfo",
    "ReconcileAction",
    "ReconcileResult",
    "RotationEvent",
    "RotationReason",
    # Monitor
    "MonitoredSession",
    "MonitorState",
    "MonitorStatus",
    # Signals
    "PauseState",
    "UsageLimitEvent",
]
