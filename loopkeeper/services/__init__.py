"""Services for Loop Keeper."""

from loopkeeper.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)
from loopkeeper.services.interval_policy import (
    ConstantInterval,
    CpuAwareInterval,
    IdleAwareInterval,
    IntervalPolicy,
    build_interval_policy,
)
from loopkeeper.services.log_store import SessionLogStore
from loopkeeper.services.log_sync_scheduler import LogSyncScheduler
from loopkeeper.services.monitor_manager import (
    MonitorManager,
    get_monitor_manager,
    reset_monitor_manager,
)
from loopkeeper.services.pane_sampler import PaneSampler, strip_ansi
from loopkeeper.services.pause_signal import PauseSignalService
from loopkeeper.services.reconciler import Reconciler, content_hash, normalize_line, split_lines
from loopkeeper.services.retention import RetentionPruner
from loopkeeper.services.rotation import RotationPolicy
from loopkeeper.services.signal_detector import UsageLimitDetector

__all__ = [
    # Config
    "ConfigService",
    "get_config_service",
    "reset_config_service",
    # Interval policies
    "ConstantInterval",
    "CpuAwareInterval",
    "IdleAwareInterval",
    "IntervalPolicy",
    "build_interval_policy",
    # Log sync
    "LogSyncScheduler",
    "PaneSampler",
    "Reconciler",
    "RetentionPruner",
    "RotationPolicy",
    "SessionLogStore",
    "content_hash",
    "normalize_line",
    "split_lines",
    "strip_ansi",
    # Monitors
    "MonitorManager",
    "get_monitor_manager",
    "reset_monitor_manager",
    # Signals
    "PauseSignalService",
    "UsageLimitDetector",
]
