"""Registry of running log sync monitors.

One LogSyncScheduler per session name. The manager is the only place that
creates schedulers, so two monitors can never write the same session log.
"""

import logging
import threading

from loopkeeper.backends.base import TerminalBackend
from loopkeeper.backends.tmux import get_tmux_backend
from loopkeeper.models.config import AppConfig
from loopkeeper.models.log_file import LogFileInfo
from loopkeeper.models.monitor import MonitorStatus
from loopkeeper.services.log_store import SessionLogStore
from loopkeeper.services.log_sync_scheduler import LogSyncScheduler
from loopkeeper.services.pane_sampler import PaneSampler

logger = logging.getLogger(__name__)


class MonitorManager:
    """Starts, stops and reports on per-session log sync schedulers."""

    def __init__(self, config: AppConfig | None = None, backend: TerminalBackend | None = None):
        """Initialize the manager.

        Args:
            config: Configuration handed to new schedulers.
            backend: Terminal backend (defaults to the tmux backend).
        """
        self.config = config or AppConfig()
        self.backend = backend or get_tmux_backend()
        self._schedulers: dict[str, LogSyncScheduler] = {}
        self._lock = threading.RLock()

    def _create_scheduler(self, name: str, pane: str | None) -> LogSyncScheduler:
        session_config = self.config.get_session(name)
        if pane is None and session_config is not None:
            pane = session_config.pane_ref
        sampler = PaneSampler(
            self.backend,
            include_escapes=self.config.log_sync.include_escapes,
            timeout=self.config.log_sync.sample_timeout_seconds,
        )
        return LogSyncScheduler(name, sampler, self.config, pane_ref=pane)

    def get(self, name: str) -> LogSyncScheduler | None:
        with self._lock:
            return self._schedulers.get(name)

    def start(self, name: str, pane: str | None = None) -> MonitorStatus:
        """Start monitoring a session.

        Starting a session that is already monitored leaves it running and
        returns its status.

        Args:
            name: Session name.
            pane: Pane to capture (configured pane or the session name if None).

        Returns:
            Status of the session's monitor.
        """
        with self._lock:
            scheduler = self._schedulers.get(name)
            if scheduler is not None and scheduler.is_running:
                logger.debug(f"Monitor for {name} already running")
                return scheduler.status()
            if scheduler is None or (pane is not None and pane != scheduler.session.pane_ref):
                scheduler = self._create_scheduler(name, pane)
                self._schedulers[name] = scheduler
            else:
                scheduler.update_config(self.config)
            scheduler.start()
            return scheduler.status()

    def stop(self, name: str) -> MonitorStatus | None:
        """Stop monitoring a session after a final flush.

        Returns:
            Final status, or None if the session was never monitored.
        """
        scheduler = self.get(name)
        if scheduler is None:
            return None
        scheduler.stop()
        return scheduler.status()

    def stop_all(self) -> int:
        """Stop every running monitor.

        Returns:
            Number of monitors that were stopped.
        """
        with self._lock:
            schedulers = list(self._schedulers.values())
        stopped = 0
        for scheduler in schedulers:
            try:
                if scheduler.stop():
                    stopped += 1
            except Exception as e:
                logger.error(f"Error stopping monitor for {scheduler.session.name}: {e}")
        if stopped:
            logger.info(f"Stopped {stopped} monitors")
        return stopped

    def pause(self, name: str) -> MonitorStatus | None:
        """Stop writing a running monitor's log while it keeps sampling.

        Returns:
            The monitor's status, or None if the session is unknown.
        """
        scheduler = self.get(name)
        if scheduler is None:
            return None
        scheduler.pause()
        return scheduler.status()

    def resume(self, name: str) -> MonitorStatus | None:
        """Resume writing a paused monitor's log."""
        scheduler = self.get(name)
        if scheduler is None:
            return None
        scheduler.resume()
        return scheduler.status()

    def rotate(self, name: str) -> bool:
        """Rotate a session's log (at the next tick if it is running).

        Returns:
            True if there was a current log to rotate.
        """
        scheduler = self.get(name)
        if scheduler is None:
            scheduler = self._create_scheduler(name, None)
        return scheduler.rotate_now()

    def set_interval(self, name: str, seconds: float | None) -> MonitorStatus | None:
        """Override a monitor's tick interval (None restores its policy).

        Raises:
            ValueError: seconds is not positive.
        """
        scheduler = self.get(name)
        if scheduler is None:
            return None
        scheduler.set_interval(seconds)
        return scheduler.status()

    def status(self, name: str) -> MonitorStatus | None:
        scheduler = self.get(name)
        return scheduler.status() if scheduler else None

    def list_status(self) -> list[MonitorStatus]:
        """Status of every known session, monitored or merely configured."""
        with self._lock:
            statuses = {name: s.status() for name, s in self._schedulers.items()}
        for session in self.config.sessions:
            if session.name not in statuses:
                statuses[session.name] = MonitorStatus(
                    session=session.name,
                    pane_ref=session.pane_ref,
                    interval_seconds=self.config.interval.tick_interval_seconds,
                    log_path=str(self._store_for(session.name).current_path()),
                )
        return [statuses[name] for name in sorted(statuses)]

    def running_count(self) -> int:
        with self._lock:
            return sum(1 for s in self._schedulers.values() if s.is_running)

    def apply_config(self, config: AppConfig) -> None:
        """Publish a new configuration to every monitor."""
        with self._lock:
            self.config = config
            schedulers = list(self._schedulers.values())
        for scheduler in schedulers:
            scheduler.update_config(config)
        logger.info(f"Published configuration to {len(schedulers)} monitors")

    def _store_for(self, name: str) -> SessionLogStore:
        scheduler = self.get(name)
        if scheduler is not None:
            return scheduler.store
        return SessionLogStore(self.config.log_sync.log_dir, name, self.config.log_sync.naming)

    def read_log(self, name: str, max_lines: int | None = None) -> str:
        """Tail of a session's current log (whole file if max_lines is None)."""
        return self._store_for(name).tail(max_lines)

    def list_archives(self, name: str) -> list[LogFileInfo]:
        """Archived logs of a session, newest first."""
        return self._store_for(name).list_archives()


# Module-level singleton
_monitor_manager: MonitorManager | None = None


def get_monitor_manager(config: AppConfig | None = None) -> MonitorManager:
    """Get the global monitor manager.

    Args:
        config: Configuration (only used on first call).

    Returns:
        MonitorManager singleton.
    """
    global _monitor_manager
    if _monitor_manager is None:
        _monitor_manager = MonitorManager(config)
    return _monitor_manager


def reset_monitor_manager() -> None:
    """Stop and discard the global manager (for testing)."""
    global _monitor_manager
    if _monitor_manager is not None:
        _monitor_manager.stop_all()
    _monitor_manager = None
