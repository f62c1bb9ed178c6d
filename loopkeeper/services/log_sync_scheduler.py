"""Per-session log sync scheduler.

One scheduler owns one session's log. A background thread ticks at the
current interval; each tick runs, in order:

    sample → reconcile → write-if-changed → rotation check → prune-if-rotated
    → usage-limit detection

A failing tick is logged and counted but never stops the loop. Ticks never
overlap: a tick that finds the previous one still running is skipped.
Configuration changes are published with update_config() and picked up at
the start of the next tick, never mid-tick.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from loopkeeper.errors import LogWriteError, SampleError
from loopkeeper.models.config import AppConfig
from loopkeeper.models.log_file import (
    ReconcileAction,
    ReconcileResult,
    RotationEvent,
    RotationReason,
)
from loopkeeper.models.monitor import MonitoredSession, MonitorState, MonitorStatus
from loopkeeper.services.interval_policy import IntervalPolicy, build_interval_policy
from loopkeeper.services.log_store import SessionLogStore
from loopkeeper.services.pane_sampler import PaneSampler
from loopkeeper.services.pause_signal import PauseSignalService
from loopkeeper.services.reconciler import Reconciler, content_hash, split_lines
from loopkeeper.services.retention import RetentionPruner
from loopkeeper.services.rotation import RotationPolicy
from loopkeeper.services.signal_detector import UsageLimitDetector

logger = logging.getLogger(__name__)

# How long stop() waits for an in-flight tick before giving up on the final flush
STOP_TIMEOUT = 15.0


class LogSyncScheduler:
    """Keeps one session's log file in sync with its terminal pane."""

    def __init__(
        self,
        session: str,
        sampler: PaneSampler,
        config: AppConfig | None = None,
        pane_ref: str | None = None,
        interval_policy: IntervalPolicy | None = None,
        pause_signal: PauseSignalService | None = None,
        detector: UsageLimitDetector | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the scheduler.

        Args:
            session: Session name (used for log file names).
            sampler: Pane sampler bound to a terminal backend.
            config: Configuration snapshot. Defaults to AppConfig().
            pane_ref: Backend target to capture (defaults to session).
            interval_policy: Tick interval strategy (built from config if None).
            pause_signal: Pause file service (built from config if None).
            detector: Usage-limit detector.
            clock: Source of the current local time.
        """
        self.session = MonitoredSession(name=session, pane_ref=pane_ref or session)
        self.sampler = sampler
        self.detector = detector or UsageLimitDetector()
        self.pruner = RetentionPruner()
        self._clock = clock
        self._custom_interval_policy = interval_policy is not None
        self._custom_pause_signal = pause_signal is not None
        self.interval_policy = interval_policy
        self.pause_signal = pause_signal

        self._config: AppConfig | None = None
        self._pending_config: AppConfig | None = None
        self._configure(config or AppConfig())

        self._state = MonitorState.STOPPED
        self._state_lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._interval_override: float | None = None
        self._current_interval = self.interval_policy.next_interval()
        self._rotate_requested = False
        self._last_usage_line: str | None = None
        self._screen_baselined = False

        self._tick_count = 0
        self._error_count = 0
        self._last_error: str | None = None
        self._last_tick_at: datetime | None = None
        self._last_action: ReconcileAction | None = None
        self._last_rotation: RotationEvent | None = None
        self._rotations = 0
        self._pane_present = False
        self._started_at: datetime | None = None

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def store(self) -> SessionLogStore:
        return self._store

    def update_config(self, config: AppConfig) -> None:
        """Publish a new configuration, applied at the next tick boundary."""
        with self._state_lock:
            self._pending_config = config

    def _apply_pending_config(self) -> AppConfig:
        with self._state_lock:
            pending, self._pending_config = self._pending_config, None
        if pending is not None and pending != self._config:
            logger.info(f"[{self.session.name}] Applying updated configuration")
            self._configure(pending)
        return self._config

    def _configure(self, config: AppConfig) -> None:
        previous = self._config
        sync = config.log_sync

        if (
            previous is None
            or previous.log_sync.log_dir != sync.log_dir
            or previous.log_sync.naming != sync.naming
        ):
            self._store = SessionLogStore(sync.log_dir, self.session.name, sync.naming)
        if previous is None or previous.log_sync.match_mode != sync.match_mode:
            self.session.last_content_hash = None

        self.reconciler = Reconciler.from_config(sync)
        self.rotation = RotationPolicy(sync.max_log_size_bytes, sync.seed_lines)
        self.sampler.include_escapes = sync.include_escapes or sync.ansi_mirror
        self.sampler.timeout = sync.sample_timeout_seconds

        if not self._custom_interval_policy and (
            previous is None or previous.interval != config.interval
        ):
            self.interval_policy = build_interval_policy(config.interval)
        if not self._custom_pause_signal and (
            previous is None or previous.signals != config.signals
        ):
            self.pause_signal = PauseSignalService(
                config.signals.state_dir, config.signals.pause_file
            )

        self._config = config

    # =========================================================================
    # State machine
    # =========================================================================

    @property
    def state(self) -> MonitorState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is not MonitorState.STOPPED

    def start(self) -> bool:
        """Start the tick loop.

        Returns:
            True if started, False if it was already running.
        """
        with self._state_lock:
            if self._state is not MonitorState.STOPPED:
                return False
            self._stop_event.clear()
            self._state = MonitorState.RUNNING
            self._started_at = self._clock()
            self._screen_baselined = False
            self._thread = threading.Thread(
                target=self._run,
                name=f"log-sync-{self.session.name}",
                daemon=True,
            )
            self._thread.start()

        logger.info(
            f"Started log sync for {self.session.name} "
            f"(pane {self.session.pane_ref}, log {self._store.current_path()})"
        )
        return True

    def stop(self, timeout: float = STOP_TIMEOUT) -> bool:
        """Stop the tick loop and flush the pane one last time.

        An in-flight tick finishes but its sample is discarded; the final
        flush then takes a fresh sample.

        Returns:
            True if the scheduler was running.
        """
        with self._state_lock:
            if self._state is MonitorState.STOPPED:
                return False
            self._stop_event.set()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"[{self.session.name}] Tick still running after {timeout}s")

        self._guarded_tick(discard_on_stop=False, final=True, timeout=timeout)

        with self._state_lock:
            self._state = MonitorState.STOPPED
            self._thread = None

        logger.info(f"Stopped log sync for {self.session.name}")
        return True

    def pause(self) -> bool:
        """Keep sampling but stop writing the log."""
        with self._state_lock:
            if self._state is not MonitorState.RUNNING:
                return False
            self._state = MonitorState.PAUSED
        logger.info(f"[{self.session.name}] Log sync paused")
        return True

    def resume(self) -> bool:
        """Resume writing after pause()."""
        with self._state_lock:
            if self._state is not MonitorState.PAUSED:
                return False
            self._state = MonitorState.RUNNING
        logger.info(f"[{self.session.name}] Log sync resumed")
        return True

    def rotate_now(self) -> bool:
        """Request a manual rotation.

        A running scheduler rotates at its next tick; a stopped one runs a
        single tick right away.

        Returns:
            True if a current log existed to rotate.
        """
        if self._store.current_info(self._clock()) is None:
            return False
        with self._state_lock:
            self._rotate_requested = True
            running = self._state is not MonitorState.STOPPED
        if not running:
            self._guarded_tick(discard_on_stop=False, timeout=STOP_TIMEOUT)
        return True

    # =========================================================================
    # Interval
    # =========================================================================

    @property
    def current_interval(self) -> float:
        with self._state_lock:
            if self._interval_override is not None:
                return self._interval_override
            return self._current_interval

    def set_interval(self, seconds: float | None) -> None:
        """Override the interval policy (None returns control to the policy)."""
        if seconds is not None and seconds <= 0:
            raise ValueError("Interval must be positive")
        with self._state_lock:
            self._interval_override = seconds

    def _next_interval(self) -> float:
        with self._state_lock:
            if self._interval_override is not None:
                return self._interval_override
        interval = self.interval_policy.next_interval()
        with self._state_lock:
            self._current_interval = interval
        return interval

    # =========================================================================
    # Tick
    # =========================================================================

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            if self._stop_event.wait(self._next_interval()):
                break

    def tick(self) -> ReconcileResult | None:
        """Run one tick.

        Returns:
            The reconcile result, or None when the tick was skipped or failed.
        """
        return self._guarded_tick(discard_on_stop=True)

    def _guarded_tick(
        self,
        discard_on_stop: bool,
        final: bool = False,
        timeout: float | None = None,
    ) -> ReconcileResult | None:
        if timeout is None:
            acquired = self._tick_lock.acquire(blocking=False)
        else:
            acquired = self._tick_lock.acquire(timeout=timeout)
        if not acquired:
            logger.debug(f"[{self.session.name}] Previous tick still running, skipping")
            return None

        try:
            return self._run_tick(discard_on_stop, final)
        except Exception as e:
            self._record_error(e)
            logger.error(f"[{self.session.name}] Tick failed: {e}")
            return None
        finally:
            self._tick_lock.release()

    def _run_tick(self, discard_on_stop: bool, final: bool) -> ReconcileResult | None:
        config = self._apply_pending_config()
        sync = config.log_sync
        now = self._clock()

        try:
            plain, raw = self.sampler.sample_plain(self.session.pane_ref, sync.max_sample_lines)
        except SampleError as e:
            self._record_error(e)
            logger.warning(f"[{self.session.name}] {e}, skipping tick")
            return None

        if discard_on_stop and self._stop_event.is_set():
            return None

        with self._state_lock:
            self._tick_count += 1
            self._last_tick_at = now
            self._pane_present = bool(plain)
            paused = self._state is MonitorState.PAUSED

        if sync.ansi_mirror and raw:
            self._store.write_mirror(raw)

        if not paused and self.pause_signal.is_paused(now):
            paused = True

        result = None
        if not paused:
            result = self._sync(plain, now)
            if not final:
                self._maybe_rotate(plain, now)

        if not final and config.signals.usage_limit_enabled:
            self._detect_signals(plain, result, now)

        return result

    def _sync(self, snapshot: str, now: datetime) -> ReconcileResult | None:
        lines = split_lines(snapshot)
        if not lines:
            # Pane gone or blank: nothing to merge, never erase history
            return ReconcileResult(action=ReconcileAction.NO_CHANGE)

        digest = content_hash(lines, fuzzy=self.reconciler.fuzzy)
        log_path = self._store.current_path(now)
        if digest == self.session.last_content_hash and log_path.exists():
            self._set_last_action(ReconcileAction.NO_CHANGE)
            return ReconcileResult(action=ReconcileAction.NO_CHANGE)

        previous = self._store.read_tail(self.reconciler.overlap_window, now)
        result = self.reconciler.reconcile(previous, snapshot)

        try:
            written = self._store.apply(result, now)
        except LogWriteError as e:
            self._record_error(e)
            logger.error(f"[{self.session.name}] Log write failed, retrying next tick: {e}")
            return None

        if written:
            logger.debug(
                f"[{self.session.name}] {result.action.value}: "
                f"{len(result.content.splitlines())} lines (overlap {result.overlap})"
            )
        if result.action is ReconcileAction.FULL_REPLACE and previous:
            logger.info(f"[{self.session.name}] No overlap with pane, resynced from pane tail")

        self.session.last_content_hash = digest
        self.session.log_path = str(self._store.current_path(now))
        self._set_last_action(result.action)
        return result

    def _maybe_rotate(self, snapshot: str, now: datetime) -> RotationEvent | None:
        info = self._store.current_info(now)
        with self._state_lock:
            manual = self._rotate_requested

        if info is None:
            with self._state_lock:
                self._rotate_requested = False
            return None

        reason = RotationReason.MANUAL if manual else self.rotation.should_rotate(info, now)
        if reason is None:
            return None

        if reason is RotationReason.SIZE:
            logger.info(
                f"[{self.session.name}] Log size {info.size_bytes} bytes exceeds "
                f"{self.rotation.max_log_size_bytes}"
            )

        event = self.rotation.rotate(self._store, reason, snapshot, now)
        if event is None:
            return None

        with self._state_lock:
            self._rotations += 1
            self._last_rotation = event
            if manual:
                self._rotate_requested = False

        self.pruner.prune(self._store, self._config.log_sync.retain_count)
        self.session.log_path = str(self._store.current_path(now))
        return event

    def _detect_signals(
        self, snapshot: str, result: ReconcileResult | None, now: datetime
    ) -> None:
        state = self.pause_signal.read()
        if state is not None and state.reason == "usage_limit" and state.is_expired(now):
            if self.pause_signal.clear():
                logger.info(f"[{self.session.name}] Usage limit lifted, pause cleared")

        lines = split_lines(snapshot)
        tail_lines = self._config.signals.tail_lines
        if self._last_usage_line is not None and not any(
            line.strip() == self._last_usage_line for line in lines
        ):
            self._last_usage_line = None

        if not self._screen_baselined:
            # Messages already on screen when monitoring starts are history
            self._screen_baselined = True
            seen = self.detector.detect(self.session.name, "\n".join(lines[-tail_lines:]), now)
            if seen is not None:
                self._last_usage_line = seen.line
                logger.info(
                    f"[{self.session.name}] Ignoring usage limit message already on screen: "
                    f"{seen.line!r}"
                )
            return

        # Only output that reached the log this tick is scanned
        if result is None or result.action is ReconcileAction.NO_CHANGE:
            return
        fresh = split_lines(result.content)
        event = self.detector.detect(self.session.name, "\n".join(fresh[-tail_lines:]), now)
        if event is None or event.line == self._last_usage_line:
            return
        self._last_usage_line = event.line

        logger.warning(
            f"[{self.session.name}] Usage limit detected: {event.line!r}"
            + (f", resume at {event.resume_at.isoformat()}" if event.resume_at else "")
        )
        self.pause_signal.record_usage_limit(event)

        if event.resume_at is not None and event.resume_at > now and not self.pause_signal.is_paused(now):
            try:
                self.pause_signal.pause(resume_at=event.resume_at, reason="usage_limit")
            except OSError as e:
                self._record_error(e)
                logger.error(f"[{self.session.name}] Could not write pause signal: {e}")

    # =========================================================================
    # Status
    # =========================================================================

    def _record_error(self, error: Exception) -> None:
        with self._state_lock:
            self._error_count += 1
            self._last_error = str(error)

    def _set_last_action(self, action: ReconcileAction) -> None:
        with self._state_lock:
            self._last_action = action

    @property
    def last_rotation(self) -> RotationEvent | None:
        with self._state_lock:
            return self._last_rotation

    def status(self) -> MonitorStatus:
        """Snapshot of this monitor for the dashboard."""
        with self._state_lock:
            interval = (
                self._interval_override
                if self._interval_override is not None
                else self._current_interval
            )
            return MonitorStatus(
                session=self.session.name,
                pane_ref=self.session.pane_ref,
                state=self._state,
                interval_seconds=interval,
                tick_count=self._tick_count,
                error_count=self._error_count,
                last_error=self._last_error,
                last_tick_at=self._last_tick_at,
                last_action=self._last_action,
                log_path=self.session.log_path or str(self._store.current_path()),
                rotations=self._rotations,
                pane_present=self._pane_present,
                started_at=self._started_at,
            )
