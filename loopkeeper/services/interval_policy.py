"""Tick interval policies.

One scheduler, pluggable strategies: a constant interval, an idle-aware one
that slows down when the user is away from the keyboard, and a CPU-aware one
that additionally stays fast while the machine is busy.
"""

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable

import psutil

from loopkeeper.models.config import IntervalConfig

logger = logging.getLogger(__name__)

ACTIVE, IDLE, VERY_IDLE = 0, 1, 2
LEVEL_NAMES = {ACTIVE: "active", IDLE: "idle", VERY_IDLE: "very idle"}


def user_idle_ms(timeout: int = 2) -> int:
    """Milliseconds since the last keyboard/mouse input.

    Uses xprintidle; returns 0 (treated as active) when it is unavailable.
    """
    if shutil.which("xprintidle") is None:
        return 0
    try:
        result = subprocess.run(
            ["xprintidle"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, OSError):
        return 0
    if result.returncode != 0:
        return 0
    try:
        return int(result.stdout.strip())
    except ValueError:
        return 0


def cpu_percent() -> float:
    """System-wide CPU load since the previous call."""
    return psutil.cpu_percent(interval=None)


class IntervalPolicy(ABC):
    """Strategy deciding how long to wait before the next tick."""

    @abstractmethod
    def next_interval(self) -> float:
        """Seconds until the next tick."""

    @property
    def level(self) -> int:
        return ACTIVE


class ConstantInterval(IntervalPolicy):
    """Always the same interval."""

    def __init__(self, seconds: float):
        self.seconds = seconds

    def next_interval(self) -> float:
        return self.seconds


class IdleAwareInterval(IntervalPolicy):
    """Slows ticking down as the user stays idle.

    Levels: active (< idle_threshold), idle (< very_idle_threshold),
    very idle.
    """

    def __init__(
        self,
        config: IntervalConfig,
        idle_probe: Callable[[], int] = user_idle_ms,
    ):
        """Initialize the policy.

        Args:
            config: Interval settings.
            idle_probe: Returns user idle time in milliseconds.
        """
        self.config = config
        self.idle_probe = idle_probe
        self._level = ACTIVE

    @property
    def level(self) -> int:
        return self._level

    def _interval_for(self, level: int) -> float:
        return {
            ACTIVE: self.config.tick_interval_seconds,
            IDLE: self.config.idle_interval_seconds,
            VERY_IDLE: self.config.very_idle_interval_seconds,
        }[level]

    def _idle_level(self) -> int:
        idle_seconds = self.idle_probe() / 1000
        if idle_seconds < self.config.idle_threshold_seconds:
            return ACTIVE
        if idle_seconds < self.config.very_idle_threshold_seconds:
            return IDLE
        return VERY_IDLE

    def _compute_level(self) -> int:
        return self._idle_level()

    def next_interval(self) -> float:
        level = self._compute_level()
        if level != self._level:
            logger.info(
                f"Switched to {LEVEL_NAMES[level]} mode ({self._interval_for(level)}s interval)"
            )
            self._level = level
        return self._interval_for(level)


class CpuAwareInterval(IdleAwareInterval):
    """Idle-aware, but a busy CPU keeps the active interval."""

    def __init__(
        self,
        config: IntervalConfig,
        idle_probe: Callable[[], int] = user_idle_ms,
        cpu_probe: Callable[[], float] = cpu_percent,
    ):
        super().__init__(config, idle_probe)
        self.cpu_probe = cpu_probe

    def _compute_level(self) -> int:
        if self.cpu_probe() > self.config.cpu_busy_percent:
            return ACTIVE
        return self._idle_level()


def build_interval_policy(config: IntervalConfig) -> IntervalPolicy:
    """Create the policy named by config.policy."""
    if config.policy == "idle":
        return IdleAwareInterval(config)
    if config.policy == "cpu":
        return CpuAwareInterval(config)
    return ConstantInterval(config.tick_interval_seconds)
