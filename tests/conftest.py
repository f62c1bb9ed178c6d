"""Pytest configuration and shared fixtures for Loop Keeper tests."""

import tempfile
from pathlib import Path

import pytest

from loopkeeper.backends.base import TerminalBackend
from loopkeeper.backends.tmux import reset_tmux_backend
from loopkeeper.models.config import AppConfig, IntervalConfig, LogSyncConfig, SignalConfig
from loopkeeper.services.config_service import reset_config_service
from loopkeeper.services.monitor_manager import reset_monitor_manager


class FakeBackend(TerminalBackend):
    """In-memory terminal backend: panes are plain strings."""

    def __init__(self):
        self.panes: dict[str, str] = {}
        self.fail_reads = False
        self.read_calls = 0

    @property
    def backend_name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True

    def pane_exists(self, pane_ref: str) -> bool:
        return pane_ref in self.panes

    def read_pane(self, pane_ref, max_lines=500, escapes=False, timeout=10):
        self.read_calls += 1
        if self.fail_reads:
            return None
        return self.panes.get(pane_ref)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module singletons between tests."""
    reset_monitor_manager()
    reset_config_service()
    reset_tmux_backend()
    yield
    reset_monitor_manager()
    reset_config_service()
    reset_tmux_backend()


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_backend():
    """Create an in-memory terminal backend."""
    return FakeBackend()


@pytest.fixture
def make_config(temp_dir):
    """Build an AppConfig whose files live in the temp directory."""

    def _make(sessions=None, **log_sync):
        return AppConfig(
            log_sync=LogSyncConfig(log_dir=str(temp_dir / "logs"), **log_sync),
            interval=IntervalConfig(tick_interval_seconds=0.1),
            signals=SignalConfig(state_dir=str(temp_dir / "state")),
            sessions=sessions or [],
        )

    return _make
