"""Tests for MonitorManager."""

import pytest

from loopkeeper.models.config import SessionConfig
from loopkeeper.models.monitor import MonitorState
from loopkeeper.services.monitor_manager import (
    MonitorManager,
    get_monitor_manager,
    reset_monitor_manager,
)


@pytest.fixture
def manager(make_config, fake_backend):
    """Manager with one configured session."""
    config = make_config(sessions=[SessionConfig(name="work", pane="work:1", autostart=True)])
    manager = MonitorManager(config, backend=fake_backend)
    yield manager
    manager.stop_all()


class TestStartStop:
    """Tests for starting and stopping monitors."""

    def test_start_uses_configured_pane(self, manager):
        """A configured session captures its configured pane."""
        status = manager.start("work")

        assert status.state is MonitorState.RUNNING
        assert status.pane_ref == "work:1"

    def test_start_is_idempotent(self, manager):
        """Starting twice keeps one scheduler."""
        manager.start("adhoc")
        scheduler = manager.get("adhoc")

        status = manager.start("adhoc")

        assert manager.get("adhoc") is scheduler
        assert status.running
        assert manager.running_count() == 1

    def test_restart_after_stop(self, manager):
        """A stopped session can be started again."""
        manager.start("adhoc")
        manager.stop("adhoc")

        assert manager.start("adhoc").state is MonitorState.RUNNING

    def test_stop_unknown(self, manager):
        """Stopping an unknown session returns None."""
        assert manager.stop("nope") is None

    def test_stop_flushes(self, manager, fake_backend):
        """Stopping writes the last pane content."""
        manager.start("adhoc")
        fake_backend.panes["adhoc"] = "final words"

        manager.stop("adhoc")

        assert manager.read_log("adhoc") == "final words\n"

    def test_pause_and_resume(self, manager):
        """A running monitor can be paused and resumed."""
        manager.start("work")

        assert manager.pause("work").state is MonitorState.PAUSED
        assert manager.resume("work").state is MonitorState.RUNNING

    def test_pause_unknown(self, manager):
        """Pausing an unknown session returns None."""
        assert manager.pause("nope") is None
        assert manager.resume("nope") is None

    def test_stop_all(self, manager):
        """stop_all stops every running monitor."""
        manager.start("one")
        manager.start("two")

        assert manager.stop_all() == 2
        assert manager.running_count() == 0


class TestQueries:
    """Tests for status and log queries."""

    def test_list_status_includes_configured(self, manager):
        """Configured sessions appear before they are started."""
        manager.start("adhoc")

        statuses = manager.list_status()

        assert [s.session for s in statuses] == ["adhoc", "work"]
        assert statuses[0].running
        assert not statuses[1].running

    def test_set_interval(self, manager):
        """Interval overrides go to the scheduler."""
        manager.start("adhoc")

        assert manager.set_interval("adhoc", 9).interval_seconds == 9
        assert manager.set_interval("nope", 9) is None

    def test_set_interval_invalid(self, manager):
        """Non-positive intervals raise ValueError."""
        manager.start("adhoc")
        with pytest.raises(ValueError):
            manager.set_interval("adhoc", -2)

    def test_rotate_unstarted_session(self, manager, fake_backend):
        """A session with a log can be rotated without running."""
        fake_backend.panes["adhoc"] = "x"
        manager.start("adhoc")
        manager.stop("adhoc")

        assert manager.rotate("adhoc") is True
        assert len(manager.list_archives("adhoc")) == 1

    def test_read_log_missing(self, manager):
        """Reading a session without a log is empty."""
        assert manager.read_log("ghost", 10) == ""

    def test_apply_config(self, manager):
        """New configuration is published to schedulers."""
        manager.start("adhoc")
        manager.stop("adhoc")
        scheduler = manager.get("adhoc")
        config = manager.config.model_copy(update={"debug": True})

        manager.apply_config(config)
        assert manager.config is config
        assert scheduler.config is not config

        scheduler.tick()
        assert scheduler.config is config


class TestSingleton:
    """Tests for the module singleton."""

    def test_get_and_reset(self):
        """get_monitor_manager returns one instance until reset."""
        first = get_monitor_manager()
        assert get_monitor_manager() is first

        reset_monitor_manager()
        assert get_monitor_manager() is not first
