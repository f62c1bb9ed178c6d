"""Tests for the tmux backend and pane sampler."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from loopkeeper.backends.tmux import (
    TmuxBackend,
    _run_tmux,
    get_tmux_backend,
    reset_tmux_backend,
)
from loopkeeper.errors import SampleError
from loopkeeper.services.pane_sampler import PaneSampler, strip_ansi


@pytest.fixture
def mock_tmux_available():
    """Mock tmux as installed."""
    with (
        patch("loopkeeper.backends.tmux.shutil.which") as mock_which,
        patch("loopkeeper.backends.tmux._run_tmux") as mock_run,
    ):
        mock_which.return_value = "/usr/bin/tmux"
        mock_run.return_value = (0, "", "")
        yield mock_which, mock_run


class TestRunTmux:
    """Tests for the subprocess wrapper."""

    def test_success(self):
        """Return code and output are passed through."""
        with patch("loopkeeper.backends.tmux.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="out", stderr="")
            assert _run_tmux("list-sessions") == (0, "out", "")
            assert mock_run.call_args[0][0] == ["tmux", "list-sessions"]

    def test_timeout(self):
        """A timeout is a failed result."""
        with patch("loopkeeper.backends.tmux.subprocess.run") as mock_run:
            mock_run.side_effect = subprocess.TimeoutExpired("tmux", 10)
            assert _run_tmux("capture-pane") == (1, "", "Command timed out")

    def test_not_installed(self):
        """A missing binary is a failed result."""
        with patch("loopkeeper.backends.tmux.subprocess.run") as mock_run:
            mock_run.side_effect = FileNotFoundError()
            assert _run_tmux("capture-pane") == (1, "", "tmux not found")


class TestTmuxBackend:
    """Tests for TmuxBackend."""

    def test_backend_name(self):
        """Backend name is 'tmux'."""
        assert TmuxBackend().backend_name == "tmux"

    def test_singleton(self):
        """get_tmux_backend returns one instance until reset."""
        first = get_tmux_backend()
        assert get_tmux_backend() is first
        reset_tmux_backend()
        assert get_tmux_backend() is not first

    def test_unavailable(self):
        """Without tmux nothing can be read."""
        with patch("loopkeeper.backends.tmux.shutil.which", return_value=None):
            backend = TmuxBackend()
            assert backend.is_available() is False
            assert backend.pane_exists("work") is False
            assert backend.read_pane("work") is None

    def test_pane_exists(self, mock_tmux_available):
        """has-session decides pane existence."""
        _, mock_run = mock_tmux_available
        mock_run.return_value = (1, "", "can't find session")

        assert TmuxBackend().pane_exists("gone") is False
        mock_run.assert_called_with("has-session", "-t", "gone")

    def test_read_pane_args(self, mock_tmux_available):
        """capture-pane reaches into scrollback."""
        _, mock_run = mock_tmux_available
        mock_run.return_value = (0, "hello\n", "")

        assert TmuxBackend().read_pane("work", max_lines=300) == "hello\n"
        mock_run.assert_called_with("capture-pane", "-p", "-t", "work", "-S", "-300", timeout=10)

    def test_read_pane_with_escapes(self, mock_tmux_available):
        """-e is passed when escapes are requested."""
        _, mock_run = mock_tmux_available
        mock_run.return_value = (0, "x", "")

        TmuxBackend().read_pane("work", max_lines=10, escapes=True, timeout=3)

        mock_run.assert_called_with(
            "capture-pane", "-e", "-p", "-t", "work", "-S", "-10", timeout=3
        )

    def test_read_pane_failure(self, mock_tmux_available):
        """A failed capture returns None."""
        _, mock_run = mock_tmux_available
        mock_run.return_value = (1, "", "no server running")

        assert TmuxBackend().read_pane("work") is None


class TestPaneSampler:
    """Tests for PaneSampler."""

    def test_missing_pane_samples_empty(self, fake_backend):
        """A pane that is gone samples as empty text."""
        assert PaneSampler(fake_backend).sample("gone", 100) == ""
        assert fake_backend.read_calls == 0

    def test_failed_capture_raises(self, fake_backend):
        """A pane that exists but cannot be read raises SampleError."""
        fake_backend.panes["work"] = "x"
        fake_backend.fail_reads = True

        with pytest.raises(SampleError):
            PaneSampler(fake_backend).sample("work", 100)

    def test_truncates_to_max_lines(self, fake_backend):
        """Only the last max_lines lines are kept."""
        fake_backend.panes["work"] = "\n".join(f"l{i}" for i in range(20))

        assert PaneSampler(fake_backend).sample("work", 3) == "l17\nl18\nl19"

    def test_sample_plain_strips_escapes(self, fake_backend):
        """Plain text has escapes removed, raw keeps them."""
        fake_backend.panes["work"] = "\x1b[1;31merror\x1b[0m"
        sampler = PaneSampler(fake_backend, include_escapes=True)

        plain, raw = sampler.sample_plain("work", 10)

        assert plain == "error"
        assert raw == "\x1b[1;31merror\x1b[0m"

    def test_strip_ansi_osc(self):
        """OSC title and hyperlink sequences are removed."""
        assert strip_ansi("\x1b]0;title\x07text\x1b]8;;http://x\x1b\\link") == "textlink"
