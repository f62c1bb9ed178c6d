"""tmux terminal backend.

Talks to the tmux server through the tmux CLI. Every call is a short-lived
subprocess with its own timeout; failures come back as a non-zero return
code instead of an exception.
"""

import logging
import shutil
import subprocess

from loopkeeper.backends.base import TerminalBackend

logger = logging.getLogger(__name__)

# Cache the tmux availability check
_tmux_available: bool | None = None


def _run_tmux(*args: str, timeout: int = 10) -> tuple[int, str, str]:
    """Run a tmux command.

    Args:
        *args: Command arguments to pass to tmux.
        timeout: Command timeout in seconds.

    Returns:
        Tuple of (return_code, stdout, stderr).
    """
    cmd = ["tmux", *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return (result.returncode, result.stdout or "", result.stderr or "")
    except subprocess.TimeoutExpired:
        return (1, "", "Command timed out")
    except FileNotFoundError:
        return (1, "", "tmux not found")


class TmuxBackend(TerminalBackend):
    """tmux-based terminal backend."""

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "tmux"

    def is_available(self) -> bool:
        """Check if tmux is installed.

        Returns:
            True if tmux is on PATH. Result is cached.
        """
        global _tmux_available
        if _tmux_available is not None:
            return _tmux_available

        _tmux_available = shutil.which("tmux") is not None
        return _tmux_available

    def pane_exists(self, pane_ref: str) -> bool:
        """Check whether a tmux target exists.

        Args:
            pane_ref: Session name, "session:window.pane" or pane id.

        Returns:
            True if tmux knows the target.
        """
        if not self.is_available():
            return False

        # has-session resolves "session:window.pane" targets to their session
        returncode, _, _ = _run_tmux("has-session", "-t", pane_ref)
        return returncode == 0

    def read_pane(
        self,
        pane_ref: str,
        max_lines: int = 500,
        escapes: bool = False,
        timeout: int = 10,
    ) -> str | None:
        """Capture a tmux pane.

        Args:
            pane_ref: The tmux target.
            max_lines: Number of scrollback lines to capture.
            escapes: Pass -e so colour sequences are kept.
            timeout: Capture timeout in seconds.

        Returns:
            Captured text, or None on failure.
        """
        if not self.is_available():
            return None

        # -p prints to stdout, negative -S reaches into scrollback
        args = ["capture-pane", "-p", "-t", pane_ref, "-S", f"-{max_lines}"]
        if escapes:
            args.insert(1, "-e")

        returncode, stdout, stderr = _run_tmux(*args, timeout=timeout)

        if returncode != 0:
            logger.debug(f"capture-pane failed for {pane_ref}: {stderr.strip()}")
            return None

        return stdout


# Singleton instance
_backend_instance: TmuxBackend | None = None


def get_tmux_backend() -> TmuxBackend:
    """Get the singleton tmux backend instance."""
    global _backend_instance
    if _backend_instance is None:
        _backend_instance = TmuxBackend()
    return _backend_instance


def reset_tmux_backend() -> None:
    """Reset the singleton instance (for testing)."""
    global _backend_instance, _tmux_available
    _backend_instance = None
    _tmux_available = None
