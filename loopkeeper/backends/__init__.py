"""Terminal backend implementations."""

from loopkeeper.backends.base import TerminalBackend
from loopkeeper.backends.tmux import TmuxBackend, get_tmux_backend, reset_tmux_backend

__all__ = [
    "TerminalBackend",
    "TmuxBackend",
    "get_tmux_backend",
    "reset_tmux_backend",
]
