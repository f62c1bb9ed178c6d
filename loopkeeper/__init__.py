"""Loop Keeper - append-only logs of tmux sessions for the loop dashboard."""

__version__ = "0.1.0"
