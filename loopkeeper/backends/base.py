"""Abstract base class for terminal backend implementations.

Defines the read-only interface the log sync engine needs from a terminal
multiplexer.
"""

from abc import ABC, abstractmethod


class TerminalBackend(ABC):
    """Abstract interface for terminal backends.

    Terminal backends provide the ability to:
    - Check whether a pane still exists
    - Read the rendered text of a pane
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'tmux')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend is installed.

        Returns:
            True if the backend can be used, False otherwise.
        """

    @abstractmethod
    def pane_exists(self, pane_ref: str) -> bool:
        """Check whether a pane can still be addressed.

        Args:
            pane_ref: The backend target (session name or pane id).

        Returns:
            True if the pane exists.
        """

    @abstractmethod
    def read_pane(
        self,
        pane_ref: str,
        max_lines: int = 500,
        escapes: bool = False,
        timeout: int = 10,
    ) -> str | None:
        """Capture the rendered text of a pane.

        Args:
            pane_ref: The backend target.
            max_lines: Number of scrollback lines to capture.
            escapes: Keep colour/style escape sequences.
            timeout: Seconds before the capture is abandoned.

        Returns:
            Pane content, or None on failure.
        """
