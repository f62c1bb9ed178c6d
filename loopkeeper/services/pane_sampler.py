"""Pane sampling for the log sync engine.

A sample is the rendered text of one pane, bounded to the last N lines of
scrollback. A pane that no longer exists is not an error: it samples as an
empty string so the scheduler simply has nothing to merge this tick.
"""

import logging
import re

from loopkeeper.backends.base import TerminalBackend
from loopkeeper.errors import SampleError

logger = logging.getLogger(__name__)

# CSI sequences (colours, cursor moves), OSC sequences (titles, hyperlinks)
# and character set selection.
ANSI_ESCAPE_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[()][A-Za-z0-9]"
)


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences from text."""
    return ANSI_ESCAPE_RE.sub("", text)


class PaneSampler:
    """Reads bounded snapshots of terminal panes."""

    def __init__(
        self,
        backend: TerminalBackend,
        include_escapes: bool = False,
        timeout: int = 10,
    ):
        """Initialize the sampler.

        Args:
            backend: Terminal backend used to reach the pane.
            include_escapes: Capture colour/style sequences.
            timeout: Seconds allowed for one capture.
        """
        self.backend = backend
        self.include_escapes = include_escapes
        self.timeout = timeout

    def pane_exists(self, pane_ref: str) -> bool:
        """Check whether the pane can be sampled."""
        return self.backend.pane_exists(pane_ref)

    def sample(self, pane_ref: str, max_lines: int) -> str:
        """Capture the last max_lines lines of a pane.

        Args:
            pane_ref: Backend target for the pane.
            max_lines: Scrollback bound.

        Returns:
            The snapshot, or "" if the pane does not exist.

        Raises:
            SampleError: The pane exists but the capture failed.
        """
        if not self.backend.pane_exists(pane_ref):
            logger.debug(f"Pane {pane_ref} not found, nothing to sample")
            return ""

        content = self.backend.read_pane(
            pane_ref,
            max_lines=max_lines,
            escapes=self.include_escapes,
            timeout=self.timeout,
        )
        if content is None:
            raise SampleError(f"capture of pane {pane_ref} failed")

        lines = content.split("\n")
        if len(lines) > max_lines:
            # tmux counts -S from the top of the visible area, so the capture
            # can exceed the requested scrollback by one screen
            content = "\n".join(lines[-max_lines:])
        return content

    def sample_plain(self, pane_ref: str, max_lines: int) -> tuple[str, str]:
        """Capture a pane and also return it without escape sequences.

        Returns:
            Tuple of (plain_text, raw_text). Both are "" when the pane is gone.
        """
        raw = self.sample(pane_ref, max_lines)
        if not self.include_escapes:
            return raw, raw
        return strip_ansi(raw), raw
