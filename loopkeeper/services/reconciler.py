"""Snapshot reconciliation for the log sync engine.

The reconciler decides how to converge a session log with the latest pane
snapshot without diffing: it looks for the longest run of trailing log lines
that reappears somewhere in the snapshot (the overlap point) and treats
whatever follows that run as genuinely new output.

Live counters (elapsed seconds, token counts) would defeat an exact search on
every tick, so in fuzzy mode lines are compared with every digit replaced by
a placeholder.
"""

import hashlib
import logging
import re
from collections.abc import Iterable

from loopkeeper.models.config import LogSyncConfig
from loopkeeper.models.log_file import ReconcileAction, ReconcileResult

logger = logging.getLogger(__name__)

DIGIT_RE = re.compile(r"\d")
DIGIT_PLACEHOLDER = "X"


def normalize_line(line: str) -> str:
    """Replace every digit with the placeholder character."""
    return DIGIT_RE.sub(DIGIT_PLACEHOLDER, line)


def split_lines(text: str) -> list[str]:
    """Split text into lines, dropping trailing blank lines.

    tmux pads the unused rows of a pane with empty lines; they are not
    content and would otherwise match each other across ticks.
    """
    if not text:
        return []
    lines = [line.rstrip("\r") for line in text.split("\n")]
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def content_hash(lines: Iterable[str], fuzzy: bool = True) -> str:
    """64-bit hash of a line sequence, used as a cheap change pre-check."""
    digest = hashlib.blake2b(digest_size=8)
    for line in lines:
        key = normalize_line(line) if fuzzy else line
        digest.update(key.encode("utf-8", errors="replace"))
        digest.update(b"\n")
    return digest.hexdigest()


class Reconciler:
    """Computes the minimal update that converges a log with a snapshot."""

    def __init__(
        self,
        match_mode: str = "fuzzy",
        overlap_window: int = 200,
        min_overlap_lines: int = 2,
        fallback_tail_lines: int = 500,
    ):
        """Initialize the reconciler.

        Args:
            match_mode: "fuzzy" (digit-insensitive) or "exact".
            overlap_window: Trailing log lines considered for the overlap.
            min_overlap_lines: Shortest overlap accepted as a match.
            fallback_tail_lines: Snapshot lines kept when no overlap exists.
        """
        if match_mode not in ("fuzzy", "exact"):
            raise ValueError(f"Unknown match mode: {match_mode}")
        self.match_mode = match_mode
        self.overlap_window = overlap_window
        self.min_overlap_lines = min_overlap_lines
        self.fallback_tail_lines = fallback_tail_lines

    @classmethod
    def from_config(cls, config: LogSyncConfig) -> "Reconciler":
        return cls(
            match_mode=config.match_mode,
            overlap_window=config.overlap_window,
            min_overlap_lines=config.min_overlap_lines,
            fallback_tail_lines=config.fallback_tail_lines,
        )

    @property
    def fuzzy(self) -> bool:
        return self.match_mode == "fuzzy"

    def _key(self, line: str) -> str:
        return normalize_line(line) if self.fuzzy else line

    def find_overlap(self, old_lines: list[str], new_lines: list[str]) -> tuple[int, int]:
        """Locate the overlap point of the log tail inside the snapshot.

        Every snapshot line matching the last log line is an anchor; from
        each anchor the match is extended backwards. The longest match wins,
        and among equally long ones the anchor nearest the snapshot end.

        Args:
            old_lines: Log lines (only the last overlap_window are used).
            new_lines: Snapshot lines.

        Returns:
            Tuple of (overlap_length, anchor_index). (0, -1) if nothing matched.
        """
        window = old_lines[-self.overlap_window :]
        if not window or not new_lines:
            return 0, -1

        old_keys = [self._key(line) for line in window]
        new_keys = [self._key(line) for line in new_lines]
        last_key = old_keys[-1]

        best_length, best_anchor = 0, -1
        # Walk anchors from the end so a later anchor keeps equal-length ties
        for anchor in range(len(new_keys) - 1, -1, -1):
            if new_keys[anchor] != last_key:
                continue
            length = 1
            while (
                length < len(old_keys)
                and length <= anchor
                and new_keys[anchor - length] == old_keys[-1 - length]
            ):
                length += 1
            if length > best_length:
                best_length, best_anchor = length, anchor
                if length == len(old_keys):
                    break

        return best_length, best_anchor

    def reconcile(self, previous: str, snapshot: str) -> ReconcileResult:
        """Decide how to merge a snapshot into the log.

        Args:
            previous: Current log content (or at least its tail).
            snapshot: The latest pane snapshot.

        Returns:
            NO_CHANGE, APPEND with the new suffix, or FULL_REPLACE with the
            bounded snapshot tail.
        """
        if not snapshot or not snapshot.strip():
            # A failed or empty sample must never erase history
            return ReconcileResult(action=ReconcileAction.NO_CHANGE)

        if snapshot == previous:
            return ReconcileResult(action=ReconcileAction.NO_CHANGE)

        new_lines = split_lines(snapshot)
        old_lines = split_lines(previous)

        if not old_lines:
            return self._full_replace(new_lines)

        overlap, anchor = self.find_overlap(old_lines, new_lines)
        required = min(
            self.min_overlap_lines,
            len(old_lines[-self.overlap_window :]),
            len(new_lines),
        )

        if overlap == 0 or overlap < required:
            logger.debug(
                f"No overlap (best {overlap}, need {required}), resyncing "
                f"from last {self.fallback_tail_lines} snapshot lines"
            )
            return self._full_replace(new_lines)

        suffix = new_lines[anchor + 1 :]
        if not suffix:
            return ReconcileResult(action=ReconcileAction.NO_CHANGE, overlap=overlap)

        return ReconcileResult(
            action=ReconcileAction.APPEND,
            content="\n".join(suffix),
            overlap=overlap,
        )

    def _full_replace(self, new_lines: list[str]) -> ReconcileResult:
        tail = new_lines[-self.fallback_tail_lines :]
        return ReconcileResult(
            action=ReconcileAction.FULL_REPLACE,
            content="\n".join(tail),
        )
