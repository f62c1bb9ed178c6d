"""Log rotation policy.

Rotation is evaluated once per scheduler tick; there is no timer of its own,
so a log may overshoot max_log_size_bytes by at most one tick's worth of
output before it is archived.
"""

import logging
from datetime import datetime

from loopkeeper.errors import LogWriteError, RotationError
from loopkeeper.models.log_file import LogFileInfo, RotationEvent, RotationReason
from loopkeeper.services.log_store import SessionLogStore
from loopkeeper.services.reconciler import split_lines

logger = logging.getLogger(__name__)


class RotationPolicy:
    """Decides when a current log is archived and performs the rotation."""

    def __init__(self, max_log_size_bytes: int = 1024 * 1024, seed_lines: int = 100):
        """Initialize the policy.

        Args:
            max_log_size_bytes: Size above which the log is rotated.
            seed_lines: Lines of context carried into the new log.
        """
        self.max_log_size_bytes = max_log_size_bytes
        self.seed_lines = seed_lines

    def should_rotate(self, log_file: LogFileInfo | None, now: datetime) -> RotationReason | None:
        """Check whether the current log should be archived.

        Args:
            log_file: The current log (None if it does not exist yet).
            now: Local time of this tick.

        Returns:
            DAILY when the log belongs to an earlier calendar day, SIZE when
            it is over the size limit, otherwise None.
        """
        if log_file is None:
            return None
        if log_file.created_on != now.date():
            return RotationReason.DAILY
        if log_file.size_bytes > self.max_log_size_bytes:
            return RotationReason.SIZE
        return None

    def seed_content(self, snapshot: str, previous_tail: str) -> str:
        """Context for a fresh log: the snapshot tail, else the old log tail.

        Leading lines are dropped until the seed fits within
        max_log_size_bytes, so a fresh log is never due for size rotation
        before anything new is written to it.
        """
        lines = (split_lines(snapshot) or split_lines(previous_tail))[-self.seed_lines :]
        size = sum(len(line.encode("utf-8")) + 1 for line in lines)
        while lines and size > self.max_log_size_bytes:
            size -= len(lines.pop(0).encode("utf-8")) + 1
        return "\n".join(lines)

    def rotate(
        self,
        store: SessionLogStore,
        reason: RotationReason,
        snapshot: str,
        now: datetime | None = None,
    ) -> RotationEvent | None:
        """Archive the current log and seed its successor.

        The new log starts with the last seed_lines lines of the snapshot
        that was just captured, so live context survives the rotation.

        Args:
            store: The session's log store.
            reason: Why the log is rotated.
            snapshot: The pane snapshot of this tick ("" if none).
            now: Rotation time.

        Returns:
            The RotationEvent, or None if the rename failed (the current log
            is left untouched and the next tick retries).
        """
        now = now or datetime.now()
        previous_tail = store.read_tail(self.seed_lines, now)
        seed = self.seed_content(snapshot, previous_tail)

        try:
            event = store.archive_current(reason, now)
        except RotationError as e:
            logger.error(f"Rotation of {store.session} log failed: {e}")
            return None

        try:
            store.write_seed(seed, now)
        except LogWriteError as e:
            # The archive is safe; the next tick bootstraps a new current log
            logger.error(f"Seeding new {store.session} log failed: {e}")

        logger.info(
            f"Rotated {store.session} log to {event.archived_path.name} ({reason.value})"
        )
        return event
