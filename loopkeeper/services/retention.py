"""Retention pruning of archived session logs."""

import logging
from pathlib import Path

from loopkeeper.services.log_store import SessionLogStore

logger = logging.getLogger(__name__)


class RetentionPruner:
    """Deletes the oldest archives beyond a retention count."""

    def prune(self, store: SessionLogStore, keep_count: int) -> list[Path]:
        """Delete archived logs beyond keep_count, oldest first.

        The current log is never considered. Running with nothing to prune
        is a no-op.

        Args:
            store: The session's log store.
            keep_count: Number of newest archives to keep.

        Returns:
            Paths that were deleted.
        """
        archives = store.list_archives()
        deleted = []
        for info in archives[max(keep_count, 0) :]:
            try:
                info.path.unlink()
                deleted.append(info.path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not delete old log {info.path.name}: {e}")

        if deleted:
            logger.info(f"Cleaned up {len(deleted)} old {store.session} logs")
        return deleted
