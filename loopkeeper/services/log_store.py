"""On-disk session logs.

Layout inside the log directory:

- current (dated naming):   {session}_{YYYY-MM-DD}.log
- current (current naming): {session}.log
- archived:                 {session}_{YYYY-MM-DD}_{HH-MM-SS}_{reason}.log
- colour mirror:            ANSI_tmp/{session}.log

Archived files are never written again. Readers (the dashboard) may find the
current file missing for a moment while a rotation renames it.
"""

import logging
import os
import re
import tempfile
from datetime import date, datetime
from pathlib import Path

from loopkeeper.errors import LogWriteError, RotationError
from loopkeeper.models.log_file import (
    LogFileInfo,
    ReconcileAction,
    ReconcileResult,
    RotationEvent,
    RotationReason,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H-%M-%S"
MIRROR_DIR_NAME = "ANSI_tmp"
_READ_BLOCK = 8192


def safe_session_name(name: str) -> str:
    """Make a session name usable inside a file name."""
    return re.sub(r"[^\w.-]", "-", name)


class SessionLogStore:
    """Current and archived log files of one session.

    Only the session's own scheduler writes through a store; any number of
    readers may call tail() concurrently.
    """

    def __init__(self, log_dir: str | Path, session: str, naming: str = "dated"):
        """Initialize the store.

        Args:
            log_dir: Directory for all session logs.
            session: Session name.
            naming: "dated" or "current" naming for the active log.
        """
        if naming not in ("dated", "current"):
            raise ValueError(f"Unknown log naming: {naming}")
        self.log_dir = Path(log_dir)
        self.session = session
        self.naming = naming
        self._prefix = safe_session_name(session)
        prefix = re.escape(self._prefix)
        self._dated_re = re.compile(rf"^{prefix}_(\d{{4}}-\d{{2}}-\d{{2}})\.log$")
        self._archive_re = re.compile(
            rf"^{prefix}_(\d{{4}}-\d{{2}}-\d{{2}})_(\d{{2}}-\d{{2}}-\d{{2}}(?:-\d+)?)_"
            rf"({'|'.join(r.value for r in RotationReason)})\.log$"
        )
        self._started_on: date | None = None

    # =========================================================================
    # Paths
    # =========================================================================

    def ensure_log_directory(self) -> None:
        """Ensure the log directory exists."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def path_for_date(self, day: date) -> Path:
        """Active log path for a given day."""
        if self.naming == "current":
            return self.log_dir / f"{self._prefix}.log"
        return self.log_dir / f"{self._prefix}_{day.strftime(DATE_FORMAT)}.log"

    def current_path(self, now: datetime | None = None) -> Path:
        """Path of the current log.

        In dated mode an existing log from an earlier day stays current until
        it is rotated, so a restart after midnight still archives it.
        """
        now = now or datetime.now()
        if self.naming == "current":
            return self.path_for_date(now.date())

        latest: tuple[str, Path] | None = None
        try:
            for entry in self.log_dir.iterdir():
                match = self._dated_re.match(entry.name)
                if match and (latest is None or match.group(1) > latest[0]):
                    latest = (match.group(1), entry)
        except OSError:
            pass
        if latest is not None:
            return latest[1]
        return self.path_for_date(now.date())

    def archive_path(self, now: datetime, reason: RotationReason) -> Path:
        """Archive path for a rotation happening now, never an existing file."""
        stem = f"{self._prefix}_{now.strftime(DATE_FORMAT)}_{now.strftime(TIME_FORMAT)}"
        path = self.log_dir / f"{stem}_{reason.value}.log"
        counter = 1
        while path.exists():
            path = self.log_dir / f"{stem}-{counter}_{reason.value}.log"
            counter += 1
        return path

    def mirror_path(self) -> Path:
        return self.log_dir / MIRROR_DIR_NAME / f"{self._prefix}.log"

    def is_archive(self, name: str) -> bool:
        """Whether a file name is one of this session's archives."""
        return self._archive_re.match(name) is not None

    def parse_archive_name(self, path: str | Path) -> RotationEvent | None:
        """Recover the rotation event encoded in an archive file name."""
        path = Path(path)
        match = self._archive_re.match(path.name)
        if not match:
            return None
        day, clock, reason = match.groups()
        clock = clock.split("-")
        timestamp = datetime.strptime(f"{day} {'-'.join(clock[:3])}", f"{DATE_FORMAT} {TIME_FORMAT}")
        return RotationEvent(
            session=self.session,
            timestamp=timestamp,
            reason=RotationReason(reason),
            archived_path=path,
        )

    # =========================================================================
    # Current log
    # =========================================================================

    def current_info(self, now: datetime | None = None) -> LogFileInfo | None:
        """Describe the current log, or None if it does not exist."""
        now = now or datetime.now()
        path = self.current_path(now)
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return None

        modified_at = datetime.fromtimestamp(stat.st_mtime)
        match = self._dated_re.match(path.name)
        if match:
            created_on = datetime.strptime(match.group(1), DATE_FORMAT).date()
        else:
            if self._started_on is None:
                # First sight of an existing file: it belongs to the day it was last written
                self._started_on = modified_at.date()
            created_on = self._started_on

        return LogFileInfo(
            path=path,
            size_bytes=stat.st_size,
            created_on=created_on,
            is_current=True,
            modified_at=modified_at,
        )

    def read_tail(self, max_lines: int, now: datetime | None = None) -> str:
        """Read the last max_lines complete lines of the current log.

        Only the end of the file is read, so memory stays bounded however
        large the log grows. An unterminated fragment left by an interrupted
        write is not part of the tail; apply() drops it before the next
        write. A missing or unreadable log reads as "".
        """
        if max_lines <= 0:
            return ""
        path = self.current_path(now)
        text = _read_file_tail(path, max_lines + 1)
        if text and not text.endswith("\n"):
            text = text[: text.rfind("\n") + 1]
        kept = text.split("\n")[:-1][-max_lines:]
        return "\n".join(kept) + "\n" if kept else ""

    def tail(self, max_lines: int | None = None) -> str:
        """Tail of the current log for readers; the whole file if max_lines is falsy."""
        path = self.current_path()
        if max_lines:
            return _read_file_tail(path, max_lines)
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return ""
        except OSError as e:
            logger.warning(f"Error reading log file {path}: {e}")
            return ""

    def apply(self, result: ReconcileResult, now: datetime | None = None) -> bool:
        """Write a reconcile result to the current log.

        An unterminated fragment left by an interrupted write is trimmed
        first: read_tail() never shows it to the reconciler, so the APPEND
        suffix or FULL_REPLACE tail carries that line whole. APPEND then adds
        the suffix; FULL_REPLACE starts a new baseline after the preserved
        history.

        Returns:
            True if the file was written, False for NO_CHANGE.

        Raises:
            LogWriteError: The write failed; the log is left as it was or
                with a complete prefix of the new lines.
        """
        if result.action is ReconcileAction.NO_CHANGE:
            return False

        now = now or datetime.now()
        path = self.current_path(now)
        payload = (result.content + "\n").encode("utf-8")

        try:
            self.ensure_log_directory()
            existed = path.exists()
            with open(path, "ab+") as f:
                f.seek(0, os.SEEK_END)
                size = f.tell()
                if size:
                    f.seek(-1, os.SEEK_END)
                    if f.read(1) != b"\n":
                        f.truncate(_last_line_end(f, size))
                        f.seek(0, os.SEEK_END)
                f.write(payload)
        except OSError as e:
            raise LogWriteError(f"Cannot write {path}: {e}") from e

        if not existed and self._started_on is None:
            self._started_on = now.date()
        return True

    def write_seed(self, text: str, now: datetime | None = None) -> Path:
        """Start a new current log holding text.

        Written to a temporary file and renamed into place, so readers see
        either no file or the complete seed.

        Raises:
            LogWriteError: The seed could not be written.
        """
        now = now or datetime.now()
        path = self.path_for_date(now.date())
        content = text if not text or text.endswith("\n") else text + "\n"
        try:
            self.ensure_log_directory()
            atomic_write_text(path, content)
        except OSError as e:
            raise LogWriteError(f"Cannot seed {path}: {e}") from e
        self._started_on = now.date()
        return path

    def archive_current(self, reason: RotationReason, now: datetime | None = None) -> RotationEvent:
        """Rename the current log into the archive.

        Raises:
            RotationError: There is no current log or the rename failed; the
                current file is left in place.
        """
        now = now or datetime.now()
        source = self.current_path(now)
        target = self.archive_path(now, reason)
        try:
            source.rename(target)
        except OSError as e:
            raise RotationError(f"Cannot archive {source} to {target.name}: {e}") from e

        self._started_on = None
        return RotationEvent(
            session=self.session,
            timestamp=now,
            reason=reason,
            archived_path=target,
        )

    # =========================================================================
    # Archives and mirror
    # =========================================================================

    def list_archives(self) -> list[LogFileInfo]:
        """Archived logs of this session, newest modification first."""
        archives = []
        try:
            entries = list(self.log_dir.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning(f"Cannot list {self.log_dir}: {e}")
            return []

        for entry in entries:
            match = self._archive_re.match(entry.name)
            if not match:
                continue
            try:
                stat = entry.stat()
            except OSError:
                # Deleted between listing and stat
                continue
            archives.append(
                LogFileInfo(
                    path=entry,
                    size_bytes=stat.st_size,
                    created_on=datetime.strptime(match.group(1), DATE_FORMAT).date(),
                    is_current=False,
                    modified_at=datetime.fromtimestamp(stat.st_mtime),
                )
            )

        archives.sort(key=lambda info: (info.modified_at, info.path.name), reverse=True)
        return archives

    def write_mirror(self, text: str) -> bool:
        """Replace the colour mirror with the raw pane content."""
        path = self.mirror_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_text(path, text)
            return True
        except OSError as e:
            logger.warning(f"Cannot write mirror {path}: {e}")
            return False


def atomic_write_text(path: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def _last_line_end(f, size: int) -> int:
    """Offset just past the last newline in an open binary file (0 if none)."""
    pos = size
    while pos > 0:
        read = min(_READ_BLOCK, pos)
        pos -= read
        f.seek(pos)
        block = f.read(read)
        index = block.rfind(b"\n")
        if index != -1:
            return pos + index + 1
    return 0


def _read_file_tail(path: Path, max_lines: int) -> str:
    try:
        with open(path, "rb") as f:
            f.seek(0, os.SEEK_END)
            pos = f.tell()
            data = b""
            while pos > 0 and data.count(b"\n") <= max_lines:
                read = min(_READ_BLOCK, pos)
                pos -= read
                f.seek(pos)
                data = f.read(read) + data
    except FileNotFoundError:
        return ""
    except OSError as e:
        logger.warning(f"Error reading log file {path}: {e}")
        return ""

    text = data.decode("utf-8", errors="replace")
    parts = text.split("\n")
    if pos > 0:
        # The first line may start mid-way through the file
        parts = parts[1:]

    terminated = bool(parts) and parts[-1] == ""
    lines = parts[:-1] if terminated else parts
    kept = lines[-max_lines:] if max_lines > 0 else []
    if not kept:
        return ""
    return "\n".join(kept) + ("\n" if terminated else "")
