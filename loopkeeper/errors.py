"""Exceptions raised by the log sync engine."""


class LogSyncError(Exception):
    """Base class for log sync failures."""


class SampleError(LogSyncError):
    """The pane exists but could not be captured this tick."""


class LogWriteError(LogSyncError):
    """The current log could not be written."""


class RotationError(LogSyncError):
    """The current log could not be archived."""
