"""Pause signal and detection event models."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def to_local_naive(value: datetime | None) -> datetime | None:
    """Convert an aware timestamp to naive local time.

    Schedulers compare against naive local clocks, so timestamps written
    with an offset ("...+00:00", "...Z") are normalized on load.
    """
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class PauseState(BaseModel):
    """Contents of the pause file.

    The injection loop writes this when it pauses and deletes it on resume.
    A pause file that is not JSON still counts as paused with no metadata.

    Attributes:
        paused_at: When the pause started.
        resume_at: When the pause expires on its own (None: until cleared).
        reason: Who paused ("manual", "usage_limit", "legacy").
        loops: Per-session remaining delay, {"session": {"time_remaining_ms": int}}.
    """

    paused_at: datetime = Field(default_factory=datetime.now)
    resume_at: datetime | None = None
    reason: str = "manual"
    loops: dict[str, dict[str, int]] = Field(default_factory=dict)

    @field_validator("paused_at", "resume_at")
    @classmethod
    def local_times(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether resume_at has passed."""
        if self.resume_at is None:
            return False
        now = to_local_naive(now) or datetime.now()
        return now >= self.resume_at


class UsageLimitEvent(BaseModel):
    """A usage-limit message seen in a session's pane.

    Attributes:
        session: Session name.
        detected_at: When the message was seen.
        line: The matching terminal line.
        resume_at: Parsed reset time (None when the message had no time).
    """

    session: str
    detected_at: datetime = Field(default_factory=datetime.now)
    line: str
    resume_at: datetime | None = None

    @field_validator("detected_at", "resume_at")
    @classmethod
    def local_times(cls, value: datetime | None) -> datetime | None:
        return to_local_naive(value)
