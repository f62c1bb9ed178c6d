"""Usage-limit detection on the pane tail.

Detection reads the output that reached the log on the current tick; it
never influences what is written to the session log.
"""

import logging
import re
from datetime import datetime, timedelta

from loopkeeper.models.signal import UsageLimitEvent

logger = logging.getLogger(__name__)

# "Claude AI usage limit reached|1735689600"
EPOCH_PATTERN = re.compile(r"usage limit reached\|(\d{10})", re.IGNORECASE)

# Clock-time patterns: groups are (hour, minute, am/pm); minute and am/pm optional
CLOCK_PATTERNS = [
    re.compile(r"usage limit.*?\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE),
    re.compile(r"limit will reset at\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?", re.IGNORECASE),
    re.compile(r"try again at\D*?(\d{1,2}):(\d{2})\s*(am|pm)?", re.IGNORECASE),
    re.compile(r"available again at\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?", re.IGNORECASE),
]

# Limit messages without a usable reset time
BARE_PATTERNS = [
    re.compile(r"usage limit reached", re.IGNORECASE),
    re.compile(r"rate limit exceeded", re.IGNORECASE),
    re.compile(r"usage quota exceeded", re.IGNORECASE),
]


def resolve_clock_time(
    hour: int,
    minute: int,
    meridiem: str | None,
    now: datetime,
) -> datetime | None:
    """Next occurrence of a wall-clock time, today or tomorrow.

    Returns:
        The datetime, or None if the time is not valid.
    """
    if meridiem:
        meridiem = meridiem.lower()
        if not 1 <= hour <= 12:
            return None
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return None

    resume = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if resume <= now:
        resume += timedelta(days=1)
    return resume


class UsageLimitDetector:
    """Finds usage-limit messages and the time the limit lifts."""

    def parse_line(self, line: str, now: datetime) -> tuple[bool, datetime | None]:
        """Check one line.

        Returns:
            Tuple of (matched, resume_at).
        """
        match = EPOCH_PATTERN.search(line)
        if match:
            return True, datetime.fromtimestamp(int(match.group(1)))

        for pattern in CLOCK_PATTERNS:
            match = pattern.search(line)
            if match:
                hour = int(match.group(1))
                minute = int(match.group(2)) if match.group(2) else 0
                return True, resolve_clock_time(hour, minute, match.group(3), now)

        if any(pattern.search(line) for pattern in BARE_PATTERNS):
            return True, None

        return False, None

    def detect(
        self,
        session: str,
        tail_text: str,
        now: datetime | None = None,
    ) -> UsageLimitEvent | None:
        """Scan the pane tail for the most recent usage-limit message.

        Args:
            session: Session name for the event.
            tail_text: The last lines of the pane.
            now: Reference time for resolving clock times.

        Returns:
            UsageLimitEvent, or None if no limit message is visible.
        """
        now = now or datetime.now()
        for line in reversed(tail_text.split("\n")):
            if not line.strip():
                continue
            matched, resume_at = self.parse_line(line, now)
            if matched:
                return UsageLimitEvent(
                    session=session,
                    detected_at=now,
                    line=line.strip(),
                    resume_at=resume_at,
                )
        return None
