"""Half-open time-of-day intervals and the overlap rule.

Two intervals [s1, e1) and [s2, e2) on the same day overlap iff
s1 < e2 and s2 < e1. Touching endpoints do not overlap.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from gymschedule.scheduling.errors import ValidationError

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def normalize_time(value: str) -> str:
    """Zero-pad a 24h ``H:MM``/``HH:MM`` string to ``HH:MM``.

    Raises ValidationError for anything that is not a valid wall-clock time.
    """
    match = _TIME_RE.match(value or "")
    if match is None:
        raise ValidationError(f"Invalid time of day '{value}', expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time of day '{value}', expected HH:MM")
    return f"{hours:02d}:{minutes:02d}"


def to_minutes(value: str) -> int:
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)


@dataclass(frozen=True)
class TimeInterval:
    """A [start, end) window within one day, stored normalized."""

    start: str
    end: str

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeInterval":
        """Build a validated interval; start must be strictly before end."""
        interval = cls(normalize_time(start), normalize_time(end))
        if interval.start >= interval.end:
            raise ValidationError(
                f"Start time {interval.start} must be before end time {interval.end}",
                details={"start_time": interval.start, "end_time": interval.end},
            )
        return interval

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.start_minutes < b.end_minutes and b.start_minutes < a.end_minutes


def find_conflict(
    candidate: TimeInterval, existing: Iterable[TimeInterval]
) -> TimeInterval | None:
    """Return the first interval in ``existing`` that overlaps ``candidate``."""
    for other in existing:
        if overlaps(candidate, other):
            return other
    return None


def conflicts(candidate: TimeInterval, existing: Iterable[TimeInterval]) -> bool:
    return find_conflict(candidate, existing) is not None
