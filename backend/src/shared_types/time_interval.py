"""
Time interval value object used by every scheduling component.

A TimeInterval is a half-open range ``[start, end)`` on a single calendar day.
Times are held as minute-of-day integers so ordering is total and cheap; the
"HH:MM" 24-hour form is only used at the edges (parsing and display).
"""

import re
from dataclasses import dataclass
from datetime import date, time
from typing import Union

from core.exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

_HHMM_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")


def parse_hhmm(value: str) -> int:
    """
    Parse a zero-padded 24-hour "HH:MM" string into minutes since midnight.

    Raises:
        ValidationError: If the value is not a valid "HH:MM" time
    """
    if not isinstance(value, str):
        raise ValidationError(f"Time must be an 'HH:MM' string, got {type(value).__name__}")
    match = _HHMM_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid time format (expected HH:MM): {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _as_minutes(point: Union[str, int, time]) -> int:
    if isinstance(point, time):
        return point.hour * 60 + point.minute
    if isinstance(point, bool):
        raise ValidationError("Time point must be 'HH:MM', minutes or datetime.time")
    if isinstance(point, int):
        if not 0 <= point < MINUTES_PER_DAY:
            raise ValidationError(f"Minute-of-day out of range: {point}")
        return point
    return parse_hhmm(point)


@dataclass(frozen=True, order=True)
class TimeInterval:
    """
    Half-open time range on one day.

    Ordering sorts by day, then start, then end.
    """

    day: date
    start_minute: int
    end_minute: int

    def __post_init__(self) -> None:
        if not isinstance(self.day, date):
            raise ValidationError(f"Interval day must be a date, got {type(self.day).__name__}")
        for value in (self.start_minute, self.end_minute):
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < MINUTES_PER_DAY:
                raise ValidationError(f"Minute-of-day out of range: {value!r}")
        if self.start_minute >= self.end_minute:
            raise ValidationError(
                f"Interval start must be before end: {format_hhmm(self.start_minute)}-{format_hhmm(self.end_minute)}"
            )

    @classmethod
    def from_strings(cls, day: date, start: str, end: str) -> "TimeInterval":
        """Build an interval from "HH:MM" strings."""
        return cls(day, parse_hhmm(start), parse_hhmm(end))

    @classmethod
    def from_times(cls, day: date, start: time, end: time) -> "TimeInterval":
        """Build an interval from stored datetime.time values (seconds are dropped)."""
        return cls(day, _as_minutes(start), _as_minutes(end))

    @property
    def start(self) -> str:
        return format_hhmm(self.start_minute)

    @property
    def end(self) -> str:
        return format_hhmm(self.end_minute)

    @property
    def start_time(self) -> time:
        return time(self.start_minute // 60, self.start_minute % 60)

    @property
    def end_time(self) -> time:
        return time(self.end_minute // 60, self.end_minute % 60)

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def on_day(self, day: date) -> "TimeInterval":
        """Same time of day, moved to another date."""
        return TimeInterval(day, self.start_minute, self.end_minute)

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self, other)

    def contains(self, point: Union[str, int, time]) -> bool:
        return contains(self, point)

    def __str__(self) -> str:
        return f"{self.day.isoformat()} {self.start}-{self.end}"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """
    Check whether two intervals overlap.

    Half-open semantics: an interval ending at 10:00 does not overlap one
    starting at 10:00.
    """
    return a.day == b.day and a.start_minute < b.end_minute and b.start_minute < a.end_minute


def contains(interval: TimeInterval, point: Union[str, int, time]) -> bool:
    """Check whether a time of day falls inside ``[start, end)``."""
    minutes = _as_minutes(point)
    return interval.start_minute <= minutes < interval.end_minute
