from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from .errors import ValidationError

HHMM_PATTERN = re.compile(r"^([0-1]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class TimeInterval:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError("End time must be after start time")

    @property
    def duration_minutes(self) -> int:
        return _minute_of_day(self.end) - _minute_of_day(self.start)

    def overlaps(self, other: TimeInterval) -> bool:
        return has_time_overlap(self.start, self.end, other.start, other.end)

    def __str__(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


def has_time_overlap(new_start: time, new_end: time, exist_start: time, exist_end: time) -> bool:
    """Return True when two time-of-day intervals overlap by even one minute.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValidationError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValidationError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and new_end > exist_start


def parse_hhmm(value: str | time, field: str = "time") -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str) or not HHMM_PATTERN.match(value):
        raise ValidationError(f"{field} must be HH:mm")
    return datetime.strptime(value, "%H:%M").time()


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def parse_iso_date(value: str | date, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as error:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)") from error


def add_minutes(value: time, minutes: int) -> time | None:
    """Shift a time of day forward; None when the result leaves the day."""
    total = _minute_of_day(value) + minutes
    if total >= 24 * 60:
        return None
    return time(total // 60, total % 60)


def _minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute
