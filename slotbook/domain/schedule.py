"""
Weekly availability model for providers.

A ``WeeklySchedule`` maps each weekday (0=Monday, 6=Sunday) to a
``DaySchedule``. Segment times are offsets from local midnight so that the
closing boundary of a day can be expressed as 24:00.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .exceptions import MalformedSchedule
from .result import Err, Ok, Result

DAYS_IN_WEEK = 7
END_OF_DAY = timedelta(hours=24)

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def parse_time_of_day(value: Any) -> timedelta:
    """
    Parse ``"HH:MM"`` (``"24:00"`` allowed) or a ``datetime.time`` into an
    offset from midnight.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, time):
        return timedelta(hours=value.hour, minutes=value.minute, seconds=value.second)
    if isinstance(value, str):
        try:
            hours, minutes = value.strip().split(":")
            return timedelta(hours=int(hours), minutes=int(minutes))
        except ValueError as exc:
            raise MalformedSchedule(f"Invalid time of day '{value}', expected HH:MM") from exc
    raise MalformedSchedule(f"Invalid time of day {value!r}")


def format_time_of_day(offset: timedelta) -> str:
    total_minutes = int(offset.total_seconds() // 60)
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


@dataclass(frozen=True)
class TimeSegment:
    """An opening window within a day, [start, end) as offsets from midnight."""
    start: timedelta
    end: timedelta

    @classmethod
    def of(cls, start: Any, end: Any) -> "TimeSegment":
        return cls(start=parse_time_of_day(start), end=parse_time_of_day(end))

    def __str__(self) -> str:
        return f"{format_time_of_day(self.start)}-{format_time_of_day(self.end)}"


@dataclass(frozen=True)
class DaySchedule:
    closed: bool = True
    segments: Tuple[TimeSegment, ...] = ()

    @classmethod
    def open(cls, *segments: TimeSegment) -> "DaySchedule":
        return cls(closed=False, segments=tuple(segments))

    @property
    def is_bookable(self) -> bool:
        return not self.closed and bool(self.segments)


@dataclass(frozen=True)
class WeeklySchedule:
    """Immutable weekly availability. Missing weekdays count as closed."""
    days: Mapping[int, DaySchedule] = field(default_factory=dict)

    @classmethod
    def closed_week(cls) -> "WeeklySchedule":
        return cls(days={weekday: DaySchedule() for weekday in range(DAYS_IN_WEEK)})

    def day_for(self, weekday: int) -> Optional[DaySchedule]:
        return self.days.get(weekday)

    def to_dict(self) -> Dict[str, Any]:
        return {
            WEEKDAY_NAMES[weekday]: _day_to_dict(self.days[weekday])
            for weekday in sorted(self.days)
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WeeklySchedule":
        """
        Build a schedule from a mapping keyed by weekday name or number.

        Example:
            {"monday": {"closed": False, "segments": [["09:00", "12:00"]]}}
        """
        days: Dict[int, DaySchedule] = {}
        for key, value in data.items():
            weekday = _weekday_index(key)
            days[weekday] = _day_from_dict(value or {})
        for weekday in range(DAYS_IN_WEEK):
            days.setdefault(weekday, DaySchedule())
        return cls(days=days)


@dataclass(frozen=True)
class ScheduleOverride:
    """Replaces the weekly schedule for a single date."""
    day: date
    is_day_off: bool = False
    segments: Tuple[TimeSegment, ...] = ()

    def as_day_schedule(self) -> DaySchedule:
        if self.is_day_off or not self.segments:
            return DaySchedule()
        return DaySchedule(closed=False, segments=self.segments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "is_day_off": self.is_day_off,
            "segments": [_segment_to_list(s) for s in self.segments],
        }


def validate_schedule(schedule: WeeklySchedule) -> Result[None]:
    """Check the weekly schedule invariants without raising."""
    try:
        for weekday, day in schedule.days.items():
            if weekday not in range(DAYS_IN_WEEK):
                raise MalformedSchedule(f"Unknown weekday key {weekday!r}")
            _check_day(WEEKDAY_NAMES[weekday], day)
    except MalformedSchedule as exc:
        return Err(exc)
    return Ok(None)


def validate_override(override: ScheduleOverride) -> Result[None]:
    try:
        if override.is_day_off and override.segments:
            raise MalformedSchedule(f"{override.day}: a day off cannot have segments")
        _check_segments(override.day.isoformat(), override.segments)
    except MalformedSchedule as exc:
        return Err(exc)
    return Ok(None)


def _check_day(label: str, day: DaySchedule) -> None:
    if day.closed and day.segments:
        raise MalformedSchedule(f"{label}: a closed day cannot have segments")
    _check_segments(label, day.segments)


def _check_segments(label: str, segments: Iterable[TimeSegment]) -> None:
    previous: Optional[TimeSegment] = None
    for segment in segments:
        if segment.start < timedelta(0) or segment.end > END_OF_DAY:
            raise MalformedSchedule(f"{label}: segment {segment} lies outside 00:00-24:00")
        if segment.start >= segment.end:
            raise MalformedSchedule(f"{label}: segment {segment} must start before it ends")
        if previous is not None and segment.start < previous.end:
            raise MalformedSchedule(
                f"{label}: segment {segment} overlaps or precedes {previous}"
            )
        previous = segment


def _weekday_index(key: Any) -> int:
    if isinstance(key, int):
        return key
    name = str(key).strip().lower()
    if name.isdigit():
        return int(name)
    try:
        return WEEKDAY_NAMES.index(name)
    except ValueError as exc:
        raise MalformedSchedule(f"Unknown weekday '{key}'") from exc


def _segment_to_list(segment: TimeSegment) -> list:
    return [format_time_of_day(segment.start), format_time_of_day(segment.end)]


def _day_to_dict(day: DaySchedule) -> Dict[str, Any]:
    return {"closed": day.closed, "segments": [_segment_to_list(s) for s in day.segments]}


def _day_from_dict(data: Mapping[str, Any]) -> DaySchedule:
    segments = tuple(TimeSegment.of(start, end) for start, end in data.get("segments", []))
    closed = bool(data.get("closed", not segments))
    return DaySchedule(closed=closed, segments=segments)


def override_from_dict(data: Mapping[str, Any]) -> ScheduleOverride:
    raw_day = data["date"]
    day = raw_day if isinstance(raw_day, date) else date.fromisoformat(str(raw_day))
    segments = tuple(TimeSegment.of(start, end) for start, end in data.get("segments", []))
    return ScheduleOverride(day=day, is_day_off=bool(data.get("is_day_off", False)), segments=segments)
