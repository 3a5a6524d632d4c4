"""
Core business logic for deriving bookable slots.

Pure domain logic: no persistence, no clock, no I/O. Everything the
algorithm needs (schedule, occupancy, "now") is passed in, and the result
is recomputed on every call because occupancy changes between calls.
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional

import pendulum
from pendulum import DateTime

from .exceptions import InvalidDuration
from .models import TimeRange
from .schedule import (
    DaySchedule,
    ScheduleOverride,
    WeeklySchedule,
    validate_override,
    validate_schedule,
)


class SlotGenerator:
    """
    Enumerates candidate start times for a service on a given date.

    Algorithm:
    1. Resolve the day: a date override wins over the weekly schedule
    2. Walk each opening segment in steps (default: the service duration)
    3. Keep candidates whose whole interval fits inside the segment
    4. Drop candidates that start before "now"
    5. Drop candidates overlapping an occupied interval
    """

    def __init__(self, step_minutes: Optional[int] = None, timezone: str = "UTC"):
        if step_minutes is not None and step_minutes <= 0:
            raise InvalidDuration(f"Slot step must be positive, got {step_minutes}")
        self.step_minutes = step_minutes
        self.timezone = timezone

    def generate(
        self,
        schedule: Optional[WeeklySchedule],
        day: date,
        duration_minutes: int,
        occupied: Iterable[TimeRange] = (),
        *,
        now: Optional[DateTime] = None,
        override: Optional[ScheduleOverride] = None,
    ) -> List[DateTime]:
        """
        Return the free start times, ascending.

        Args:
            schedule: The provider's weekly schedule (``None`` means no hours)
            day: The calendar date to generate slots for
            duration_minutes: Length of the service being booked
            occupied: Intervals of existing non-cancelled bookings
            now: Candidates strictly before this instant are discarded
            override: Date-specific hours replacing the weekly day

        Raises:
            InvalidDuration: If the duration is not positive
            MalformedSchedule: If the schedule breaks its invariants
        """
        candidates = self.candidate_starts(
            schedule, day, duration_minutes, now=now, override=override
        )
        if not candidates:
            return []

        length = timedelta(minutes=duration_minutes)
        busy = sorted(occupied, key=lambda r: r.start)

        return [
            start for start in candidates
            if not _overlaps_any(start, start + length, busy)
        ]

    def candidate_starts(
        self,
        schedule: Optional[WeeklySchedule],
        day: date,
        duration_minutes: int,
        *,
        now: Optional[DateTime] = None,
        override: Optional[ScheduleOverride] = None,
    ) -> List[DateTime]:
        """
        Aligned, in-hours, not-past start times, ignoring occupancy.

        Used by the create guard to tell a misaligned or out-of-hours request
        apart from one that is merely taken.
        """
        if duration_minutes is None or duration_minutes <= 0:
            raise InvalidDuration(f"Service duration must be positive, got {duration_minutes}")

        day_schedule = self._resolve_day(schedule, day, override)
        if day_schedule is None or not day_schedule.is_bookable:
            return []

        length = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=self.step_minutes or duration_minutes)

        starts: List[DateTime] = []
        for segment in day_schedule.segments:
            offset = segment.start
            while offset + length <= segment.end:
                start = self._wall_clock(day, offset)
                if now is None or start >= now:
                    starts.append(start)
                offset += step

        return sorted(starts)

    def _wall_clock(self, day: date, offset: timedelta) -> DateTime:
        """Local wall-clock instant, so DST days keep their nominal opening hours."""
        seconds = int(offset.total_seconds())
        return pendulum.datetime(
            day.year, day.month, day.day,
            seconds // 3600, seconds % 3600 // 60, seconds % 60,
            tz=self.timezone,
        )

    def _resolve_day(
        self,
        schedule: Optional[WeeklySchedule],
        day: date,
        override: Optional[ScheduleOverride],
    ) -> Optional[DaySchedule]:
        if override is not None and override.day == day:
            validate_override(override).unwrap()
            return override.as_day_schedule()
        if schedule is None:
            return None
        validate_schedule(schedule).unwrap()
        return schedule.day_for(day.weekday())


def generate_slots(
    schedule: Optional[WeeklySchedule],
    day: date,
    duration_minutes: int,
    occupied: Iterable[TimeRange] = (),
    *,
    now: Optional[DateTime] = None,
    step_minutes: Optional[int] = None,
    override: Optional[ScheduleOverride] = None,
    timezone: str = "UTC",
) -> List[DateTime]:
    """Functional shortcut for a one-off ``SlotGenerator.generate`` call."""
    generator = SlotGenerator(step_minutes=step_minutes, timezone=timezone)
    return generator.generate(
        schedule, day, duration_minutes, occupied, now=now, override=override
    )


def _overlaps_any(start: DateTime, end: DateTime, busy: List[TimeRange]) -> bool:
    for interval in busy:
        if interval.start >= end:
            # Sorted by start: nothing later can overlap
            return False
        if start < interval.end and interval.start < end:
            return True
    return False
