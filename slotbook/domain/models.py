"""
Domain models for services, bookings and occupied time ranges.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from pendulum import DateTime


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range [start, end).

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class OccupiedInterval(TimeRange):
    """The [start, end) projection of a non-cancelled booking."""
    booking_id: str = ""


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def is_active(self) -> bool:
        """Active bookings occupy their interval."""
        return self in (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass(frozen=True)
class Service:
    """A bookable service owned by a provider."""
    id: str
    provider_id: str
    duration_minutes: int
    name: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Booking:
    """
    A customer's reservation of a service interval.

    Instances are immutable; stores hand back updated copies.
    """
    id: str
    service_id: str
    provider_id: str
    customer_id: str
    start: DateTime
    end: DateTime
    status: BookingStatus
    created_on: DateTime
    last_modified_on: DateTime
    notes: Optional[str] = None
    is_deleted: bool = False
    deleted_on: Optional[DateTime] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def as_occupied(self) -> OccupiedInterval:
        return OccupiedInterval(start=self.start, end=self.end, booking_id=self.id)

    def with_status(self, status: BookingStatus, at: DateTime) -> "Booking":
        return replace(self, status=status, last_modified_on=at)

    def describe(self) -> str:
        """Short human readable summary used in notifications and the CLI."""
        return (
            f"{self.start.format('dddd, YYYY-MM-DD')} | "
            f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        )
