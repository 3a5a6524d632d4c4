"""
Booking status transitions and the guards that gate them.

Everything here is a pure function of its arguments: guards either return
the next status or raise a ``BookingError`` subclass, and never touch
storage.
"""

from typing import Dict, FrozenSet, Optional, Sequence

from pendulum import DateTime

from .exceptions import (
    BookingTimeError,
    InvalidBookingStateError,
    ServiceNotActiveError,
    SlotUnavailableError,
)
from .models import Booking, BookingStatus, Service

TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

RESCHEDULABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class BookingStateMachine:
    """
    Encodes the booking lifecycle:

        Pending -> Confirmed -> Completed
        Pending | Confirmed -> Cancelled

    Cancelled and Completed are terminal.
    """

    def next_states(self, status: BookingStatus) -> FrozenSet[BookingStatus]:
        return TRANSITIONS[status]

    def is_terminal(self, status: BookingStatus) -> bool:
        return not TRANSITIONS[status]

    def transition(
        self,
        booking_id: str,
        current: BookingStatus,
        target: BookingStatus,
        action: Optional[str] = None,
    ) -> BookingStatus:
        """Return ``target`` if the move is allowed, raise otherwise."""
        if target not in TRANSITIONS[current]:
            raise InvalidBookingStateError(
                booking_id, current.label, action or target.label
            )
        return target

    def guard_slot(
        self,
        service: Service,
        requested_start: DateTime,
        aligned_starts: Sequence[DateTime],
        free_starts: Sequence[DateTime],
        now: DateTime,
    ) -> None:
        """
        Check a requested start against the slots derived at commit time.

        ``aligned_starts`` ignore occupancy, ``free_starts`` respect it.
        """
        if requested_start < now:
            raise BookingTimeError(
                f"Requested start {requested_start} is in the past.",
                booking_time=requested_start,
            )
        if requested_start not in aligned_starts:
            raise BookingTimeError(
                f"Requested start {requested_start} does not match a slot within the "
                f"service hours of service '{service.id}'.",
                booking_time=requested_start,
            )
        if requested_start not in free_starts:
            raise SlotUnavailableError(service.id, requested_start)

    def guard_create(
        self,
        service: Service,
        requested_start: DateTime,
        aligned_starts: Sequence[DateTime],
        free_starts: Sequence[DateTime],
        now: DateTime,
    ) -> None:
        if not service.is_active:
            raise ServiceNotActiveError(service.id, service.name)
        self.guard_slot(service, requested_start, aligned_starts, free_starts, now)

    def guard_reschedule(self, booking: Booking) -> None:
        """Only bookings still in play may move."""
        if booking.status not in RESCHEDULABLE:
            raise InvalidBookingStateError(booking.id, booking.status.label, "Update")

    def guard_confirm(self, booking: Booking) -> BookingStatus:
        return self.transition(booking.id, booking.status, BookingStatus.CONFIRMED, "Confirm")

    def guard_cancel(self, booking: Booking) -> BookingStatus:
        return self.transition(booking.id, booking.status, BookingStatus.CANCELLED, "Cancel")

    def guard_complete(self, booking: Booking, now: DateTime) -> Optional[BookingStatus]:
        """
        Return ``COMPLETED`` if the booking should move, ``None`` if it
        already has (completion is idempotent).
        """
        if booking.status == BookingStatus.COMPLETED:
            return None
        target = self.transition(booking.id, booking.status, BookingStatus.COMPLETED, "Complete")
        if booking.end > now:
            raise BookingTimeError(
                f"Booking '{booking.id}' cannot be completed before it ends at {booking.end}.",
                booking_id=booking.id,
                booking_time=booking.end,
            )
        return target
