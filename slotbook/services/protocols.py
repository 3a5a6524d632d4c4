"""
Collaborator protocols consumed by the booking coordinator.

Dependency inversion toward these protocols lets the coordinator run
against the SQL store in production and the in-memory store or simple
stubs in tests.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol

from pendulum import DateTime

from ..domain.models import Booking, BookingStatus, OccupiedInterval, Service
from ..domain.schedule import ScheduleOverride, WeeklySchedule


class BookingStore(Protocol):
    """
    Persistence boundary for services, schedules and bookings.

    ``insert_booking`` and ``reschedule_booking`` must re-check overlap and
    write as one atomic unit, raising ``SlotConflictError`` when another
    active booking of the provider already holds part of the interval.
    ``update_booking_status`` is optimistic and raises
    ``StaleBookingStateError`` when the stored status is not ``from_status``.
    ``soft_delete`` with ``cancel_from`` cancels and flags the booking in one
    atomic write, with the same optimistic check.
    """

    def get_service(self, service_id: str) -> Optional[Service]:
        ...

    def add_service(self, service: Service) -> Service:
        ...

    def get_schedule(self, provider_id: str) -> Optional[WeeklySchedule]:
        ...

    def save_schedule(self, provider_id: str, schedule: WeeklySchedule) -> None:
        ...

    def get_override(self, provider_id: str, day: date) -> Optional[ScheduleOverride]:
        ...

    def save_override(self, provider_id: str, override: ScheduleOverride) -> None:
        ...

    def delete_override(self, provider_id: str, day: date) -> bool:
        ...

    def get_occupied_intervals(
        self,
        provider_id: str,
        day: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[OccupiedInterval]:
        ...

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    def insert_booking(self, booking: Booking) -> Booking:
        ...

    def reschedule_booking(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_start: DateTime,
        new_end: DateTime,
        notes: Optional[str],
        at: DateTime,
    ) -> Booking:
        ...

    def update_booking_status(
        self,
        booking_id: str,
        from_status: BookingStatus,
        to_status: BookingStatus,
        at: DateTime,
    ) -> Booking:
        ...

    def soft_delete(
        self,
        booking_id: str,
        at: DateTime,
        cancel_from: Optional[BookingStatus] = None,
    ) -> Booking:
        ...

    def list_due_for_completion(self, now: DateTime) -> List[Booking]:
        ...

    def list_bookings_for_customer(
        self, customer_id: str, include_deleted: bool = False
    ) -> List[Booking]:
        ...

    def list_bookings_for_provider(
        self,
        provider_id: str,
        customer_id: Optional[str] = None,
        include_deleted: bool = False,
    ) -> List[Booking]:
        ...


class Notifier(Protocol):
    """Fire-and-forget user notifications."""

    def notify(self, user_id: str, message: str) -> None:
        ...


class Clock(Protocol):
    def now(self) -> DateTime:
        ...
