"""
In-memory booking store.

Keeps everything in dictionaries guarded by one lock, so the
"re-check overlap + write" sequence is atomic within a single process.
Suitable for tests and for embedding the engine without a database.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    SlotConflictError,
    StaleBookingStateError,
)
from ..domain.models import Booking, BookingStatus, OccupiedInterval, Service, TimeRange
from ..domain.schedule import ScheduleOverride, WeeklySchedule


class MemoryBookingStore:
    def __init__(self, timezone: str = "UTC") -> None:
        self.timezone = timezone
        self._lock = threading.RLock()
        self._services: Dict[str, Service] = {}
        self._schedules: Dict[str, WeeklySchedule] = {}
        self._overrides: Dict[Tuple[str, date], ScheduleOverride] = {}
        self._bookings: Dict[str, Booking] = {}

    # Services and schedules

    def get_service(self, service_id: str) -> Optional[Service]:
        return self._services.get(service_id)

    def add_service(self, service: Service) -> Service:
        with self._lock:
            if service.id in self._services:
                raise DuplicateEntityError("Service", service.id)
            self._services[service.id] = service
        return service

    def get_schedule(self, provider_id: str) -> Optional[WeeklySchedule]:
        return self._schedules.get(provider_id)

    def save_schedule(self, provider_id: str, schedule: WeeklySchedule) -> None:
        with self._lock:
            self._schedules[provider_id] = schedule

    def get_override(self, provider_id: str, day: date) -> Optional[ScheduleOverride]:
        return self._overrides.get((provider_id, _as_date(day)))

    def save_override(self, provider_id: str, override: ScheduleOverride) -> None:
        with self._lock:
            self._overrides[(provider_id, _as_date(override.day))] = override

    def delete_override(self, provider_id: str, day: date) -> bool:
        with self._lock:
            return self._overrides.pop((provider_id, _as_date(day)), None) is not None

    # Bookings

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    def get_occupied_intervals(
        self,
        provider_id: str,
        day: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[OccupiedInterval]:
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        window = TimeRange(start=day_start, end=day_start.add(days=1))
        with self._lock:
            return sorted(
                (
                    booking.as_occupied()
                    for booking in self._active_for(provider_id, exclude_booking_id)
                    if booking.time_range.overlaps(window)
                ),
                key=lambda interval: interval.start,
            )

    def insert_booking(self, booking: Booking) -> Booking:
        with self._lock:
            self._raise_on_overlap(booking.provider_id, booking.time_range, exclude=None)
            self._bookings[booking.id] = booking
        return booking

    def reschedule_booking(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_start: DateTime,
        new_end: DateTime,
        notes: Optional[str],
        at: DateTime,
    ) -> Booking:
        with self._lock:
            current = self._require(booking_id)
            if current.status != expected_status:
                raise StaleBookingStateError(booking_id, expected_status, current.status)
            self._raise_on_overlap(
                current.provider_id, TimeRange(start=new_start, end=new_end), exclude=booking_id
            )
            updated = replace(
                current, start=new_start, end=new_end, notes=notes, last_modified_on=at
            )
            self._bookings[booking_id] = updated
        return updated

    def update_booking_status(
        self,
        booking_id: str,
        from_status: BookingStatus,
        to_status: BookingStatus,
        at: DateTime,
    ) -> Booking:
        with self._lock:
            current = self._require(booking_id)
            if current.status != from_status:
                raise StaleBookingStateError(booking_id, from_status, current.status)
            updated = current.with_status(to_status, at)
            self._bookings[booking_id] = updated
        return updated

    def soft_delete(
        self,
        booking_id: str,
        at: DateTime,
        cancel_from: Optional[BookingStatus] = None,
    ) -> Booking:
        with self._lock:
            current = self._require(booking_id)
            status = current.status
            if cancel_from is not None:
                if current.status != cancel_from:
                    raise StaleBookingStateError(booking_id, cancel_from, current.status)
                status = BookingStatus.CANCELLED
            updated = replace(
                current, status=status, is_deleted=True, deleted_on=at, last_modified_on=at
            )
            self._bookings[booking_id] = updated
        return updated

    def list_due_for_completion(self, now: DateTime) -> List[Booking]:
        with self._lock:
            return sorted(
                (
                    booking for booking in self._bookings.values()
                    if booking.status == BookingStatus.CONFIRMED and booking.end <= now
                ),
                key=lambda booking: booking.end,
            )

    def list_bookings_for_customer(
        self, customer_id: str, include_deleted: bool = False
    ) -> List[Booking]:
        return self._select(
            lambda b: b.customer_id == customer_id, include_deleted
        )

    def list_bookings_for_provider(
        self,
        provider_id: str,
        customer_id: Optional[str] = None,
        include_deleted: bool = False,
    ) -> List[Booking]:
        return self._select(
            lambda b: b.provider_id == provider_id
            and (customer_id is None or b.customer_id == customer_id),
            include_deleted,
        )

    def all_bookings(self) -> List[Booking]:
        with self._lock:
            return list(self._bookings.values())

    def _select(self, predicate, include_deleted: bool) -> List[Booking]:
        with self._lock:
            return sorted(
                (
                    booking for booking in self._bookings.values()
                    if predicate(booking) and (include_deleted or not booking.is_deleted)
                ),
                key=lambda booking: booking.start,
            )

    def _active_for(self, provider_id: str, exclude_booking_id: Optional[str]):
        for booking in self._bookings.values():
            if booking.provider_id != provider_id or booking.id == exclude_booking_id:
                continue
            if booking.status.is_active:
                yield booking

    def _raise_on_overlap(
        self, provider_id: str, interval: TimeRange, exclude: Optional[str]
    ) -> None:
        for booking in self._active_for(provider_id, exclude):
            if booking.time_range.overlaps(interval):
                raise SlotConflictError(
                    f"Interval {interval} overlaps booking {booking.id} of provider {provider_id}"
                )

    def _require(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise EntityNotFoundError("Booking", booking_id)
        return booking


def _as_date(day: date) -> date:
    return date(day.year, day.month, day.day)
