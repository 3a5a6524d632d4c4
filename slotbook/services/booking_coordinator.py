"""
Application service orchestrating booking operations.

The coordinator loads what the domain needs through the ``BookingStore``,
runs the pure slot generator and state machine, and delegates the
conflict-safe write to the store. Business-rule outcomes come back as
``Ok``/``Err`` values; infrastructure faults propagate unchanged.
"""

from __future__ import annotations

import functools
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import uuid4

import pendulum
from pendulum import DateTime

from ..config import EngineSettings
from ..domain.exceptions import (
    BookingError,
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidBookingStateError,
    InvalidDuration,
    NotAuthorizedError,
    SlotConflictError,
    SlotUnavailableError,
    StaleBookingStateError,
    ValidationError,
)
from ..domain.models import Booking, BookingStatus, Service
from ..domain.result import Err, Ok, Result
from ..domain.schedule import (
    ScheduleOverride,
    WeeklySchedule,
    validate_override,
    validate_schedule,
)
from ..domain.slot_generator import SlotGenerator
from ..domain.state_machine import BookingStateMachine
from .protocols import BookingStore, Clock, Notifier

logger = logging.getLogger(__name__)


def _rejections_as_err(action: str) -> Callable:
    """Turn ``BookingError`` raised inside an operation into an ``Err`` value."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs) -> Result:
            try:
                return func(self, *args, **kwargs)
            except BookingError as exc:
                logger.warning("%s rejected: %s", action, exc)
                return Err(exc)

        return wrapper

    return decorator


class BookingCoordinator:
    """
    Orchestrates create / reschedule / confirm / cancel / complete.

    All collaborators are passed in explicitly; nothing is looked up from a
    global container.
    """

    def __init__(
        self,
        store: BookingStore,
        notifier: Notifier,
        clock: Clock,
        settings: Optional[EngineSettings] = None,
        timezone: str = "UTC",
        state_machine: Optional[BookingStateMachine] = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._settings = settings or EngineSettings()
        self._timezone = timezone
        self._state_machine = state_machine or BookingStateMachine()
        self._generator = SlotGenerator(
            step_minutes=self._settings.slot_step_minutes,
            timezone=timezone,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @_rejections_as_err("List slots")
    def list_available_slots(self, service_id: str, day: date) -> Result[List[time]]:
        """Free start times for a service on a date, as local times of day."""
        logger.debug("Fetching available slots for service %s on %s", service_id, day)
        service = self._require_service(service_id)
        _, free = self._slots_for(service, day, self._clock.now())
        return Ok([slot.time() for slot in free])

    @_rejections_as_err("Get booking")
    def get_booking(self, booking_id: str, user_id: Optional[str] = None) -> Result[Booking]:
        """Load a booking; with ``user_id`` only its customer or provider may read it."""
        booking = self._require_booking(booking_id)
        if user_id is not None and user_id not in (booking.customer_id, booking.provider_id):
            raise NotAuthorizedError(user_id, "View booking")
        return Ok(booking)

    @_rejections_as_err("List customer bookings")
    def bookings_for_customer(
        self, customer_id: str, include_deleted: bool = False
    ) -> Result[List[Booking]]:
        """A customer's bookings, earliest first."""
        if not customer_id:
            raise ValidationError("customer_id is required")
        return Ok(self._store.list_bookings_for_customer(customer_id, include_deleted=include_deleted))

    @_rejections_as_err("List provider bookings")
    def bookings_for_provider(
        self,
        provider_id: str,
        customer_id: Optional[str] = None,
        include_deleted: bool = False,
    ) -> Result[List[Booking]]:
        """A provider's bookings, optionally narrowed to one customer, earliest first."""
        if not provider_id:
            raise ValidationError("provider_id is required")
        return Ok(
            self._store.list_bookings_for_provider(
                provider_id, customer_id=customer_id, include_deleted=include_deleted
            )
        )

    # ------------------------------------------------------------------
    # Booking lifecycle
    # ------------------------------------------------------------------

    @_rejections_as_err("Create booking")
    def create(
        self,
        service_id: str,
        customer_id: str,
        start: datetime,
        notes: Optional[str] = None,
    ) -> Result[Booking]:
        """
        Book ``start`` for the customer.

        The slot is re-derived from current occupancy here, and the store
        re-checks overlap atomically with the insert, so of two racing
        requests for one interval exactly one wins.
        """
        if not customer_id:
            raise ValidationError("customer_id is required")

        service = self._require_service(service_id)
        if customer_id == service.provider_id:
            raise NotAuthorizedError(customer_id, "Book own service")

        start = self._localize(start)
        now = self._clock.now()
        aligned, free = self._slots_for(service, start.date(), now)
        self._state_machine.guard_create(service, start, aligned, free, now)

        status = BookingStatus.CONFIRMED if self._settings.auto_confirm else BookingStatus.PENDING
        booking = Booking(
            id=str(uuid4()),
            service_id=service.id,
            provider_id=service.provider_id,
            customer_id=customer_id,
            start=start,
            end=start + timedelta(minutes=service.duration_minutes),
            status=status,
            notes=notes,
            created_on=now,
            last_modified_on=now,
        )

        try:
            stored = self._store.insert_booking(booking)
        except SlotConflictError as exc:
            logger.info("Slot %s for service %s was taken concurrently", start, service.id)
            raise SlotUnavailableError(service.id, start) from exc

        logger.info(
            "Booking %s created for service %s at %s (%s)",
            stored.id, service.id, stored.start, stored.status.value,
        )
        warnings = self._notify(
            service.provider_id,
            f"New booking request for {self._service_label(service)}: {stored.describe()}.",
        )
        return Ok(stored, warnings)

    @_rejections_as_err("Reschedule booking")
    def reschedule(
        self,
        booking_id: str,
        new_start: datetime,
        notes: Optional[str] = None,
    ) -> Result[Booking]:
        """Move a Pending or Confirmed booking to another free slot."""
        booking = self._require_booking(booking_id)
        self._state_machine.guard_reschedule(booking)

        new_start = self._localize(new_start)
        moved = new_start != booking.start
        if not moved and (notes is None or notes == booking.notes):
            return Ok(booking)

        service = self._require_service(booking.service_id)
        now = self._clock.now()
        if moved:
            aligned, free = self._slots_for(
                service, new_start.date(), now, exclude_booking_id=booking.id
            )
            self._state_machine.guard_create(service, new_start, aligned, free, now)

        try:
            stored = self._store.reschedule_booking(
                booking.id,
                booking.status,
                new_start,
                new_start + timedelta(minutes=service.duration_minutes),
                notes if notes is not None else booking.notes,
                now,
            )
        except SlotConflictError as exc:
            raise SlotUnavailableError(service.id, new_start) from exc
        except StaleBookingStateError as exc:
            raise self._stale_state(booking.id, "Update") from exc

        if not moved:
            logger.info("Booking %s notes updated", booking.id)
            return Ok(stored)

        logger.info("Booking %s moved from %s to %s", booking.id, booking.start, stored.start)
        warnings = self._notify(
            booking.provider_id,
            f"Booking for {self._service_label(service)} was rescheduled from "
            f"{booking.describe()} to {stored.describe()}.",
        )
        return Ok(stored, warnings)

    @_rejections_as_err("Confirm booking")
    def confirm(self, booking_id: str, actor_id: Optional[str] = None) -> Result[Booking]:
        """Provider accepts a Pending booking."""
        booking = self._require_booking(booking_id)
        if actor_id is not None and actor_id != booking.provider_id:
            raise NotAuthorizedError(actor_id, "Confirm")

        target = self._state_machine.guard_confirm(booking)
        stored = self._write_status(booking, target, "Confirm")

        logger.info("Booking %s confirmed", booking.id)
        warnings = self._notify(
            booking.customer_id,
            f"Your booking on {stored.describe()} has been confirmed.",
        )
        return Ok(stored, warnings)

    @_rejections_as_err("Cancel booking")
    def cancel(self, booking_id: str, actor_id: str) -> Result[Booking]:
        """
        Cancel on behalf of the customer or the provider and notify the
        other party. A failed notification never undoes the cancellation.
        """
        booking = self._require_booking(booking_id)
        if actor_id not in (booking.customer_id, booking.provider_id):
            raise NotAuthorizedError(actor_id, "Cancel")

        target = self._state_machine.guard_cancel(booking)
        if self._settings.soft_delete_cancelled:
            try:
                stored = self._store.soft_delete(
                    booking.id, self._clock.now(), cancel_from=booking.status
                )
            except StaleBookingStateError as exc:
                raise self._stale_state(booking.id, "Cancel") from exc
        else:
            stored = self._write_status(booking, target, "Cancel")

        by_provider = actor_id == booking.provider_id
        counter_party = booking.customer_id if by_provider else booking.provider_id
        who = "the provider" if by_provider else "the customer"
        logger.info("Booking %s cancelled by %s", booking.id, who)

        warnings = self._notify(
            counter_party,
            f"The booking on {stored.describe()} was cancelled by {who}.",
        )
        return Ok(stored, warnings)

    @_rejections_as_err("Complete booking")
    def complete(self, booking_id: str) -> Result[Booking]:
        """Confirmed -> Completed once the booking has ended. Idempotent."""
        booking = self._require_booking(booking_id)
        target = self._state_machine.guard_complete(booking, self._clock.now())
        if target is None:
            return Ok(booking)

        try:
            stored = self._store.update_booking_status(
                booking.id, booking.status, target, self._clock.now()
            )
        except StaleBookingStateError as exc:
            current = self._require_booking(booking.id)
            if current.status == BookingStatus.COMPLETED:
                return Ok(current)
            raise InvalidBookingStateError(booking.id, current.status.label, "Complete") from exc

        logger.info("Booking %s completed", booking.id)
        return Ok(stored)

    def complete_due(self) -> Result[List[Booking]]:
        """
        Sweep: complete every Confirmed booking whose end has passed.

        Safe to run next to create/cancel: each booking is re-checked
        through the store's optimistic status update.
        """
        now = self._clock.now()
        completed: List[Booking] = []
        warnings: List[str] = []

        for booking in self._store.list_due_for_completion(now):
            result = self.complete(booking.id)
            if result.is_ok:
                completed.append(result.value)
            else:
                warnings.append(str(result.error))

        if completed:
            logger.info("Completion sweep closed %d booking(s)", len(completed))
        return Ok(completed, tuple(warnings))

    # ------------------------------------------------------------------
    # Services and schedules
    # ------------------------------------------------------------------

    @_rejections_as_err("Register service")
    def register_service(self, service: Service) -> Result[Service]:
        if service.duration_minutes <= 0:
            raise InvalidDuration(
                f"Service duration must be positive, got {service.duration_minutes}"
            )
        if self._store.get_service(service.id) is not None:
            raise DuplicateEntityError("Service", service.id)
        return Ok(self._store.add_service(service))

    @_rejections_as_err("Get schedule")
    def get_weekly_schedule(self, provider_id: str) -> Result[WeeklySchedule]:
        """The provider's schedule, or seven closed days when none is stored."""
        schedule = self._store.get_schedule(provider_id)
        return Ok(schedule if schedule is not None else WeeklySchedule.closed_week())

    @_rejections_as_err("Update schedule")
    def update_weekly_schedule(
        self, provider_id: str, schedule: WeeklySchedule
    ) -> Result[WeeklySchedule]:
        validate_schedule(schedule).unwrap()
        self._store.save_schedule(provider_id, schedule)
        logger.info("Weekly schedule replaced for provider %s", provider_id)
        return Ok(schedule)

    @_rejections_as_err("Add override")
    def add_override(
        self, provider_id: str, override: ScheduleOverride
    ) -> Result[ScheduleOverride]:
        validate_override(override).unwrap()
        self._store.save_override(provider_id, override)
        logger.info("Schedule override for %s stored for provider %s", override.day, provider_id)
        return Ok(override)

    @_rejections_as_err("Remove override")
    def remove_override(self, provider_id: str, day: date) -> Result[date]:
        if not self._store.delete_override(provider_id, day):
            raise EntityNotFoundError("ScheduleOverride", f"{provider_id}/{day}")
        return Ok(day)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _slots_for(
        self,
        service: Service,
        day: date,
        now: DateTime,
        exclude_booking_id: Optional[str] = None,
    ) -> Tuple[Sequence[DateTime], Sequence[DateTime]]:
        """Return (aligned candidates, free candidates) for the service on ``day``."""
        schedule = self._store.get_schedule(service.provider_id)
        override = self._store.get_override(service.provider_id, day)
        aligned = self._generator.candidate_starts(
            schedule, day, service.duration_minutes, now=now, override=override
        )
        if not aligned:
            return aligned, []

        occupied = self._store.get_occupied_intervals(
            service.provider_id, day, exclude_booking_id=exclude_booking_id
        )
        free = self._generator.generate(
            schedule, day, service.duration_minutes, occupied, now=now, override=override
        )
        return aligned, free

    def _write_status(self, booking: Booking, target: BookingStatus, action: str) -> Booking:
        try:
            return self._store.update_booking_status(
                booking.id, booking.status, target, self._clock.now()
            )
        except StaleBookingStateError as exc:
            raise self._stale_state(booking.id, action) from exc

    def _stale_state(self, booking_id: str, action: str) -> InvalidBookingStateError:
        current = self._require_booking(booking_id)
        return InvalidBookingStateError(booking_id, current.status.label, action)

    def _require_service(self, service_id: str) -> Service:
        service = self._store.get_service(service_id)
        if service is None:
            raise EntityNotFoundError("Service", service_id)
        return service

    def _require_booking(self, booking_id: str) -> Booking:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            raise EntityNotFoundError("Booking", booking_id)
        return booking

    def _localize(self, value: datetime) -> DateTime:
        """Interpret naive datetimes in the engine timezone."""
        return pendulum.instance(value, tz=self._timezone).in_timezone(self._timezone)

    def _notify(self, user_id: str, message: str) -> Tuple[str, ...]:
        try:
            self._notifier.notify(user_id, message)
        except Exception as exc:  # delivery problems never fail the booking operation
            logger.warning("Notification to %s failed: %s", user_id, exc)
            return (f"Notification to '{user_id}' failed: {exc}",)
        return ()

    @staticmethod
    def _service_label(service: Service) -> str:
        return service.name or f"service {service.id}"
