"""
Domain-specific exception hierarchy for the booking engine.

Pure domain code raises these. The booking coordinator catches them at its
boundary and hands them back as ``Err`` values, so callers see business-rule
outcomes as data rather than as faults.
"""

from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """Base class for all expected, caller-recoverable booking outcomes."""


class ValidationError(BookingError):
    """Raised when caller input (schedule, duration, ids) is malformed."""


class MalformedSchedule(ValidationError):
    """Raised when a weekly schedule or override breaks its invariants."""


class InvalidDuration(ValidationError):
    """Raised when a service duration or slot step is not positive."""


class ServiceNotActiveError(BookingError):
    """Raised when a booking is requested for a deactivated service."""

    def __init__(self, service_id: Any, service_name: str = ""):
        label = f"'{service_name}' (ID: {service_id})" if service_name else f"'{service_id}'"
        super().__init__(f"Service {label} is currently not active and cannot be booked.")
        self.service_id = service_id
        self.service_name = service_name


class BookingTimeError(BookingError):
    """
    Raised when a requested time is outside service hours, not aligned to a
    slot, in the past, or when an operation is attempted too early
    (completing a booking that has not ended yet).
    """

    def __init__(self, message: str, booking_id: str | None = None, booking_time: Any = None):
        super().__init__(message)
        self.booking_id = booking_id
        self.booking_time = booking_time


class SlotUnavailableError(BookingError):
    """Raised when the requested interval is no longer free."""

    def __init__(self, service_id: Any, slot_start: Any):
        super().__init__(
            f"The time slot starting at '{slot_start}' for Service ID '{service_id}' is not available."
        )
        self.service_id = service_id
        self.slot_start = slot_start


class InvalidBookingStateError(BookingError):
    """Raised when an action is not allowed from the booking's current status."""

    def __init__(self, booking_id: str, current_state: str, action: str):
        super().__init__(
            f"Cannot perform action '{action}' on Booking '{booking_id}' "
            f"because it is in state '{current_state}'."
        )
        self.booking_id = booking_id
        self.current_state = current_state
        self.action = action


class EntityNotFoundError(BookingError):
    """Raised when a service, booking or provider id is unknown."""

    def __init__(self, entity_name: str, entity_key: Any):
        super().__init__(f"Entity '{entity_name}' with key '{entity_key}' was not found.")
        self.entity_name = entity_name
        self.entity_key = entity_key


class DuplicateEntityError(BookingError):
    """Raised when an entity would violate a uniqueness rule (services, overrides)."""

    def __init__(self, entity_name: str, duplicate_value: Any):
        super().__init__(f"A {entity_name} with the value '{duplicate_value}' already exists.")
        self.entity_name = entity_name
        self.duplicate_value = duplicate_value


class NotAuthorizedError(BookingError):
    """Raised when the acting user is not a party allowed to perform the action."""

    def __init__(self, user_id: str, action: str):
        super().__init__(f"User '{user_id}' is not authorized to perform action '{action}'.")
        self.user_id = user_id
        self.action = action


class StoreConflictError(Exception):
    """Base class for conflict signals raised by booking stores."""


class SlotConflictError(StoreConflictError):
    """The store refused a write because the interval overlaps an active booking."""


class StaleBookingStateError(StoreConflictError):
    """The stored status no longer matches the status the writer expected."""

    def __init__(self, booking_id: str, expected: Any, actual: Any):
        super().__init__(
            f"Booking '{booking_id}' expected status '{expected}' but found '{actual}'."
        )
        self.booking_id = booking_id
        self.expected = expected
        self.actual = actual
