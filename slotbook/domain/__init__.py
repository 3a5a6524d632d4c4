"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import Booking, BookingStatus, OccupiedInterval, Service, TimeRange
from .result import Err, Ok, Result
from .schedule import (
    DaySchedule,
    ScheduleOverride,
    TimeSegment,
    WeeklySchedule,
    validate_override,
    validate_schedule,
)
from .slot_generator import SlotGenerator, generate_slots
from .state_machine import BookingStateMachine

__all__ = [
    "Booking",
    "BookingStateMachine",
    "BookingStatus",
    "DaySchedule",
    "Err",
    "OccupiedInterval",
    "Ok",
    "Result",
    "ScheduleOverride",
    "Service",
    "SlotGenerator",
    "TimeRange",
    "TimeSegment",
    "WeeklySchedule",
    "generate_slots",
    "validate_override",
    "validate_schedule",
]
