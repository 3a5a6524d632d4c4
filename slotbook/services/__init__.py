"""
Service layer helpers that orchestrate collaborators and domain logic.
"""

from .booking_coordinator import BookingCoordinator
from .protocols import BookingStore, Clock, Notifier

__all__ = ["BookingCoordinator", "BookingStore", "Clock", "Notifier"]
