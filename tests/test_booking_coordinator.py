"""
Tests for the BookingCoordinator orchestration layer.
"""

import threading
from datetime import date, time
from typing import List

import pendulum
import pytest

from slotbook.adapters.clock import FixedClock
from slotbook.adapters.memory_store import MemoryBookingStore
from slotbook.adapters.notifiers import LoggingNotifier
from slotbook.config import EngineSettings
from slotbook.domain.exceptions import (
    BookingTimeError,
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidBookingStateError,
    InvalidDuration,
    MalformedSchedule,
    NotAuthorizedError,
    ServiceNotActiveError,
    SlotUnavailableError,
    StaleBookingStateError,
    ValidationError,
)
from slotbook.domain.models import BookingStatus, Service
from slotbook.domain.schedule import DaySchedule, ScheduleOverride, TimeSegment, WeeklySchedule
from slotbook.services.booking_coordinator import BookingCoordinator

TZ = "Europe/Berlin"
MONDAY = date(2024, 11, 25)
PROVIDER = "provider-1"
CUSTOMER = "customer-1"


class FailingNotifier:
    """Notifier whose delivery always fails."""

    def __init__(self):
        self.attempts: List[str] = []

    def notify(self, user_id: str, message: str) -> None:
        self.attempts.append(user_id)
        raise RuntimeError("gateway down")


class StaleOccupancyStore(MemoryBookingStore):
    """Reports no occupancy, as if another writer committed after the read."""

    def get_occupied_intervals(self, provider_id, day, exclude_booking_id=None):
        return []


class ConfirmBeforeCancelStore(MemoryBookingStore):
    """Confirms the booking just before the soft delete lands."""

    def soft_delete(self, booking_id, at, cancel_from=None):
        self.update_booking_status(booking_id, BookingStatus.PENDING, BookingStatus.CONFIRMED, at)
        return super().soft_delete(booking_id, at, cancel_from=cancel_from)


def _at(value: str):
    return pendulum.parse(value, tz=TZ)


def _build(
    store=None,
    notifier=None,
    settings=None,
    now="2024-11-24 12:00",
    active=True,
    segments=(("09:00", "12:00"),),
):
    store = store or MemoryBookingStore(timezone=TZ)
    notifier = notifier or LoggingNotifier()
    clock = FixedClock(_at(now))
    coordinator = BookingCoordinator(
        store=store,
        notifier=notifier,
        clock=clock,
        settings=settings,
        timezone=TZ,
    )
    coordinator.register_service(
        Service(id="haircut", provider_id=PROVIDER, duration_minutes=60, name="Haircut", is_active=active)
    ).unwrap()
    coordinator.update_weekly_schedule(
        PROVIDER,
        WeeklySchedule(days={0: DaySchedule.open(*(TimeSegment.of(s, e) for s, e in segments))}),
    ).unwrap()
    return coordinator, store, notifier, clock


class TestAvailableSlots:
    """Tests for listing free start times."""

    def test_empty_day(self):
        """Test that an empty Monday offers every hourly start."""
        coordinator, *_ = _build()

        result = coordinator.list_available_slots("haircut", MONDAY)

        assert result.is_ok
        assert result.value == [time(9), time(10), time(11)]

    def test_booked_slot_is_excluded(self):
        """Test that a confirmed booking removes its slot."""
        coordinator, store, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 10:00")).unwrap()
        coordinator.confirm(booking.id, PROVIDER).unwrap()

        result = coordinator.list_available_slots("haircut", MONDAY)

        assert result.value == [time(9), time(11)]

    def test_cancelled_booking_frees_slot(self):
        """Test that cancelling frees the slot again."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 10:00")).unwrap()
        coordinator.cancel(booking.id, CUSTOMER).unwrap()

        result = coordinator.list_available_slots("haircut", MONDAY)

        assert result.value == [time(9), time(10), time(11)]

    def test_override_day_off(self):
        """Test that a day-off override closes the day until removed."""
        coordinator, *_ = _build()
        coordinator.add_override(PROVIDER, ScheduleOverride(day=MONDAY, is_day_off=True)).unwrap()

        assert coordinator.list_available_slots("haircut", MONDAY).value == []

        coordinator.remove_override(PROVIDER, MONDAY).unwrap()
        assert len(coordinator.list_available_slots("haircut", MONDAY).value) == 3

    def test_unknown_service(self):
        """Test that an unknown service is not found."""
        coordinator, *_ = _build()

        result = coordinator.list_available_slots("massage", MONDAY)

        assert not result.is_ok
        assert isinstance(result.error, EntityNotFoundError)

    def test_past_slots_on_current_day(self):
        """Test that starts already passed today are dropped."""
        coordinator, *_ = _build(now="2024-11-25 09:30")

        assert coordinator.list_available_slots("haircut", MONDAY).value == [time(10), time(11)]


class TestCreate:
    """Tests for booking creation."""

    def test_create_pending_and_notify_provider(self):
        """Test that a new booking is pending and the provider is told."""
        coordinator, store, notifier, _ = _build()

        result = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00"), notes="Short please")

        assert result.is_ok
        booking = result.value
        assert booking.status == BookingStatus.PENDING
        assert booking.end == _at("2024-11-25 10:00")
        assert booking.provider_id == PROVIDER
        assert booking.notes == "Short please"
        assert store.get_booking(booking.id) == booking
        assert notifier.sent[0][0] == PROVIDER
        assert "Haircut" in notifier.sent[0][1]

    def test_auto_confirm(self):
        """Test that auto-confirm books straight to Confirmed."""
        coordinator, *_ = _build(settings=EngineSettings(auto_confirm=True))

        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        assert booking.status == BookingStatus.CONFIRMED

    def test_naive_start_is_read_in_engine_timezone(self):
        """Test that a naive start is read in the engine timezone."""
        coordinator, *_ = _build()

        booking = coordinator.create(
            "haircut", CUSTOMER, pendulum.naive(2024, 11, 25, 9, 0)
        ).unwrap()

        assert booking.start == _at("2024-11-25 09:00")

    def test_misaligned_start(self):
        """Test that a mid-slot start is rejected and nothing is stored."""
        coordinator, store, *_ = _build()

        result = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:30"))

        assert not result.is_ok
        assert isinstance(result.error, BookingTimeError)
        assert store.all_bookings() == []

    def test_outside_service_hours(self):
        """Test that a start outside the schedule is rejected."""
        coordinator, *_ = _build()

        result = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 15:00"))

        assert isinstance(result.error, BookingTimeError)

    def test_start_in_the_past(self):
        """Test that a start before now is rejected."""
        coordinator, *_ = _build(now="2024-11-25 10:30")

        result = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 10:00"))

        assert isinstance(result.error, BookingTimeError)

    def test_inactive_service(self):
        """Test that an inactive service cannot be booked."""
        coordinator, *_ = _build(active=False)

        result = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00"))

        assert isinstance(result.error, ServiceNotActiveError)

    def test_taken_slot(self):
        """Test that a taken slot cannot be booked twice."""
        coordinator, *_ = _build()
        coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        result = coordinator.create("haircut", "customer-2", _at("2024-11-25 09:00"))

        assert isinstance(result.error, SlotUnavailableError)

    def test_provider_cannot_book_own_service(self):
        """Test that providers cannot book their own service."""
        coordinator, *_ = _build()

        result = coordinator.create("haircut", PROVIDER, _at("2024-11-25 09:00"))

        assert isinstance(result.error, NotAuthorizedError)

    def test_missing_customer(self):
        """Test that a customer id is required."""
        coordinator, *_ = _build()

        result = coordinator.create("haircut", "", _at("2024-11-25 09:00"))

        assert isinstance(result.error, ValidationError)

    def test_conflict_at_commit_time_is_slot_unavailable(self):
        """The store's re-check wins over a stale availability read."""
        store = StaleOccupancyStore(timezone=TZ)
        coordinator, *_ = _build(store=store)
        coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        result = coordinator.create("haircut", "customer-2", _at("2024-11-25 09:00"))

        assert isinstance(result.error, SlotUnavailableError)
        assert len(store.all_bookings()) == 1

    def test_concurrent_create_has_one_winner(self):
        """Test that two threads racing for one slot yield one booking."""
        coordinator, store, *_ = _build()
        barrier = threading.Barrier(2)
        results = []
        lock = threading.Lock()

        def book(customer_id):
            barrier.wait()
            result = coordinator.create("haircut", customer_id, _at("2024-11-25 09:00"))
            with lock:
                results.append(result)

        threads = [threading.Thread(target=book, args=(f"customer-{i}",)) for i in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [r for r in results if r.is_ok]
        losers = [r for r in results if not r.is_ok]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0].error, SlotUnavailableError)
        assert len(store.all_bookings()) == 1

    def test_notification_failure_becomes_warning(self):
        """Test that a failed notification keeps the booking and warns."""
        notifier = FailingNotifier()
        coordinator, store, *_ = _build(notifier=notifier)

        result = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00"))

        assert result.is_ok
        assert len(result.warnings) == 1
        assert "gateway down" in result.warnings[0]
        assert store.get_booking(result.value.id) is not None


class TestReschedule:
    """Tests for moving bookings."""

    def test_move_to_free_slot(self):
        """Test moving a booking to a free slot notifies the provider."""
        coordinator, _, notifier, _ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        moved = coordinator.reschedule(booking.id, _at("2024-11-25 11:00")).unwrap()

        assert moved.start == _at("2024-11-25 11:00")
        assert moved.end == _at("2024-11-25 12:00")
        assert moved.status == BookingStatus.PENDING
        assert "rescheduled" in notifier.sent[-1][1]

    def test_move_overlapping_own_interval(self):
        """A booking never conflicts with itself."""
        coordinator, *_ = _build(settings=EngineSettings(slot_step_minutes=30))
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        result = coordinator.reschedule(booking.id, _at("2024-11-25 09:30"))

        assert result.is_ok
        assert result.value.start == _at("2024-11-25 09:30")

    def test_move_onto_other_booking(self):
        """Test that a booking cannot move onto another booking."""
        coordinator, *_ = _build()
        first = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.create("haircut", "customer-2", _at("2024-11-25 10:00")).unwrap()

        result = coordinator.reschedule(first.id, _at("2024-11-25 10:00"))

        assert isinstance(result.error, SlotUnavailableError)

    def test_confirmed_stays_confirmed(self):
        """Test that a moved confirmed booking stays confirmed."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.confirm(booking.id, PROVIDER).unwrap()

        moved = coordinator.reschedule(booking.id, _at("2024-11-25 10:00")).unwrap()

        assert moved.status == BookingStatus.CONFIRMED

    def test_notes_only(self):
        """Test that changing only the notes sends no notification."""
        coordinator, _, notifier, _ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        sent_before = len(notifier.sent)

        updated = coordinator.reschedule(booking.id, booking.start, notes="Bring photos").unwrap()

        assert updated.notes == "Bring photos"
        assert updated.start == booking.start
        assert len(notifier.sent) == sent_before

    def test_cancelled_cannot_move(self):
        """Test that a cancelled booking cannot be moved."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.cancel(booking.id, CUSTOMER).unwrap()

        result = coordinator.reschedule(booking.id, _at("2024-11-25 10:00"))

        assert isinstance(result.error, InvalidBookingStateError)

    def test_unknown_booking(self):
        """Test that moving an unknown booking is not found."""
        coordinator, *_ = _build()

        result = coordinator.reschedule("missing", _at("2024-11-25 10:00"))

        assert isinstance(result.error, EntityNotFoundError)


class TestConfirmCancelComplete:
    """Tests for status changes."""

    def test_confirm_notifies_customer(self):
        """Test that confirming notifies the customer."""
        coordinator, _, notifier, _ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        confirmed = coordinator.confirm(booking.id, PROVIDER).unwrap()

        assert confirmed.status == BookingStatus.CONFIRMED
        assert notifier.sent[-1][0] == CUSTOMER

    def test_only_provider_confirms(self):
        """Test that the customer cannot confirm."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        result = coordinator.confirm(booking.id, CUSTOMER)

        assert isinstance(result.error, NotAuthorizedError)

    def test_confirm_twice(self):
        """Test that a booking cannot be confirmed twice."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.confirm(booking.id).unwrap()

        result = coordinator.confirm(booking.id)

        assert isinstance(result.error, InvalidBookingStateError)

    def test_cancel_by_provider_notifies_customer(self):
        """Test that a provider cancellation notifies the customer."""
        coordinator, _, notifier, _ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        cancelled = coordinator.cancel(booking.id, PROVIDER).unwrap()

        assert cancelled.status == BookingStatus.CANCELLED
        assert notifier.sent[-1][0] == CUSTOMER
        assert "provider" in notifier.sent[-1][1]

    def test_cancel_by_stranger(self):
        """Test that only the parties may cancel."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        result = coordinator.cancel(booking.id, "someone-else")

        assert isinstance(result.error, NotAuthorizedError)

    def test_cancel_survives_notification_failure(self):
        """Test that a failed notification never undoes a cancellation."""
        notifier = FailingNotifier()
        coordinator, store, *_ = _build(notifier=notifier)
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        result = coordinator.cancel(booking.id, CUSTOMER)

        assert result.is_ok
        assert result.warnings
        assert store.get_booking(booking.id).status == BookingStatus.CANCELLED
        assert notifier.attempts == [PROVIDER, PROVIDER]

    def test_cancel_soft_deletes_when_configured(self):
        """Test that cancel marks the booking cancelled and deleted in one write."""
        coordinator, store, *_ = _build(settings=EngineSettings(soft_delete_cancelled=True))
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        cancelled = coordinator.cancel(booking.id, CUSTOMER).unwrap()

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.is_deleted
        assert cancelled.deleted_on is not None
        assert store.get_booking(booking.id) == cancelled

    def test_soft_delete_cancel_loses_to_concurrent_confirm(self):
        """Test that a soft-deleting cancel fails cleanly when the status moved."""
        store = ConfirmBeforeCancelStore(timezone=TZ)
        coordinator, *_ = _build(store=store, settings=EngineSettings(soft_delete_cancelled=True))
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        result = coordinator.cancel(booking.id, CUSTOMER)

        assert isinstance(result.error, InvalidBookingStateError)
        assert result.error.current_state == "Confirmed"
        stored = store.get_booking(booking.id)
        assert stored.status == BookingStatus.CONFIRMED
        assert not stored.is_deleted

    def test_cancel_completed_is_invalid(self):
        """Test that a completed booking cannot be cancelled."""
        coordinator, _, _, clock = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.confirm(booking.id).unwrap()
        clock.advance(days=2)
        coordinator.complete(booking.id).unwrap()

        result = coordinator.cancel(booking.id, CUSTOMER)

        assert isinstance(result.error, InvalidBookingStateError)
        assert result.error.current_state == "Completed"

    def test_complete_is_idempotent(self):
        """Test that completing twice returns the same booking."""
        coordinator, _, _, clock = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.confirm(booking.id).unwrap()
        clock.advance(days=2)

        first = coordinator.complete(booking.id)
        second = coordinator.complete(booking.id)

        assert first.is_ok and second.is_ok
        assert first.value.status == BookingStatus.COMPLETED
        assert second.value == first.value

    def test_complete_before_end(self):
        """Test that a booking cannot be completed before it ends."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.confirm(booking.id).unwrap()

        result = coordinator.complete(booking.id)

        assert isinstance(result.error, BookingTimeError)

    def test_complete_pending_is_invalid(self):
        """Test that a pending booking cannot be completed."""
        coordinator, _, _, clock = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        clock.advance(days=2)

        result = coordinator.complete(booking.id)

        assert isinstance(result.error, InvalidBookingStateError)

    def test_complete_due_sweeps_confirmed_past_bookings(self):
        """Test that the sweep completes only confirmed, ended bookings."""
        coordinator, store, _, clock = _build()
        first = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        second = coordinator.create("haircut", "customer-2", _at("2024-11-25 10:00")).unwrap()
        pending = coordinator.create("haircut", "customer-3", _at("2024-11-25 11:00")).unwrap()
        coordinator.confirm(first.id).unwrap()
        coordinator.confirm(second.id).unwrap()
        clock.advance(days=2)

        result = coordinator.complete_due()

        assert result.is_ok
        assert {b.id for b in result.value} == {first.id, second.id}
        assert store.get_booking(pending.id).status == BookingStatus.PENDING
        assert coordinator.complete_due().value == []


class TestServicesAndSchedules:
    """Tests for services, schedules and booking lookup."""

    def test_duplicate_service(self):
        """Test that a service id can be registered once."""
        coordinator, *_ = _build()

        result = coordinator.register_service(
            Service(id="haircut", provider_id=PROVIDER, duration_minutes=30)
        )

        assert isinstance(result.error, DuplicateEntityError)

    def test_invalid_duration(self):
        """Test that a zero duration is rejected."""
        coordinator, *_ = _build()

        result = coordinator.register_service(
            Service(id="nothing", provider_id=PROVIDER, duration_minutes=0)
        )

        assert isinstance(result.error, InvalidDuration)

    def test_malformed_schedule_is_rejected(self):
        """Test that a malformed schedule leaves the old one in place."""
        coordinator, *_ = _build()

        result = coordinator.update_weekly_schedule(
            PROVIDER, WeeklySchedule(days={0: DaySchedule.open(TimeSegment.of("12:00", "09:00"))})
        )

        assert isinstance(result.error, MalformedSchedule)
        assert coordinator.get_weekly_schedule(PROVIDER).value.day_for(0).is_bookable

    def test_unknown_provider_has_closed_week(self):
        """Test that a provider without a schedule is closed all week."""
        coordinator, *_ = _build()

        schedule = coordinator.get_weekly_schedule("nobody").unwrap()

        assert schedule == WeeklySchedule.closed_week()

    def test_remove_missing_override(self):
        """Test that removing a missing override is not found."""
        coordinator, *_ = _build()

        result = coordinator.remove_override(PROVIDER, MONDAY)

        assert isinstance(result.error, EntityNotFoundError)

    def test_get_booking(self):
        """Test loading a booking by id."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        assert coordinator.get_booking(booking.id).value == booking
        with pytest.raises(EntityNotFoundError):
            coordinator.get_booking("missing").unwrap()

    def test_get_booking_restricted_to_parties(self):
        """Test that only the customer and provider may view a booking."""
        coordinator, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        assert coordinator.get_booking(booking.id, user_id=CUSTOMER).value == booking
        assert coordinator.get_booking(booking.id, user_id=PROVIDER).value == booking
        result = coordinator.get_booking(booking.id, user_id="someone-else")
        assert isinstance(result.error, NotAuthorizedError)


class TestListBookings:
    """Tests for listing bookings by customer and provider."""

    def test_customer_bookings_earliest_first(self):
        """Test that a customer's bookings come earliest first."""
        coordinator, *_ = _build()
        later = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 11:00")).unwrap()
        earlier = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.create("haircut", "customer-2", _at("2024-11-25 10:00")).unwrap()

        found = coordinator.bookings_for_customer(CUSTOMER).unwrap()

        assert [b.id for b in found] == [earlier.id, later.id]

    def test_provider_bookings_narrowed_to_customer(self):
        """Test narrowing a provider's bookings to one customer."""
        coordinator, *_ = _build()
        own = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        other = coordinator.create("haircut", "customer-2", _at("2024-11-25 10:00")).unwrap()

        everyone = coordinator.bookings_for_provider(PROVIDER).unwrap()
        narrowed = coordinator.bookings_for_provider(PROVIDER, customer_id=CUSTOMER).unwrap()

        assert [b.id for b in everyone] == [own.id, other.id]
        assert [b.id for b in narrowed] == [own.id]

    def test_soft_deleted_are_hidden_by_default(self):
        """Test that soft-deleted bookings show only on request."""
        coordinator, *_ = _build(settings=EngineSettings(soft_delete_cancelled=True))
        kept = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        dropped = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 10:00")).unwrap()
        coordinator.cancel(dropped.id, CUSTOMER).unwrap()

        visible = coordinator.bookings_for_customer(CUSTOMER).unwrap()
        everything = coordinator.bookings_for_customer(CUSTOMER, include_deleted=True).unwrap()

        assert [b.id for b in visible] == [kept.id]
        assert [b.id for b in everything] == [kept.id, dropped.id]
        assert coordinator.bookings_for_provider(PROVIDER).value == visible

    def test_missing_ids(self):
        """Test that listing needs a customer or provider id."""
        coordinator, *_ = _build()

        assert isinstance(coordinator.bookings_for_customer("").error, ValidationError)
        assert isinstance(coordinator.bookings_for_provider("").error, ValidationError)

    def test_unknown_customer_has_no_bookings(self):
        """Test that an unknown customer has an empty list."""
        coordinator, *_ = _build()

        assert coordinator.bookings_for_customer("nobody").value == []


class TestMemoryStore:
    """Tests for the in-memory store's conditional writes."""

    def test_soft_delete_with_stale_status(self):
        """Test that a stale cancel leaves the booking untouched."""
        coordinator, store, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()
        coordinator.confirm(booking.id).unwrap()
        before = store.get_booking(booking.id)

        with pytest.raises(StaleBookingStateError):
            store.soft_delete(booking.id, _at("2024-11-24 13:00"), cancel_from=BookingStatus.PENDING)

        assert store.get_booking(booking.id) == before

    def test_soft_delete_with_cancel(self):
        """Test cancelling and soft-deleting in one write."""
        coordinator, store, *_ = _build()
        booking = coordinator.create("haircut", CUSTOMER, _at("2024-11-25 09:00")).unwrap()

        deleted = store.soft_delete(
            booking.id, _at("2024-11-24 13:00"), cancel_from=BookingStatus.PENDING
        )

        assert deleted.status == BookingStatus.CANCELLED
        assert deleted.is_deleted
        assert store.get_occupied_intervals(PROVIDER, MONDAY) == []
