"""
SQLAlchemy-backed booking store.

Writes that can create overlap run in one transaction which first bumps the
provider's ``lock_version``. That statement serialises concurrent writers
for the provider (row lock on PostgreSQL, database write lock on SQLite)
before the overlap re-check, and the partial unique index on
(provider_id, start_at) catches anything that slips past. Any failure rolls
the whole transaction back.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

import pendulum
from pendulum import DateTime
from sqlalchemy import create_engine, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..domain.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    SlotConflictError,
    StaleBookingStateError,
)
from ..domain.models import Booking, BookingStatus, OccupiedInterval, Service
from ..domain.schedule import (
    ScheduleOverride,
    WeeklySchedule,
    format_time_of_day,
    override_from_dict,
)
from .sql_models import (
    ACTIVE_SLOT_INDEX,
    ACTIVE_STATUSES,
    Base,
    BookingRow,
    ProviderScheduleRow,
    ScheduleOverrideRow,
    ServiceRow,
)

logger = logging.getLogger(__name__)


class SqlBookingStore:
    """Persistence adapter over any SQLAlchemy engine (SQLite, PostgreSQL)."""

    def __init__(self, database_url: Optional[str] = None, engine=None, timezone: str = "UTC"):
        if engine is None and database_url is None:
            raise ValueError("Either database_url or engine is required")
        self.engine = engine or create_engine(database_url, pool_pre_ping=True)
        self.timezone = timezone
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    # ------------------------------------------------------------------
    # Services and schedules
    # ------------------------------------------------------------------

    def get_service(self, service_id: str) -> Optional[Service]:
        with self._session_factory() as session:
            row = session.get(ServiceRow, service_id)
            return _service_from_row(row) if row else None

    def add_service(self, service: Service) -> Service:
        try:
            with self._session_factory.begin() as session:
                session.add(
                    ServiceRow(
                        id=service.id,
                        provider_id=service.provider_id,
                        name=service.name,
                        duration_minutes=service.duration_minutes,
                        is_active=service.is_active,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateEntityError("Service", service.id) from exc
        return service

    def get_schedule(self, provider_id: str) -> Optional[WeeklySchedule]:
        with self._session_factory() as session:
            row = session.get(ProviderScheduleRow, provider_id)
            if row is None or row.days is None:
                return None
            return WeeklySchedule.from_dict(row.days)

    def save_schedule(self, provider_id: str, schedule: WeeklySchedule) -> None:
        with self._session_factory.begin() as session:
            row = session.get(ProviderScheduleRow, provider_id)
            if row is None:
                session.add(
                    ProviderScheduleRow(
                        provider_id=provider_id, days=schedule.to_dict(), lock_version=0
                    )
                )
            else:
                row.days = schedule.to_dict()

    def get_override(self, provider_id: str, day: date) -> Optional[ScheduleOverride]:
        with self._session_factory() as session:
            row = session.execute(
                select(ScheduleOverrideRow).where(
                    ScheduleOverrideRow.provider_id == provider_id,
                    ScheduleOverrideRow.date == _as_date(day),
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            return override_from_dict(
                {"date": row.date, "is_day_off": row.is_day_off, "segments": row.segments}
            )

    def save_override(self, provider_id: str, override: ScheduleOverride) -> None:
        segments = [
            [format_time_of_day(s.start), format_time_of_day(s.end)] for s in override.segments
        ]
        with self._session_factory.begin() as session:
            row = session.execute(
                select(ScheduleOverrideRow).where(
                    ScheduleOverrideRow.provider_id == provider_id,
                    ScheduleOverrideRow.date == _as_date(override.day),
                )
            ).scalar_one_or_none()
            if row is None:
                session.add(
                    ScheduleOverrideRow(
                        provider_id=provider_id,
                        date=_as_date(override.day),
                        is_day_off=override.is_day_off,
                        segments=segments,
                    )
                )
            else:
                row.is_day_off = override.is_day_off
                row.segments = segments

    def delete_override(self, provider_id: str, day: date) -> bool:
        with self._session_factory.begin() as session:
            row = session.execute(
                select(ScheduleOverrideRow).where(
                    ScheduleOverrideRow.provider_id == provider_id,
                    ScheduleOverrideRow.date == _as_date(day),
                )
            ).scalar_one_or_none()
            if row is None:
                return False
            session.delete(row)
            return True

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._session_factory() as session:
            row = session.get(BookingRow, booking_id)
            return self._booking_from_row(row) if row else None

    def get_occupied_intervals(
        self,
        provider_id: str,
        day: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[OccupiedInterval]:
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        with self._session_factory() as session:
            rows = self._overlapping(
                session,
                provider_id,
                day_start,
                day_start.add(days=1),
                exclude_booking_id,
            )
            return [
                OccupiedInterval(
                    start=self._from_db(row.start_at),
                    end=self._from_db(row.end_at),
                    booking_id=row.id,
                )
                for row in rows
            ]

    def insert_booking(self, booking: Booking) -> Booking:
        try:
            with self._session_factory.begin() as session:
                self._lock_provider(session, booking.provider_id)
                self._raise_on_overlap(
                    session, booking.provider_id, booking.start, booking.end, exclude=None
                )
                session.add(self._row_from_booking(booking))
        except IntegrityError as exc:
            if _is_slot_violation(exc):
                raise SlotConflictError(
                    f"Active booking already starts at {booking.start} for provider {booking.provider_id}"
                ) from exc
            raise
        logger.debug("Inserted booking %s", booking.id)
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
        provider_id = self._provider_of(booking_id)
        try:
            with self._session_factory.begin() as session:
                self._lock_provider(session, provider_id)
                row = session.get(BookingRow, booking_id)
                if row.status != expected_status.value:
                    raise StaleBookingStateError(booking_id, expected_status, row.status)
                self._raise_on_overlap(
                    session, row.provider_id, new_start, new_end, exclude=booking_id
                )
                row.start_at = self._to_db(new_start)
                row.end_at = self._to_db(new_end)
                row.notes = notes
                row.last_modified_on = self._to_db(at)
                session.flush()
                updated = self._booking_from_row(row)
        except IntegrityError as exc:
            if _is_slot_violation(exc):
                raise SlotConflictError(
                    f"Active booking already starts at {new_start} for booking {booking_id}"
                ) from exc
            raise
        return updated

    def update_booking_status(
        self,
        booking_id: str,
        from_status: BookingStatus,
        to_status: BookingStatus,
        at: DateTime,
    ) -> Booking:
        with self._session_factory.begin() as session:
            result = session.execute(
                update(BookingRow)
                .where(BookingRow.id == booking_id, BookingRow.status == from_status.value)
                .values(status=to_status.value, last_modified_on=self._to_db(at))
            )
            row = session.get(BookingRow, booking_id, populate_existing=True)
            if row is None:
                raise EntityNotFoundError("Booking", booking_id)
            if result.rowcount == 0:
                raise StaleBookingStateError(booking_id, from_status, row.status)
            return self._booking_from_row(row)

    def soft_delete(
        self,
        booking_id: str,
        at: DateTime,
        cancel_from: Optional[BookingStatus] = None,
    ) -> Booking:
        """
        Flag the booking as deleted. With ``cancel_from`` the move from that
        status to Cancelled happens in the same UPDATE.
        """
        query = update(BookingRow).where(BookingRow.id == booking_id)
        values = {
            "is_deleted": True,
            "deleted_on": self._to_db(at),
            "last_modified_on": self._to_db(at),
        }
        if cancel_from is not None:
            query = query.where(BookingRow.status == cancel_from.value)
            values["status"] = BookingStatus.CANCELLED.value

        with self._session_factory.begin() as session:
            result = session.execute(query.values(**values))
            row = session.get(BookingRow, booking_id, populate_existing=True)
            if row is None:
                raise EntityNotFoundError("Booking", booking_id)
            if result.rowcount == 0:
                raise StaleBookingStateError(booking_id, cancel_from, row.status)
            return self._booking_from_row(row)

    def list_due_for_completion(self, now: DateTime) -> List[Booking]:
        with self._session_factory() as session:
            rows = session.execute(
                select(BookingRow)
                .where(
                    BookingRow.status == BookingStatus.CONFIRMED.value,
                    BookingRow.end_at <= self._to_db(now),
                )
                .order_by(BookingRow.end_at)
            ).scalars().all()
            return [self._booking_from_row(row) for row in rows]

    def list_bookings_for_customer(
        self, customer_id: str, include_deleted: bool = False
    ) -> List[Booking]:
        return self._select(BookingRow.customer_id == customer_id, include_deleted=include_deleted)

    def list_bookings_for_provider(
        self,
        provider_id: str,
        customer_id: Optional[str] = None,
        include_deleted: bool = False,
    ) -> List[Booking]:
        criteria = [BookingRow.provider_id == provider_id]
        if customer_id is not None:
            criteria.append(BookingRow.customer_id == customer_id)
        return self._select(*criteria, include_deleted=include_deleted)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _select(self, *criteria, include_deleted: bool) -> List[Booking]:
        query = select(BookingRow).where(*criteria)
        if not include_deleted:
            query = query.where(BookingRow.is_deleted.is_(False))
        with self._session_factory() as session:
            rows = session.execute(query.order_by(BookingRow.start_at)).scalars().all()
            return [self._booking_from_row(row) for row in rows]

    def _provider_of(self, booking_id: str) -> str:
        with self._session_factory() as session:
            provider_id = session.execute(
                select(BookingRow.provider_id).where(BookingRow.id == booking_id)
            ).scalar_one_or_none()
        if provider_id is None:
            raise EntityNotFoundError("Booking", booking_id)
        return provider_id

    def _lock_provider(self, session: Session, provider_id: str) -> None:
        """First write of the transaction: serialises booking writers per provider."""
        self._ensure_lock_row(session, provider_id)
        session.execute(
            update(ProviderScheduleRow)
            .where(ProviderScheduleRow.provider_id == provider_id)
            .values(lock_version=ProviderScheduleRow.lock_version + 1)
        )

    def _ensure_lock_row(self, session: Session, provider_id: str) -> None:
        """Insert the provider row unless it exists; concurrent first writers both succeed."""
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql_insert
        elif dialect == "sqlite":
            insert = sqlite_insert
        else:
            if session.get(ProviderScheduleRow, provider_id) is None:
                session.add(ProviderScheduleRow(provider_id=provider_id, days=None, lock_version=0))
                session.flush()
            return
        session.execute(
            insert(ProviderScheduleRow)
            .values(provider_id=provider_id, days=None, lock_version=0)
            .on_conflict_do_nothing(index_elements=["provider_id"])
        )

    def _overlapping(
        self,
        session: Session,
        provider_id: str,
        start: DateTime,
        end: DateTime,
        exclude: Optional[str],
    ) -> List[BookingRow]:
        query = select(BookingRow).where(
            BookingRow.provider_id == provider_id,
            BookingRow.status.in_(ACTIVE_STATUSES),
            BookingRow.start_at < self._to_db(end),
            BookingRow.end_at > self._to_db(start),
        )
        if exclude is not None:
            query = query.where(BookingRow.id != exclude)
        return list(session.execute(query.order_by(BookingRow.start_at)).scalars())

    def _raise_on_overlap(
        self,
        session: Session,
        provider_id: str,
        start: DateTime,
        end: DateTime,
        exclude: Optional[str],
    ) -> None:
        clashes = self._overlapping(session, provider_id, start, end, exclude)
        if clashes:
            raise SlotConflictError(
                f"Interval {start} - {end} overlaps booking {clashes[0].id} of provider {provider_id}"
            )

    def _row_from_booking(self, booking: Booking) -> BookingRow:
        return BookingRow(
            id=booking.id,
            service_id=booking.service_id,
            provider_id=booking.provider_id,
            customer_id=booking.customer_id,
            start_at=self._to_db(booking.start),
            end_at=self._to_db(booking.end),
            status=booking.status.value,
            notes=booking.notes,
            created_on=self._to_db(booking.created_on),
            last_modified_on=self._to_db(booking.last_modified_on),
            is_deleted=booking.is_deleted,
            deleted_on=self._to_db(booking.deleted_on) if booking.deleted_on else None,
        )

    def _booking_from_row(self, row: BookingRow) -> Booking:
        return Booking(
            id=row.id,
            service_id=row.service_id,
            provider_id=row.provider_id,
            customer_id=row.customer_id,
            start=self._from_db(row.start_at),
            end=self._from_db(row.end_at),
            status=BookingStatus(row.status),
            notes=row.notes,
            created_on=self._from_db(row.created_on),
            last_modified_on=self._from_db(row.last_modified_on),
            is_deleted=bool(row.is_deleted),
            deleted_on=self._from_db(row.deleted_on) if row.deleted_on else None,
        )

    @staticmethod
    def _to_db(value: DateTime) -> datetime:
        """Naive UTC as a plain ``datetime``, the form the DateTime columns hold."""
        utc = pendulum.instance(value).in_timezone("UTC")
        return datetime(
            utc.year, utc.month, utc.day, utc.hour, utc.minute, utc.second, utc.microsecond
        )

    def _from_db(self, value: datetime) -> DateTime:
        return pendulum.instance(value.replace(tzinfo=timezone.utc)).in_timezone(self.timezone)


def _service_from_row(row: ServiceRow) -> Service:
    return Service(
        id=row.id,
        provider_id=row.provider_id,
        name=row.name or "",
        duration_minutes=row.duration_minutes,
        is_active=bool(row.is_active),
    )


def _is_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return ACTIVE_SLOT_INDEX in message or (
        "bookings.provider_id" in message and "bookings.start_at" in message
    )


def _as_date(day: date) -> date:
    return date(day.year, day.month, day.day)
