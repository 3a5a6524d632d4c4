"""SQLAlchemy table definitions for the booking store"""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

ACTIVE_STATUSES = ("pending", "confirmed")
ACTIVE_SLOT_INDEX = "uq_bookings_provider_active_start"


class ServiceRow(Base):
    __tablename__ = "services"

    id = Column(String(64), primary_key=True)
    provider_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False, default="")
    duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class ProviderScheduleRow(Base):
    """One row per provider; also the per-provider write lock for bookings."""
    __tablename__ = "provider_schedules"

    provider_id = Column(String(64), primary_key=True)
    days = Column(JSON, nullable=True)  # WeeklySchedule.to_dict(), NULL = no hours
    lock_version = Column(Integer, nullable=False, default=0)


class ScheduleOverrideRow(Base):
    __tablename__ = "schedule_overrides"
    __table_args__ = (UniqueConstraint("provider_id", "date", name="uq_override_provider_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    is_day_off = Column(Boolean, nullable=False, default=False)
    segments = Column(JSON, nullable=False, default=list)


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True)

    # References
    service_id = Column(String(64), ForeignKey("services.id"), nullable=False)
    provider_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(String(64), nullable=False, index=True)

    # Interval, stored as naive UTC
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)

    status = Column(String(16), nullable=False, default="pending")
    notes = Column(Text, nullable=True)

    created_on = Column(DateTime, nullable=False)
    last_modified_on = Column(DateTime, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_on = Column(DateTime, nullable=True)


# Backstop for the per-provider lock: two active bookings of one provider
# can never share a start instant.
Index(
    ACTIVE_SLOT_INDEX,
    BookingRow.provider_id,
    BookingRow.start_at,
    unique=True,
    sqlite_where=BookingRow.status.in_(ACTIVE_STATUSES),
    postgresql_where=BookingRow.status.in_(ACTIVE_STATUSES),
)
