# slotbook/models.py

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Time, text
from sqlalchemy.orm import relationship

from slotbook.database import Base

# Only Scheduled rows occupy a slot; Cancelled and Completed rows stay for audit.
_SCHEDULED_ONLY = text("status = 'Scheduled'")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResourceRecord(Base):
    __tablename__ = "resources"

    id = Column(String, primary_key=True, index=True)  # e.g. a practitioner id
    working_hours = relationship(
        "WorkingHoursRecord",
        back_populates="resource",
        cascade="all, delete-orphan",
        order_by="WorkingHoursRecord.weekday",
    )


class WorkingHoursRecord(Base):
    __tablename__ = "working_hours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    resource_id = Column(String, ForeignKey("resources.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)  # Monday=0 .. Sunday=6
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_minutes = Column(Integer, nullable=False)

    resource = relationship("ResourceRecord", back_populates="working_hours")


class RequesterRecord(Base):
    __tablename__ = "requesters"

    id = Column(String, primary_key=True, index=True)
    booking_cap = Column(Integer, nullable=True)  # None -> configured default
    can_override = Column(Boolean, nullable=False, default=False)


class BookingRecord(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    resource_id = Column(String, nullable=False)
    booking_date = Column(Date, nullable=False)
    slot_start = Column(Time, nullable=False)
    slot_end = Column(Time, nullable=False)
    requester_id = Column(String, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="Scheduled")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    cancelled_by = Column(String, nullable=True)

    __table_args__ = (
        # Hard business rule: at most one Scheduled booking per (resource, date, slot_start).
        Index(
            "uq_bookings_scheduled_slot",
            "resource_id",
            "booking_date",
            "slot_start",
            unique=True,
            sqlite_where=_SCHEDULED_ONLY,
            postgresql_where=_SCHEDULED_ONLY,
        ),
        Index("ix_bookings_resource_date", "resource_id", "booking_date"),
    )
