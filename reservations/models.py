import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# --- ENUM for principal roles (issued by the auth service) ---
class UserRole(str, PyEnum):
    USER = "user"
    PROPERTY_OWNER = "property_owner"
    ADMIN = "admin"


class BookingStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that hold nights against new bookings
BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)


class Property(Base):
    """
    Listing record owned by the property service. Read-only to the booking flow.
    """
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)

    # User IDs come from the auth service; no FK is enforced.
    owner_id = Column(Integer, index=True, nullable=False)

    title = Column(String(255), nullable=False, default="")
    price_per_night = Column(Integer, nullable=False)  # minor units
    max_guests = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    overrides = relationship("AvailabilityOverride", back_populates="property")


class AvailabilityOverride(Base):
    __tablename__ = "availability_overrides"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False)
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    price_override = Column(Integer, nullable=True)  # minor units

    property = relationship("Property", back_populates="overrides")

    __table_args__ = (
        UniqueConstraint("property_id", "date", name="uq_availability_override_property_date"),
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    property_id = Column(Integer, ForeignKey("properties.id"), index=True, nullable=False)
    user_id = Column(Integer, index=True, nullable=False)

    # Half-open stay: the check_out night is not occupied
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)

    guest_count = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)  # minor units
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False, index=True)
    special_requests = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_bookings_property_dates", "property_id", "check_in", "check_out"),
    )


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, index=True)

    # PENDING until the poller hands it to Kafka; sent rows are deleted
    status = Column(String(20), default="PENDING", nullable=False)

    topic = Column(String(255), nullable=False)
    payload = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_outbox_events_status", "status"),
    )
