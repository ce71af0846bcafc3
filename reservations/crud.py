"""
Queries and row writes for the booking core.

Nothing here commits. The booking service owns the transaction boundary.
"""
import json
import datetime
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from . import models, schemas
from .config import settings
from .conflicts import DateRange


def get_property(db: Session, property_id: int) -> Optional[models.Property]:
    return db.get(models.Property, property_id)


def lock_property(db: Session, property_id: int) -> Optional[models.Property]:
    """
    Loads the property row and holds it locked until the transaction ends.

    Every booking creation, approval and override change on a property goes
    through this lock first, so their check-then-act sequences run one at a time.
    Different properties never wait on each other.
    """
    if db.get_bind().dialect.name == "postgresql":
        # SET does not take bind parameters
        db.execute(text(f"SET LOCAL lock_timeout = {int(settings.LOCK_TIMEOUT_MS)}"))

    stmt = (
        select(models.Property)
        .where(models.Property.id == property_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalars().first()


def get_booking(db: Session, booking_id: int) -> Optional[models.Booking]:
    return db.get(models.Booking, booking_id)


def get_blocking_bookings(
        db: Session,
        property_id: int,
        window: Optional[DateRange] = None,
        exclude_booking_id: Optional[int] = None,
) -> list[models.Booking]:
    """Pending and approved bookings of a property, optionally only those overlapping `window`."""
    query = db.query(models.Booking).filter(
        models.Booking.property_id == property_id,
        models.Booking.status.in_(models.BLOCKING_STATUSES),
    )
    if window is not None:
        # The logic for an overlap is:
        # (Existing Start Date < New End Date) AND (Existing End Date > New Start Date)
        query = query.filter(
            models.Booking.check_in < window.check_out,
            models.Booking.check_out > window.check_in,
        )
    if exclude_booking_id is not None:
        query = query.filter(models.Booking.id != exclude_booking_id)
    return query.all()


def get_overrides(
        db: Session, property_id: int, window: Optional[DateRange] = None
) -> list[models.AvailabilityOverride]:
    query = db.query(models.AvailabilityOverride).filter(
        models.AvailabilityOverride.property_id == property_id
    )
    if window is not None:
        query = query.filter(
            models.AvailabilityOverride.date >= window.check_in,
            models.AvailabilityOverride.date < window.check_out,
        )
    return query.order_by(models.AvailabilityOverride.date).all()


def get_override(db: Session, property_id: int, night: datetime.date) -> Optional[models.AvailabilityOverride]:
    return db.query(models.AvailabilityOverride).filter(
        models.AvailabilityOverride.property_id == property_id,
        models.AvailabilityOverride.date == night,
    ).first()


def add_booking(
        db: Session,
        booking: schemas.BookingCreate,
        user_id: int,
        total_price: int,
) -> models.Booking:
    db_booking = models.Booking(
        property_id=booking.property_id,
        user_id=user_id,
        check_in=booking.check_in,
        check_out=booking.check_out,
        guest_count=booking.guest_count,
        special_requests=booking.special_requests,
        total_price=total_price,
        status=models.BookingStatus.PENDING,
    )
    db.add(db_booking)
    # Flush so the generated id is available for the outbox payload
    db.flush()
    return db_booking


def add_booking_event_to_outbox(db: Session, booking: models.Booking, event: str) -> models.OutboxEvent:
    """
    Queues a booking event for the outbox poller.
    Note: Does NOT commit. It is written in the same transaction as the booking change.
    """
    payload = {
        "event": event,
        "booking_id": booking.id,
        "property_id": booking.property_id,
        "user_id": booking.user_id,
        "status": booking.status.value,
        "check_in": booking.check_in.isoformat(),
        "check_out": booking.check_out.isoformat(),
    }
    db_outbox_event = models.OutboxEvent(
        topic=settings.KAFKA_BOOKING_TOPIC,
        payload=json.dumps(payload),
        status="PENDING",
    )
    db.add(db_outbox_event)
    return db_outbox_event


def list_bookings(
        db: Session,
        filters: schemas.BookingFilters,
        property_id: Optional[int] = None,
        user_id: Optional[int] = None,
) -> list[models.Booking]:
    query = db.query(models.Booking)
    if property_id is not None:
        query = query.filter(models.Booking.property_id == property_id)
    if user_id is not None:
        query = query.filter(models.Booking.user_id == user_id)
    if filters.status:
        query = query.filter(models.Booking.status.in_(filters.status))
    if filters.date_from is not None:
        query = query.filter(models.Booking.check_out > filters.date_from)
    if filters.date_to is not None:
        query = query.filter(models.Booking.check_in < filters.date_to)
    return (
        query.order_by(models.Booking.check_in, models.Booking.id)
        .offset(filters.skip)
        .limit(filters.limit)
        .all()
    )


def get_finished_approved_booking_ids(db: Session, today: datetime.date) -> list[int]:
    """Approved bookings whose check-out date is already behind us."""
    stmt = select(models.Booking.id).where(
        models.Booking.status == models.BookingStatus.APPROVED,
        models.Booking.check_out < today,
    ).order_by(models.Booking.id)
    return list(db.execute(stmt).scalars().all())
