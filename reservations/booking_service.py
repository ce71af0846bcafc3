"""
Booking admission and lifecycle.

Every write runs inside `property_transaction`, which holds the property's
lock from the availability read until commit. Validation, conflict and
state-machine failures are raised before anything is written.
"""
import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import availability, crud, models, pricing, schemas
from .conflicts import DateRange, conflicting_nights, has_conflict
from .errors import DateConflict, InvalidRange, NotFound, PropertyInactive, Unauthorized
from .models import BookingStatus, UserRole
from .state_machine import check_transition
from .transaction import booking_transaction, property_transaction, storage_errors

logger = logging.getLogger("booking_service")

# Upper bound for a single availability query
MAX_AVAILABILITY_NIGHTS = 366

EVENT_NAMES = {
    BookingStatus.PENDING: "booking.requested",
    BookingStatus.APPROVED: "booking.approved",
    BookingStatus.DENIED: "booking.denied",
    BookingStatus.CANCELLED: "booking.cancelled",
    BookingStatus.COMPLETED: "booking.completed",
}


def create_booking(
        db: Session,
        principal: schemas.Principal,
        booking: schemas.BookingCreate,
        today: Optional[datetime.date] = None,
) -> models.Booking:
    """
    Admits a new booking in `pending` status, or raises.

    The price is always computed here from the nightly rate and the owner's
    price overrides; callers cannot supply it.
    """
    today = today or datetime.date.today()
    stay = DateRange(booking.check_in, booking.check_out)

    with property_transaction(db, booking.property_id) as property:
        # 1. The property must exist and be bookable
        if property is None:
            raise NotFound(f"Property {booking.property_id} not found.")
        if not property.is_active:
            raise PropertyInactive(f"Property {property.id} is not accepting bookings.")
        if principal.role == UserRole.PROPERTY_OWNER:
            raise Unauthorized("Property owners cannot make bookings.")
        if property.owner_id == principal.user_id:
            raise Unauthorized("Owners cannot book their own property.")

        # 2. Capacity and dates
        pricing.validate_stay(property, stay, booking.guest_count, today)

        # 3. Availability, read under the property lock
        blocked = availability.blocked_nights(db, property.id, window=stay)
        if has_conflict(blocked, stay):
            nights = conflicting_nights(blocked, stay)
            logger.info(f"Rejected booking on property {property.id}: nights {nights} are taken.")
            raise DateConflict(
                f"Property {property.id} is already booked for {len(nights)} of the requested nights.",
                nights=nights,
            )

        # 4. Price and persist
        total_price = pricing.compute_total(
            property, stay, availability.price_overrides(db, property.id, stay)
        )
        db_booking = crud.add_booking(db, booking, user_id=principal.user_id, total_price=total_price)
        crud.add_booking_event_to_outbox(db, db_booking, EVENT_NAMES[BookingStatus.PENDING])

    logger.info(
        f"Booking {db_booking.id} created for property {db_booking.property_id} "
        f"({stay.check_in} to {stay.check_out}, total {total_price})."
    )
    return db_booking


def transition_booking(
        db: Session,
        principal: schemas.Principal,
        booking_id: int,
        requested: BookingStatus,
        today: Optional[datetime.date] = None,
) -> models.Booking:
    """
    Moves a booking to `requested` if the state machine and the calendar allow it.

    Approval re-reads the calendar under the property lock, so of two pending
    requests for the same nights at most one can ever be approved.
    """
    today = today or datetime.date.today()

    with booking_transaction(db, booking_id) as (booking, property):
        if property is None:
            raise NotFound(f"Property {booking.property_id} not found.")

        previous = booking.status
        check_transition(principal, booking, property, requested, today)

        if requested == BookingStatus.APPROVED:
            stay = DateRange(booking.check_in, booking.check_out)
            taken = availability.blocked_nights(
                db, property.id, window=stay, exclude_booking_id=booking.id, include_overrides=False,
            )
            if has_conflict(taken, stay):
                raise DateConflict(
                    f"Booking {booking.id} overlaps another booking on property {property.id}.",
                    nights=conflicting_nights(taken, stay),
                )

        booking.status = requested
        db.flush()
        crud.add_booking_event_to_outbox(db, booking, EVENT_NAMES[requested])

    logger.info(
        f"Booking {booking.id} moved from '{previous.value}' to '{requested.value}' "
        f"by user {principal.user_id}."
    )
    return booking


def get_booking(db: Session, principal: schemas.Principal, booking_id: int) -> models.Booking:
    with storage_errors(db, f"booking {booking_id}"):
        booking = crud.get_booking(db, booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found.")
        if principal.role == UserRole.ADMIN or booking.user_id == principal.user_id:
            return booking
        property = crud.get_property(db, booking.property_id)

    if property is not None and property.owner_id == principal.user_id:
        return booking
    raise Unauthorized(f"User {principal.user_id} has no access to booking {booking_id}.")


def list_bookings(
        db: Session,
        principal: schemas.Principal,
        filters: schemas.BookingFilters,
        property_id: Optional[int] = None,
        user_id: Optional[int] = None,
) -> list[models.Booking]:
    """
    Bookings of one property (owner or admin) or of one user (that user or admin).
    """
    if (property_id is None) == (user_id is None):
        raise InvalidRange("List bookings either by property or by user.")
    if filters.date_from and filters.date_to and filters.date_from >= filters.date_to:
        raise InvalidRange("date_from must be before date_to.")

    is_admin = principal.role == UserRole.ADMIN
    if property_id is None and not is_admin and user_id != principal.user_id:
        raise Unauthorized("Users may only list their own bookings.")

    with storage_errors(db, f"property {property_id}" if property_id is not None else f"user {user_id}"):
        if property_id is not None:
            property = crud.get_property(db, property_id)
            if property is None:
                raise NotFound(f"Property {property_id} not found.")
            if not is_admin and property.owner_id != principal.user_id:
                raise Unauthorized(f"Only the owner of property {property_id} may list its bookings.")
        return crud.list_bookings(db, filters, property_id=property_id, user_id=user_id)


def get_availability(db: Session, property_id: int, date_range: DateRange) -> schemas.AvailabilityRead:
    if date_range.check_in >= date_range.check_out:
        raise InvalidRange("check_out must be after check_in.")
    if date_range.nights > MAX_AVAILABILITY_NIGHTS:
        raise InvalidRange(f"Availability can be queried for at most {MAX_AVAILABILITY_NIGHTS} nights.")

    with storage_errors(db, f"property {property_id}"):
        property = crud.get_property(db, property_id)
        if property is None:
            raise NotFound(f"Property {property_id} not found.")
        if not property.is_active:
            raise PropertyInactive(f"Property {property_id} is not accepting bookings.")
        return availability.report(db, property, date_range)
