"""
Per-property availability: which nights are blocked and what each night costs.

Everything is recomputed from the bookings and override rows visible in the
caller's transaction. Nothing is cached between requests.
"""
import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import crud, models, pricing, schemas
from .conflicts import DateRange, conflicting_nights
from .errors import DateConflict, InvalidRange, NotFound, Unauthorized
from .models import UserRole
from .transaction import property_transaction, storage_errors

logger = logging.getLogger("booking_service")


def blocked_nights(
        db: Session,
        property_id: int,
        window: Optional[DateRange] = None,
        exclude_booking_id: Optional[int] = None,
        include_overrides: bool = True,
) -> set[datetime.date]:
    """
    Nights held by pending/approved bookings plus nights the owner closed.

    `window` limits the answer to nights inside that range.
    """
    nights: set[datetime.date] = set()
    for booking in crud.get_blocking_bookings(db, property_id, window, exclude_booking_id):
        nights.update(DateRange(booking.check_in, booking.check_out).each_night())

    if include_overrides:
        nights.update(o.date for o in crud.get_overrides(db, property_id, window) if not o.is_available)

    if window is not None:
        nights = {night for night in nights if window.check_in <= night < window.check_out}
    return nights


def price_overrides(db: Session, property_id: int, date_range: DateRange) -> dict[datetime.date, int]:
    return {
        o.date: o.price_override
        for o in crud.get_overrides(db, property_id, date_range)
        if o.price_override is not None
    }


def nightly_price(db: Session, property: models.Property, night: datetime.date) -> int:
    override = crud.get_override(db, property.id, night)
    if override is not None and override.price_override is not None:
        return override.price_override
    return property.price_per_night


def _check_owner(principal: schemas.Principal, property: models.Property, action: str = "change") -> None:
    if principal.role == UserRole.ADMIN or property.owner_id == principal.user_id:
        return
    raise Unauthorized(f"Only the owner of property {property.id} may {action} its calendar.")


def list_overrides(
        db: Session,
        principal: schemas.Principal,
        property_id: int,
        date_from: Optional[datetime.date] = None,
        date_to: Optional[datetime.date] = None,
) -> list[models.AvailabilityOverride]:
    """
    The owner's overrides, ordered by date. Owner or admin only.

    A window needs both ends, with `date_from` before `date_to`.
    """
    if (date_from is None) != (date_to is None):
        raise InvalidRange("Give both date_from and date_to, or neither.")
    if date_from is not None and date_from >= date_to:
        raise InvalidRange("date_from must be before date_to.")
    window = DateRange(date_from, date_to) if date_from is not None else None

    with storage_errors(db, f"property {property_id}"):
        property = crud.get_property(db, property_id)
        if property is None:
            raise NotFound(f"Property {property_id} not found.")
        _check_owner(principal, property, "see")
        return crud.get_overrides(db, property_id, window)


def set_override(
        db: Session,
        principal: schemas.Principal,
        property_id: int,
        night: datetime.date,
        data: schemas.AvailabilityOverrideSet,
) -> models.AvailabilityOverride:
    """
    Creates or replaces the owner's override for one night.

    Closing a night that a pending or approved booking already holds is
    refused; the booking has to be resolved first.
    """
    with property_transaction(db, property_id) as property:
        if property is None:
            raise NotFound(f"Property {property_id} not found.")
        _check_owner(principal, property)

        if not data.is_available:
            held = blocked_nights(
                db, property_id, DateRange(night, night + datetime.timedelta(days=1)),
                include_overrides=False,
            )
            if held:
                raise DateConflict(f"Night {night} is held by an existing booking.", nights=held)

        override = crud.get_override(db, property_id, night)
        if override is None:
            override = models.AvailabilityOverride(property_id=property_id, date=night)
            db.add(override)
        override.is_available = data.is_available
        override.price_override = data.price_override
        db.flush()

    logger.info(
        f"Override for property {property_id} on {night} set "
        f"(available={data.is_available}, price={data.price_override})."
    )
    return override


def remove_override(db: Session, principal: schemas.Principal, property_id: int, night: datetime.date) -> None:
    with property_transaction(db, property_id) as property:
        if property is None:
            raise NotFound(f"Property {property_id} not found.")
        _check_owner(principal, property)

        override = crud.get_override(db, property_id, night)
        if override is None:
            raise NotFound(f"No override for property {property_id} on {night}.")
        db.delete(override)

    logger.info(f"Override for property {property_id} on {night} removed.")


def report(db: Session, property: models.Property, date_range: DateRange) -> schemas.AvailabilityRead:
    blocked = blocked_nights(db, property.id, date_range)
    prices = price_overrides(db, property.id, date_range)
    nights = [
        schemas.NightAvailability(
            date=night,
            available=night not in blocked,
            price=pricing.nightly_rate(property, night, prices),
        )
        for night in date_range.each_night()
    ]
    return schemas.AvailabilityRead(
        property_id=property.id,
        check_in=date_range.check_in,
        check_out=date_range.check_out,
        nights=nights,
        blocked=conflicting_nights(blocked, date_range),
        total_price=None if blocked else pricing.compute_total(property, date_range, prices),
    )
