import datetime
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import availability, booking_service, schemas
from ..conflicts import DateRange
from ..database import get_db
from ..auth import rate_limit
from .booking_router import CurrentPrincipal, booking_filters

router = APIRouter(prefix="/properties", tags=["Properties"])


@router.get(
    "/{property_id}/bookings",
    response_model=List[schemas.BookingRead],
    dependencies=[Depends(rate_limit(times=60))],
)
def read_property_bookings(
        property_id: int,
        principal: CurrentPrincipal,
        filters: schemas.BookingFilters = Depends(booking_filters),
        db: Session = Depends(get_db),
):
    """
    Bookings for one property. Owner or admin only.
    """
    return booking_service.list_bookings(db, principal, filters, property_id=property_id)


@router.get("/{property_id}/availability", response_model=schemas.AvailabilityRead)
def read_availability(
        property_id: int,
        check_in: datetime.date,
        check_out: datetime.date,
        db: Session = Depends(get_db),
):
    """
    Night-by-night availability and price, plus a quote for the whole stay.
    """
    return booking_service.get_availability(db, property_id, DateRange(check_in, check_out))


@router.get("/{property_id}/overrides", response_model=List[schemas.AvailabilityOverrideRead])
def read_overrides(
        property_id: int,
        principal: CurrentPrincipal,
        date_from: datetime.date | None = None,
        date_to: datetime.date | None = None,
        db: Session = Depends(get_db),
):
    """
    Closed nights and price changes, optionally within [date_from, date_to). Owner or admin only.
    """
    return availability.list_overrides(db, principal, property_id, date_from, date_to)


@router.put(
    "/{property_id}/overrides/{night}",
    response_model=schemas.AvailabilityOverrideRead,
    dependencies=[Depends(rate_limit(times=60))],
)
def set_override(
        property_id: int,
        night: datetime.date,
        override: schemas.AvailabilityOverrideSet,
        principal: CurrentPrincipal,
        db: Session = Depends(get_db),
):
    """
    Close a night or change its price. Owner or admin only.
    """
    return availability.set_override(db, principal, property_id, night, override)


@router.delete(
    "/{property_id}/overrides/{night}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit(times=60))],
)
def delete_override(
        property_id: int,
        night: datetime.date,
        principal: CurrentPrincipal,
        db: Session = Depends(get_db),
):
    availability.remove_override(db, principal, property_id, night)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
