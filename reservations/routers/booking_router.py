import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import booking_service, schemas
from ..auth import get_current_principal, rate_limit
from ..database import get_db
from ..models import BookingStatus

router = APIRouter(prefix="/bookings", tags=["Bookings"])

CurrentPrincipal = Annotated[schemas.Principal, Depends(get_current_principal)]


def booking_filters(
        status_: Annotated[Optional[List[BookingStatus]], Query(alias="status")] = None,
        date_from: Optional[datetime.date] = None,
        date_to: Optional[datetime.date] = None,
        skip: Annotated[int, Query(ge=0)] = 0,
        limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> schemas.BookingFilters:
    return schemas.BookingFilters(
        status=status_, date_from=date_from, date_to=date_to, skip=skip, limit=limit
    )


@router.post(
    "/",
    response_model=schemas.BookingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(times=30))],
)
def create_booking(
        booking: schemas.BookingCreate,
        principal: CurrentPrincipal,
        db: Session = Depends(get_db),
):
    """
    Request a booking for the authenticated user. It starts out 'pending'.
    """
    return booking_service.create_booking(db=db, principal=principal, booking=booking)


@router.get("/", response_model=List[schemas.BookingRead], dependencies=[Depends(rate_limit(times=60))])
def read_user_bookings(
        principal: CurrentPrincipal,
        filters: schemas.BookingFilters = Depends(booking_filters),
        db: Session = Depends(get_db),
):
    """
    Get the authenticated user's bookings.
    """
    return booking_service.list_bookings(db, principal, filters, user_id=principal.user_id)


@router.get("/{booking_id}", response_model=schemas.BookingRead)
def read_booking(booking_id: int, principal: CurrentPrincipal, db: Session = Depends(get_db)):
    return booking_service.get_booking(db, principal, booking_id)


@router.post(
    "/{booking_id}/transition",
    response_model=schemas.BookingRead,
    dependencies=[Depends(rate_limit(times=30))],
)
def transition_booking(
        booking_id: int,
        transition: schemas.BookingTransition,
        principal: CurrentPrincipal,
        db: Session = Depends(get_db),
):
    """
    Move a booking to another status (approve, deny, cancel, complete).
    """
    return booking_service.transition_booking(db, principal, booking_id, transition.status)


def _shortcut(target: BookingStatus):
    def endpoint(booking_id: int, principal: CurrentPrincipal, db: Session = Depends(get_db)):
        return booking_service.transition_booking(db, principal, booking_id, target)
    return endpoint


for _action, _target in (
        ("approve", BookingStatus.APPROVED),
        ("deny", BookingStatus.DENIED),
        ("cancel", BookingStatus.CANCELLED),
        ("complete", BookingStatus.COMPLETED),
):
    router.add_api_route(
        f"/{{booking_id}}/{_action}",
        _shortcut(_target),
        methods=["POST"],
        response_model=schemas.BookingRead,
        name=f"{_action}_booking",
        dependencies=[Depends(rate_limit(times=30))],
    )
