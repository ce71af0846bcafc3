"""
Booking status transitions and who may trigger them.

Authorization is a plain table lookup: each legal (from, to) pair maps to the
set of actor kinds allowed to request it. A principal is resolved to its actor
kinds relative to one booking, then checked against the table.
"""
import datetime
from enum import Enum as PyEnum

from . import models
from .errors import InvalidTransition, Unauthorized
from .models import BookingStatus, UserRole
from .schemas import Principal


class ActorKind(str, PyEnum):
    GUEST = "guest"    # the user who requested the booking
    OWNER = "owner"    # the owner of the booked property
    SYSTEM = "system"  # background jobs


TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[ActorKind]] = {
    (BookingStatus.PENDING, BookingStatus.APPROVED): frozenset({ActorKind.OWNER}),
    (BookingStatus.PENDING, BookingStatus.DENIED): frozenset({ActorKind.OWNER}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({ActorKind.GUEST}),
    (BookingStatus.APPROVED, BookingStatus.CANCELLED): frozenset({ActorKind.GUEST, ActorKind.OWNER}),
    (BookingStatus.APPROVED, BookingStatus.COMPLETED): frozenset({ActorKind.SYSTEM, ActorKind.OWNER}),
}

TERMINAL_STATUSES = frozenset({BookingStatus.DENIED, BookingStatus.CANCELLED, BookingStatus.COMPLETED})


def allowed_targets(current: BookingStatus) -> set[BookingStatus]:
    return {to for (frm, to) in TRANSITIONS if frm == current}


def actor_kinds(principal: Principal, booking: models.Booking, property: models.Property) -> set[ActorKind]:
    """Which sides of this booking the principal may act for. Admins act for both."""
    if principal.is_system:
        return {ActorKind.SYSTEM}
    if principal.role == UserRole.ADMIN:
        return {ActorKind.GUEST, ActorKind.OWNER}

    kinds = set()
    if booking.user_id == principal.user_id:
        kinds.add(ActorKind.GUEST)
    if property.owner_id == principal.user_id:
        kinds.add(ActorKind.OWNER)
    return kinds


def check_transition(
        principal: Principal,
        booking: models.Booking,
        property: models.Property,
        requested: BookingStatus,
        today: datetime.date,
) -> None:
    """
    Raises if `principal` may not move `booking` to `requested` right now.

    Strangers get Unauthorized before anything about the booking's state is
    revealed. Illegal pairs fail InvalidTransition for every related actor.
    """
    kinds = actor_kinds(principal, booking, property)
    if not kinds:
        raise Unauthorized(f"User {principal.user_id} has no access to booking {booking.id}.")

    allowed = TRANSITIONS.get((booking.status, requested))
    if allowed is None:
        raise InvalidTransition(booking.status, requested)

    if not kinds & allowed:
        sides = ", ".join(sorted(k.value for k in allowed))
        raise Unauthorized(
            f"Only the {sides} may move booking {booking.id} to '{requested.value}'."
        )

    if requested == BookingStatus.COMPLETED and not today > booking.check_out:
        raise InvalidTransition(
            booking.status, requested,
            reason=f"check-out date {booking.check_out} has not passed yet",
        )
