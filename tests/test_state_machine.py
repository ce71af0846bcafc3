from datetime import date
from itertools import product

import pytest

from reservations import models
from reservations.errors import InvalidTransition, Unauthorized
from reservations.models import BookingStatus, UserRole
from reservations.schemas import Principal, SYSTEM_PRINCIPAL
from reservations.state_machine import (
    TERMINAL_STATUSES, TRANSITIONS, ActorKind, actor_kinds, allowed_targets, check_transition,
)

GUEST = Principal(user_id=1, role=UserRole.USER)
OWNER = Principal(user_id=10, role=UserRole.PROPERTY_OWNER)
STRANGER = Principal(user_id=99, role=UserRole.USER)
ADMIN = Principal(user_id=1000, role=UserRole.ADMIN)

AFTER_STAY = date(2024, 2, 1)
DURING_STAY = date(2024, 1, 3)


def _booking(status: BookingStatus) -> models.Booking:
    return models.Booking(
        id=7, property_id=1, user_id=GUEST.user_id, status=status,
        check_in=date(2024, 1, 1), check_out=date(2024, 1, 5), guest_count=2, total_price=40000,
    )


PROPERTY = models.Property(id=1, owner_id=OWNER.user_id, price_per_night=10000, max_guests=4, is_active=True)


def test_actor_kinds():
    booking = _booking(BookingStatus.PENDING)
    assert actor_kinds(GUEST, booking, PROPERTY) == {ActorKind.GUEST}
    assert actor_kinds(OWNER, booking, PROPERTY) == {ActorKind.OWNER}
    assert actor_kinds(ADMIN, booking, PROPERTY) == {ActorKind.GUEST, ActorKind.OWNER}
    assert actor_kinds(STRANGER, booking, PROPERTY) == set()
    assert actor_kinds(SYSTEM_PRINCIPAL, booking, PROPERTY) == {ActorKind.SYSTEM}


def test_terminal_states_have_no_way_out():
    assert TERMINAL_STATUSES == {BookingStatus.DENIED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
    for status in TERMINAL_STATUSES:
        assert allowed_targets(status) == set()
    for status in set(BookingStatus) - TERMINAL_STATUSES:
        assert allowed_targets(status)
    assert allowed_targets(BookingStatus.APPROVED) == {BookingStatus.CANCELLED, BookingStatus.COMPLETED}


@pytest.mark.parametrize("principal, current, requested", [
    (OWNER, BookingStatus.PENDING, BookingStatus.APPROVED),
    (OWNER, BookingStatus.PENDING, BookingStatus.DENIED),
    (GUEST, BookingStatus.PENDING, BookingStatus.CANCELLED),
    (GUEST, BookingStatus.APPROVED, BookingStatus.CANCELLED),
    (OWNER, BookingStatus.APPROVED, BookingStatus.CANCELLED),
    (OWNER, BookingStatus.APPROVED, BookingStatus.COMPLETED),
    (SYSTEM_PRINCIPAL, BookingStatus.APPROVED, BookingStatus.COMPLETED),
    (ADMIN, BookingStatus.PENDING, BookingStatus.APPROVED),
    (ADMIN, BookingStatus.PENDING, BookingStatus.CANCELLED),
])
def test_legal_transitions(principal, current, requested):
    check_transition(principal, _booking(current), PROPERTY, requested, AFTER_STAY)


@pytest.mark.parametrize("principal, current, requested", [
    (GUEST, BookingStatus.PENDING, BookingStatus.APPROVED),
    (GUEST, BookingStatus.PENDING, BookingStatus.DENIED),
    (OWNER, BookingStatus.PENDING, BookingStatus.CANCELLED),
    (GUEST, BookingStatus.APPROVED, BookingStatus.COMPLETED),
    (SYSTEM_PRINCIPAL, BookingStatus.PENDING, BookingStatus.APPROVED),
])
def test_wrong_side_is_unauthorized(principal, current, requested):
    with pytest.raises(Unauthorized):
        check_transition(principal, _booking(current), PROPERTY, requested, AFTER_STAY)


@pytest.mark.parametrize("principal", [GUEST, OWNER, ADMIN, SYSTEM_PRINCIPAL])
def test_denied_to_approved_is_always_invalid(principal):
    with pytest.raises(InvalidTransition) as exc_info:
        check_transition(principal, _booking(BookingStatus.DENIED), PROPERTY, BookingStatus.APPROVED, AFTER_STAY)
    assert exc_info.value.current == BookingStatus.DENIED
    assert exc_info.value.requested == BookingStatus.APPROVED
    assert "'denied' to 'approved'" in str(exc_info.value)


def test_every_pair_outside_the_table_is_invalid():
    for current, requested in product(BookingStatus, BookingStatus):
        if (current, requested) in TRANSITIONS:
            continue
        with pytest.raises(InvalidTransition):
            check_transition(ADMIN, _booking(current), PROPERTY, requested, AFTER_STAY)


@pytest.mark.parametrize("current, requested", list(product(BookingStatus, BookingStatus)))
def test_stranger_is_unauthorized_for_any_transition(current, requested):
    with pytest.raises(Unauthorized):
        check_transition(STRANGER, _booking(current), PROPERTY, requested, AFTER_STAY)


@pytest.mark.parametrize("today", [DURING_STAY, date(2024, 1, 5)])
def test_completion_waits_until_check_out_has_passed(today):
    with pytest.raises(InvalidTransition) as exc_info:
        check_transition(OWNER, _booking(BookingStatus.APPROVED), PROPERTY, BookingStatus.COMPLETED, today)
    assert "has not passed" in str(exc_info.value)
