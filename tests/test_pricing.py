from datetime import date

import pytest

from reservations import models
from reservations.conflicts import DateRange
from reservations.errors import CapacityExceeded, InvalidRange
from reservations.pricing import compute_total, validate_stay

TODAY = date(2023, 12, 1)


def _property(**overrides):
    fields = dict(id=1, owner_id=10, price_per_night=10000, max_guests=4, is_active=True)
    fields.update(overrides)
    return models.Property(**fields)


def test_total_is_rate_times_nights():
    stay = DateRange(date(2024, 1, 1), date(2024, 1, 4))
    assert compute_total(_property(), stay, {}) == 30000


def test_override_replaces_rate_for_that_night():
    stay = DateRange(date(2024, 1, 1), date(2024, 1, 4))
    assert compute_total(_property(), stay, {date(2024, 1, 2): 5000}) == 25000


def test_override_outside_stay_is_ignored():
    stay = DateRange(date(2024, 1, 1), date(2024, 1, 4))
    # Check-out night is not charged
    assert compute_total(_property(), stay, {date(2024, 1, 4): 1}) == 30000


def test_valid_stay_passes():
    validate_stay(_property(), DateRange(date(2024, 1, 1), date(2024, 1, 2)), 4, TODAY)


def test_check_in_today_is_allowed():
    validate_stay(_property(), DateRange(TODAY, date(2023, 12, 3)), 1, TODAY)


@pytest.mark.parametrize("check_in, check_out", [
    (date(2024, 1, 5), date(2024, 1, 5)),   # zero nights
    (date(2024, 1, 5), date(2024, 1, 1)),   # reversed
    (date(2023, 11, 30), date(2023, 12, 3)),  # check-in in the past
])
def test_bad_dates_are_rejected(check_in, check_out):
    with pytest.raises(InvalidRange) as exc_info:
        validate_stay(_property(), DateRange(check_in, check_out), 2, TODAY)
    assert not isinstance(exc_info.value, CapacityExceeded)


def test_zero_guests_is_rejected():
    with pytest.raises(InvalidRange):
        validate_stay(_property(), DateRange(date(2024, 1, 1), date(2024, 1, 2)), 0, TODAY)


def test_capacity_is_checked_before_dates():
    """Too many guests is reported as such even when the dates are also wrong."""
    with pytest.raises(CapacityExceeded):
        validate_stay(_property(max_guests=2), DateRange(date(2020, 1, 5), date(2020, 1, 1)), 3, TODAY)


def test_capacity_exceeded_is_an_invalid_range():
    with pytest.raises(InvalidRange):
        validate_stay(_property(max_guests=2), DateRange(date(2024, 1, 1), date(2024, 1, 2)), 5, TODAY)
