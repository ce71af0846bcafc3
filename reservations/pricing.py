import datetime
from typing import Mapping

from . import models
from .conflicts import DateRange
from .errors import CapacityExceeded, InvalidRange


def validate_stay(
        property: models.Property,
        date_range: DateRange,
        guest_count: int,
        today: datetime.date,
) -> None:
    """
    Rejects a stay the property cannot take, before any availability lookup.

    Capacity is checked first so an oversized party is reported as such even
    when its dates are also wrong.
    """
    if guest_count > property.max_guests:
        raise CapacityExceeded(
            f"Property {property.id} accepts at most {property.max_guests} guests, got {guest_count}."
        )
    if guest_count < 1:
        raise InvalidRange("A booking needs at least one guest.")
    if date_range.check_in >= date_range.check_out:
        raise InvalidRange("Booking check-out date must be after check-in date.")
    if date_range.check_in < today:
        raise InvalidRange(f"Check-in date {date_range.check_in} is in the past.")


def nightly_rate(property: models.Property, night: datetime.date, overrides: Mapping[datetime.date, int]) -> int:
    price = overrides.get(night)
    return property.price_per_night if price is None else price


def compute_total(
        property: models.Property,
        date_range: DateRange,
        overrides: Mapping[datetime.date, int],
) -> int:
    """Sum of the nightly rate over [check_in, check_out), in minor units."""
    return sum(nightly_rate(property, night, overrides) for night in date_range.each_night())
