import datetime
from typing import Iterator, NamedTuple


class DateRange(NamedTuple):
    """A stay from check_in (inclusive) to check_out (exclusive)."""
    check_in: datetime.date
    check_out: datetime.date

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def each_night(self) -> Iterator[datetime.date]:
        night = self.check_in
        while night < self.check_out:
            yield night
            night += datetime.timedelta(days=1)

    def overlaps(self, other: "DateRange") -> bool:
        # (Existing Start < New End) AND (Existing End > New Start)
        return self.check_in < other.check_out and self.check_out > other.check_in


def conflicting_nights(existing_blocked: set[datetime.date], candidate: DateRange) -> list[datetime.date]:
    return [night for night in candidate.each_night() if night in existing_blocked]


def has_conflict(existing_blocked: set[datetime.date], candidate: DateRange) -> bool:
    """
    True if any night of the candidate stay is already blocked.

    The check_out date itself is never tested, so a guest leaving on the
    morning another arrives is not a conflict.
    """
    return any(night in existing_blocked for night in candidate.each_night())
