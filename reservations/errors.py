"""
Error kinds raised by the booking core.

The HTTP layer maps each `kind` to a status code (see main.py). Only `Retryable`
means the caller may resend the identical request.
"""
import datetime
from typing import Iterable


class BookingError(Exception):
    kind = "BookingError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BookingError):
    kind = "NotFound"


class PropertyInactive(BookingError):
    kind = "PropertyInactive"


class InvalidRange(BookingError):
    kind = "InvalidRange"


class CapacityExceeded(InvalidRange):
    kind = "CapacityExceeded"


class DateConflict(BookingError):
    kind = "DateConflict"

    def __init__(self, message: str, nights: Iterable[datetime.date] = ()):
        super().__init__(message)
        self.nights = sorted(nights)


class InvalidTransition(BookingError):
    kind = "InvalidTransition"

    def __init__(self, current, requested, reason: str | None = None):
        message = f"Cannot move booking from '{current.value}' to '{requested.value}'"
        super().__init__(f"{message}: {reason}." if reason else f"{message}.")
        self.current = current
        self.requested = requested


class Unauthorized(BookingError):
    kind = "Unauthorized"


class Retryable(BookingError):
    kind = "Retryable"


class StorageFailure(BookingError):
    kind = "StorageFailure"
