import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models
from .errors import BookingError, NotFound, Retryable, StorageFailure

logger = logging.getLogger("booking_service")

# lock_not_available, serialization_failure, deadlock_detected
RETRYABLE_PGCODES = {"55P03", "40001", "40P01"}


def is_retryable(exc: OperationalError) -> bool:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in RETRYABLE_PGCODES:
        return True
    message = str(exc).lower()
    return "database is locked" in message or "deadlock detected" in message


@contextmanager
def storage_errors(db: Session, subject: str) -> Iterator[None]:
    """
    Rolls back on any failure and turns storage errors into booking errors.

    Lock contention becomes Retryable, anything else from the database
    StorageFailure. Booking errors pass through unchanged. Wrap every
    statement of a request in this, reads included: on SQLite the first
    statement of a transaction already waits for the write lock.
    """
    try:
        yield
    except BookingError:
        db.rollback()
        raise
    except OperationalError as e:
        db.rollback()
        if is_retryable(e):
            logger.warning(f"Lock contention on {subject}: {e}")
            raise Retryable(f"{subject.capitalize()} is busy with another request. Retry the request.") from e
        logger.error(f"Storage failure on {subject}: {e}")
        raise StorageFailure("The request could not be completed by the database.") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure on {subject}: {e}")
        raise StorageFailure("The request could not be completed by the database.") from e


@contextmanager
def property_transaction(db: Session, property_id: int) -> Iterator[Optional[models.Property]]:
    """
    Runs the body as one atomic unit holding the property's lock.

    Yields the locked property (None if it does not exist). Commits on success.
    On any failure the whole transaction is rolled back, so no half-written
    booking or outbox event is ever visible.
    """
    with storage_errors(db, f"property {property_id}"):
        property = crud.lock_property(db, property_id)
        yield property
        db.commit()


@contextmanager
def booking_transaction(
        db: Session, booking_id: int
) -> Iterator[tuple[models.Booking, Optional[models.Property]]]:
    """
    Like `property_transaction`, for the property a booking belongs to.

    The booking is looked up in the same transaction, then re-read once the
    property lock is held so its status cannot be stale.
    """
    with storage_errors(db, f"booking {booking_id}"):
        booking = crud.get_booking(db, booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found.")
        property = crud.lock_property(db, booking.property_id)
        db.refresh(booking)
        yield booking, property
        db.commit()
