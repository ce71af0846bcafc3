import asyncio
import logging
from datetime import date
from sqlalchemy.orm import Session

from .database import SessionLocal
from .config import settings
from .errors import BookingError
from .schemas import SYSTEM_PRINCIPAL
from .models import BookingStatus
from . import booking_service, crud

logger = logging.getLogger("booking_scheduler")


def complete_finished_bookings(db: Session, today: date | None = None) -> int:
    """
    Moves approved bookings whose check-out date has passed to 'completed'.

    Each booking is its own transaction, so one failure does not hold back
    the rest. Returns how many bookings were completed.
    """
    today = today or date.today()
    booking_ids = crud.get_finished_approved_booking_ids(db, today)
    db.rollback()

    if not booking_ids:
        logger.info("No finished bookings to complete.")
        return 0

    logger.info(f"Found {len(booking_ids)} approved bookings that checked out before {today}.")
    completed = 0
    for booking_id in booking_ids:
        try:
            booking_service.transition_booking(
                db, SYSTEM_PRINCIPAL, booking_id, BookingStatus.COMPLETED, today=today
            )
            completed += 1
        except BookingError as e:
            # e.g. cancelled by its guest between the query and the update
            logger.warning(f"Could not complete booking {booking_id}: {e}")

    logger.info(f"Completed {completed} bookings.")
    return completed


async def run_booking_scheduler(poll_interval: int = settings.SCHEDULER_POLL_INTERVAL_SECONDS):
    """
    Main background loop for the completion sweep.
    """
    while True:
        logger.info("Scheduler waking up to complete finished bookings...")
        db: Session = SessionLocal()
        try:
            complete_finished_bookings(db)
        except Exception as e:
            logger.error(f"Error in booking scheduler loop: {e}")
            db.rollback()
        finally:
            db.close()

        await asyncio.sleep(poll_interval)
