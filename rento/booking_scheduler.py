import asyncio
import logging
from datetime import date
from sqlalchemy.orm import Session
from .database import SessionLocal
from .config import settings
from . import booking_workflow

logger = logging.getLogger("booking_scheduler")


async def complete_finished_bookings(db: Session, today: date | None = None) -> int:
    """
    Moves CONFIRMED bookings whose rental period is over to COMPLETED.
    """
    today = today or date.today()
    logger.info(f"Checking for confirmed bookings that ended before {today}...")

    completed = booking_workflow.complete_expired_bookings(db, today)

    if completed:
        logger.info(f"Completed {completed} bookings.")
    else:
        logger.info("No bookings to complete.")
    return completed


async def run_booking_scheduler(poll_interval: int | None = None):
    """
    Main background loop for the scheduler.
    """
    poll_interval = poll_interval or settings.BOOKING_SCHEDULER_INTERVAL_SECONDS
    while True:
        logger.info("Scheduler waking up to check for finished bookings...")
        db: Session = SessionLocal()
        try:
            await complete_finished_bookings(db)
        except Exception as e:
            logger.error(f"Error in booking scheduler loop: {e}")
            db.rollback()
        finally:
            db.close()

        await asyncio.sleep(poll_interval)
