"""Background tasks for the venue booking engine."""

import asyncio
import logging

from venue_booking.config import get_settings
from venue_booking.database import get_db_context
from venue_booking.services.booking_service import BookingService

logger = logging.getLogger(__name__)

settings = get_settings()


async def complete_finished_bookings() -> int:
    """Run one completion sweep and return how many bookings were completed."""
    async with get_db_context() as db:
        # The sweep never reserves slots, so it runs without a lock source
        service = BookingService(db)
        completed = await service.complete_finished_bookings()

    if completed > 0:
        logger.info(f"Completed {completed} finished bookings")
    return completed


async def completion_sweep() -> None:
    """
    Background task to complete bookings whose slot has ended.

    Runs every COMPLETION_SWEEP_INTERVAL_SECONDS.
    """
    logger.info("Starting booking completion task")

    while True:
        try:
            await complete_finished_bookings()
        except Exception as e:
            logger.error(f"Error in completion task: {e}")

        await asyncio.sleep(settings.COMPLETION_SWEEP_INTERVAL_SECONDS)


class BackgroundTaskManager:
    """Manager for background tasks."""

    def __init__(self):
        self.tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start all background tasks."""
        self.tasks.append(asyncio.create_task(completion_sweep()))
        logger.info("Background tasks started")

    async def stop(self) -> None:
        """Stop all background tasks."""
        for task in self.tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.tasks.clear()
        logger.info("Background tasks stopped")


# Global instance
background_tasks = BackgroundTaskManager()
