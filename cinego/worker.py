"""
Background job worker.

Runs inside the API process when RUN_JOB_WORKER is set, or standalone:

    python -m cinego.worker
"""

import asyncio
import logging
import signal
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cinego.config import settings
from cinego.core.database import async_session, close_db, init_db
from cinego.core.logging import setup_logging
from cinego.core.scheduler import JobWorker, ensure_recurring_job, utcnow
from cinego.services.booking_service import EXPIRE_BOOKING_JOB
from cinego.services.notifications import send_confirmation_job
from cinego.services.payment_confirmation import SEND_CONFIRMATION_JOB
from cinego.services.reaper import CLEANUP_JOB, expire_booking, next_cleanup_run, run_cleanup_job

logger = logging.getLogger(__name__)


def build_worker(session_factory: Optional[async_sessionmaker] = None) -> JobWorker:
    worker = JobWorker(session_factory or async_session)
    worker.register(EXPIRE_BOOKING_JOB, expire_booking)
    worker.register(SEND_CONFIRMATION_JOB, send_confirmation_job)
    worker.register(CLEANUP_JOB, run_cleanup_job)
    return worker


async def ensure_cleanup_scheduled(session: AsyncSession, now: Optional[datetime] = None):
    """Seed the recurring cleanup job the first time the system starts"""
    job = await ensure_recurring_job(session, CLEANUP_JOB, next_cleanup_run(now or utcnow()))
    await session.commit()
    if job is not None:
        logger.info(f"Scheduled {CLEANUP_JOB} for {job.run_at.isoformat()}")


async def run_worker():
    await init_db()
    async with async_session() as session:
        await ensure_cleanup_scheduled(session)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        await build_worker().run_forever(stop_event)
    finally:
        await close_db()


def main():
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} job worker")
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
