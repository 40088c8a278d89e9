"""
Durable delayed-job scheduler.

Jobs are rows in ``scheduled_jobs`` with a ``run_at`` timestamp. They are
written in the same transaction as the state change that needs them, so a
committed booking always has its expiry job. Any number of workers may poll
the table; a job is claimed with a conditional UPDATE (pending -> running),
so only one worker wins it. A running job whose worker died is claimed again
once its lease (JOB_LEASE_SECONDS since started_at) has run out, so handlers
must tolerate being run twice. Failed jobs are recorded, never retried.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cinego.config import settings
from cinego.core.metrics import JOBS_EXECUTED
from cinego.models.job import ScheduledJob, JobStatus

logger = logging.getLogger(__name__)

JobHandler = Callable[[AsyncSession, Dict[str, Any]], Awaitable[Any]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def schedule_job(
    session: AsyncSession,
    name: str,
    payload: Optional[Dict[str, Any]] = None,
    run_at: Optional[datetime] = None
) -> ScheduledJob:
    """
    Add a job to the caller's transaction. Nothing is persisted until the
    caller commits.
    """
    job = ScheduledJob(
        name=name,
        payload=payload or {},
        run_at=run_at or utcnow(),
        status=JobStatus.PENDING,
    )
    session.add(job)
    logger.debug(f"Scheduled job {name} at {job.run_at}")
    return job


async def ensure_recurring_job(
    session: AsyncSession,
    name: str,
    run_at: datetime,
    payload: Optional[Dict[str, Any]] = None
) -> Optional[ScheduledJob]:
    """
    Schedule ``name`` unless a pending run already exists
    """
    result = await session.execute(
        select(ScheduledJob.id)
        .where(ScheduledJob.name == name, ScheduledJob.status == JobStatus.PENDING)
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        return None
    return schedule_job(session, name, payload, run_at)


class JobWorker:
    """
    Polls for due jobs and dispatches them to registered handlers
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        handlers: Optional[Dict[str, JobHandler]] = None,
        batch_size: int = None,
        poll_interval: float = None,
        lease_seconds: int = None
    ):
        self.session_factory = session_factory
        self.handlers: Dict[str, JobHandler] = dict(handlers or {})
        self.batch_size = batch_size or settings.JOB_BATCH_SIZE
        self.poll_interval = poll_interval or settings.JOB_POLL_INTERVAL_SECONDS
        self.lease = timedelta(seconds=lease_seconds or settings.JOB_LEASE_SECONDS)
        self.logger = logging.getLogger(__name__)

    def register(self, name: str, handler: JobHandler):
        self.handlers[name] = handler

    def _claimable(self, now: datetime):
        """Due pending jobs, plus running jobs whose lease ran out"""
        return or_(
            and_(ScheduledJob.status == JobStatus.PENDING, ScheduledJob.run_at <= now),
            and_(
                ScheduledJob.status == JobStatus.RUNNING,
                ScheduledJob.started_at < now - self.lease
            ),
        )

    async def _due_job_ids(self, now: datetime) -> List[Any]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ScheduledJob.id)
                .where(self._claimable(now))
                .order_by(ScheduledJob.run_at)
                .limit(self.batch_size)
            )
            return list(result.scalars().all())

    async def _claim(self, job_id, now: datetime) -> bool:
        # Claiming moves started_at to now, so a second claimant no longer matches
        async with self.session_factory() as session:
            result = await session.execute(
                update(ScheduledJob)
                .where(ScheduledJob.id == job_id, self._claimable(now))
                .values(
                    status=JobStatus.RUNNING,
                    started_at=now,
                    attempts=ScheduledJob.attempts + 1
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def _finish(self, job_id, status: JobStatus, error: Optional[str] = None):
        async with self.session_factory() as session:
            await session.execute(
                update(ScheduledJob)
                .where(ScheduledJob.id == job_id)
                .values(status=status, finished_at=utcnow(), last_error=error)
            )
            await session.commit()

    async def run_job(self, job_id) -> Optional[JobStatus]:
        async with self.session_factory() as session:
            job = await session.get(ScheduledJob, job_id)
            name, payload, attempts = job.name, dict(job.payload or {}), job.attempts

        if attempts > 1:
            self.logger.warning(
                f"Job {name} claimed again after its lease ran out (attempt {attempts})",
                extra={"job_id": str(job_id)}
            )

        handler = self.handlers.get(name)
        if handler is None:
            self.logger.error(f"No handler registered for job {name}", extra={"job_id": str(job_id)})
            await self._finish(job_id, JobStatus.FAILED, f"no handler for {name}")
            JOBS_EXECUTED.labels(name=name, status=JobStatus.FAILED.value).inc()
            return JobStatus.FAILED

        try:
            async with self.session_factory() as session:
                await handler(session, payload)
        except Exception as e:
            self.logger.error(
                f"Job {name} failed: {type(e).__name__}: {e}",
                exc_info=True,
                extra={"job_id": str(job_id)}
            )
            await self._finish(job_id, JobStatus.FAILED, f"{type(e).__name__}: {e}")
            JOBS_EXECUTED.labels(name=name, status=JobStatus.FAILED.value).inc()
            return JobStatus.FAILED

        await self._finish(job_id, JobStatus.COMPLETED)
        JOBS_EXECUTED.labels(name=name, status=JobStatus.COMPLETED.value).inc()
        self.logger.info(f"Job {name} completed", extra={"job_id": str(job_id)})
        return JobStatus.COMPLETED

    async def run_due_jobs(self, now: Optional[datetime] = None) -> int:
        """
        Execute every job due at ``now``. Returns how many this worker ran.
        """
        now = now or utcnow()
        executed = 0
        for job_id in await self._due_job_ids(now):
            # Another worker may have claimed it since we listed it
            if not await self._claim(job_id, now):
                continue
            await self.run_job(job_id)
            executed += 1
        return executed

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None):
        stop_event = stop_event or asyncio.Event()
        self.logger.info(f"Job worker started, polling every {self.poll_interval}s")
        while not stop_event.is_set():
            try:
                await self.run_due_jobs()
            except Exception as e:
                # Database hiccups must not kill the loop
                self.logger.error(f"Job polling failed: {type(e).__name__}: {e}")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        self.logger.info("Job worker stopped")
