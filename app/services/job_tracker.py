"""
Persisted job state machine.

    pending ──start──▶ in_progress ──complete──▶ completed
       └────────────────────┴──────fail──────▶ failed

Every mutation is a single conditional UPDATE restricted to non-terminal
rows, so a progress write can never overwrite a completed or failed job.
Each operation runs in its own short session from the injected factory.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import AsyncSessionLocal
from app.exceptions import DuplicateJobError, JobNotFoundError
from app.models.database_models import ACTIVE_JOB_STATUSES, Job, JobStatus

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class JobSnapshot:
    """Read-only copy of a job row."""

    job_id: str
    status: JobStatus
    progress: int
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_orm(cls, job: Job) -> "JobSnapshot":
        return cls(
            job_id=job.job_id,
            status=JobStatus(job.status),
            progress=job.progress,
            result=job.result,
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobTracker:
    """create / start / update_progress / complete / fail / get by job id."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> None:
        self._session_factory = session_factory or AsyncSessionLocal

    async def create(self, job_id: str) -> JobSnapshot:
        """Insert a new ``pending`` job; raises DuplicateJobError on collision."""
        async with self._session_factory() as session:
            existing = await session.get(Job, job_id)
            if existing is not None:
                raise DuplicateJobError(job_id)

            job = Job(job_id=job_id, status=JobStatus.PENDING, progress=0)
            session.add(job)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateJobError(job_id) from exc

            await session.refresh(job)
            logger.info("Job %s created", job_id)
            return JobSnapshot.from_orm(job)

    async def start(self, job_id: str) -> bool:
        """Move a ``pending`` job to ``in_progress``.  Returns False otherwise."""
        changed = await self._conditional_update(
            job_id,
            (JobStatus.PENDING,),
            status=JobStatus.IN_PROGRESS,
        )
        if changed:
            logger.info("Job %s started", job_id)
        return changed

    async def update_progress(self, job_id: str, progress: int) -> bool:
        """
        Record progress (clamped to 0..100) on a non-terminal job.

        A no-op returning False when the job is already completed or failed.
        """
        progress = max(0, min(100, int(progress)))
        changed = await self._conditional_update(job_id, ACTIVE_JOB_STATUSES, progress=progress)
        if changed:
            logger.debug("Job %s progress %d%%", job_id, progress)
        return changed

    async def complete(self, job_id: str, result: Dict[str, Any]) -> bool:
        """
        Mark an ``in_progress`` job ``completed`` with *result*; progress is
        forced to 100.  A pending job must be started first.
        """
        changed = await self._conditional_update(
            job_id,
            (JobStatus.IN_PROGRESS,),
            status=JobStatus.COMPLETED,
            progress=100,
            result=result,
            error=None,
        )
        if changed:
            logger.info("Job %s completed", job_id)
        else:
            logger.warning("Job %s: complete() ignored, job not in progress", job_id)
        return changed

    async def fail(self, job_id: str, error: str) -> bool:
        """Mark the job ``failed`` with an error message."""
        changed = await self._conditional_update(
            job_id,
            ACTIVE_JOB_STATUSES,
            status=JobStatus.FAILED,
            error=error,
        )
        if changed:
            logger.info("Job %s failed: %s", job_id, error)
        else:
            logger.warning("Job %s: fail() ignored, job already terminal or missing", job_id)
        return changed

    async def get(self, job_id: str) -> JobSnapshot:
        """Return the current snapshot; raises JobNotFoundError if unknown."""
        async with self._session_factory() as session:
            result = await session.execute(select(Job).where(Job.job_id == job_id))
            job = result.scalar_one_or_none()
            if job is None:
                raise JobNotFoundError(job_id)
            return JobSnapshot.from_orm(job)

    async def _conditional_update(self, job_id: str, allowed_from, **values: Any) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Job)
                .where(Job.job_id == job_id, Job.status.in_(allowed_from))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount > 0
