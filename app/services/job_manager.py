"""
In-memory registry of background assignment tasks, keyed by job id.

Only the asyncio.Task handle lives here.  All job state (status, progress,
result) is written through the JobTracker, so a task needs nothing but its
job id and a snapshot of the request, and could later move to a separate
worker process.

Usage
-----
    from app.services.job_manager import job_manager

    job_manager.start(job_id, service.run_job(job_id, request))
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Dict, Optional

logger = logging.getLogger(__name__)


class JobManager:
    """Manages fire-and-forget asyncio.Tasks, one per job."""

    _tasks: Dict[str, asyncio.Task] = {}

    @classmethod
    def is_running(cls, job_id: str) -> bool:
        task = cls._tasks.get(job_id)
        return task is not None and not task.done()

    @classmethod
    def get_task(cls, job_id: str) -> Optional[asyncio.Task]:
        return cls._tasks.get(job_id)

    @classmethod
    def start(cls, job_id: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """
        Launch the background task for *job_id* and return immediately.

        Raises RuntimeError if a task for the same job id is still running,
        so a job can never have two writers.
        """
        if cls.is_running(job_id):
            coro.close()
            raise RuntimeError(f"A task is already running for job {job_id}")

        async def _wrapper() -> None:
            try:
                await coro
            except Exception as exc:
                # The worker records its own failures; anything reaching this
                # point escaped that handling (e.g. the job store went away).
                logger.error(
                    "Job task crashed for job %s: %s", job_id, exc, exc_info=True
                )

        task = asyncio.create_task(_wrapper(), name=f"assignment-job-{job_id}")
        cls._tasks[job_id] = task

        # Cleanup reference when done
        task.add_done_callback(lambda _t: cls._cleanup(job_id))

        logger.info("Job task started for job %s", job_id)
        return task

    @classmethod
    async def shutdown(cls) -> int:
        """
        Cancel every running task and wait for them to unwind.

        Called on application shutdown before the job store is disposed, so
        each worker can still record its job as failed.  Returns the number
        of tasks that were cancelled.
        """
        tasks = [task for task in cls._tasks.values() if not task.done()]
        if not tasks:
            return 0

        logger.warning("Cancelling %d running job task(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)

    @classmethod
    def _cleanup(cls, job_id: str) -> None:
        """Drop the task reference; the job row keeps the outcome."""
        cls._tasks.pop(job_id, None)


# Module-level singleton instance
job_manager = JobManager
