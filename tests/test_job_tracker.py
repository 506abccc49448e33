"""Tests for the persisted job state machine."""
import pytest

from app.exceptions import DuplicateJobError, JobNotFoundError
from app.models.database_models import JobStatus
from app.services.job_tracker import JobTracker

RESULT = {
    "fileName": "assignment_X.txt",
    "mimeType": "text/plain",
    "buffer": "aGk=",
    "finalWordCount": 10,
    "targetWordCount": 10,
    "expansionsUsed": 0,
}


@pytest.mark.asyncio
async def test_create_and_get(tracker: JobTracker):
    created = await tracker.create("job-1")
    assert created.status == JobStatus.PENDING
    assert created.progress == 0
    assert created.result is None

    fetched = await tracker.get("job-1")
    assert fetched.job_id == "job-1"
    assert fetched.status == JobStatus.PENDING
    assert fetched.created_at is not None


@pytest.mark.asyncio
async def test_duplicate_create_is_rejected(tracker: JobTracker):
    await tracker.create("job-1")
    with pytest.raises(DuplicateJobError):
        await tracker.create("job-1")


@pytest.mark.asyncio
async def test_get_unknown_job_raises(tracker: JobTracker):
    with pytest.raises(JobNotFoundError):
        await tracker.get("missing")


@pytest.mark.asyncio
async def test_start_only_from_pending(tracker: JobTracker):
    await tracker.create("job-1")
    assert await tracker.start("job-1") is True
    assert (await tracker.get("job-1")).status == JobStatus.IN_PROGRESS
    assert await tracker.start("job-1") is False


@pytest.mark.asyncio
async def test_progress_is_clamped(tracker: JobTracker):
    await tracker.create("job-1")
    await tracker.start("job-1")

    await tracker.update_progress("job-1", 150)
    assert (await tracker.get("job-1")).progress == 100

    await tracker.update_progress("job-1", -5)
    assert (await tracker.get("job-1")).progress == 0

    await tracker.update_progress("job-1", 42)
    assert (await tracker.get("job-1")).progress == 42


@pytest.mark.asyncio
async def test_complete_forces_progress_and_stores_result(tracker: JobTracker):
    await tracker.create("job-1")
    await tracker.start("job-1")
    await tracker.update_progress("job-1", 60)

    assert await tracker.complete("job-1", RESULT) is True

    job = await tracker.get("job-1")
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.result == RESULT
    assert job.error is None


@pytest.mark.asyncio
async def test_terminal_job_ignores_later_writes(tracker: JobTracker):
    await tracker.create("job-1")
    await tracker.start("job-1")
    await tracker.complete("job-1", RESULT)

    assert await tracker.update_progress("job-1", 10) is False
    assert await tracker.fail("job-1", "too late") is False
    assert await tracker.complete("job-1", {"other": True}) is False

    job = await tracker.get("job-1")
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.result == RESULT
    assert job.error is None


@pytest.mark.asyncio
async def test_failed_job_keeps_error(tracker: JobTracker):
    await tracker.create("job-1")
    await tracker.start("job-1")
    await tracker.update_progress("job-1", 30)

    assert await tracker.fail("job-1", "model overloaded") is True
    assert await tracker.complete("job-1", RESULT) is False

    job = await tracker.get("job-1")
    assert job.status == JobStatus.FAILED
    assert job.status.is_terminal
    assert job.error == "model overloaded"
    assert job.progress == 30
    assert job.result is None


@pytest.mark.asyncio
async def test_pending_job_can_fail(tracker: JobTracker):
    await tracker.create("job-1")
    assert await tracker.fail("job-1", "boom") is True
    assert (await tracker.get("job-1")).status == JobStatus.FAILED


@pytest.mark.asyncio
async def test_updates_on_unknown_job_are_noops(tracker: JobTracker):
    assert await tracker.update_progress("missing", 50) is False
    assert await tracker.complete("missing", RESULT) is False


@pytest.mark.asyncio
async def test_pending_job_cannot_complete(tracker: JobTracker):
    await tracker.create("job-1")

    assert await tracker.complete("job-1", RESULT) is False

    job = await tracker.get("job-1")
    assert job.status == JobStatus.PENDING
    assert job.progress == 0
    assert job.result is None
