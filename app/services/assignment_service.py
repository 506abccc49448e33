"""
Assignment pipeline orchestrator.

Public API
----------
AssignmentService.plan_and_assemble(request)
    → AssemblyResult (small request, generated inline)
    → JobHandle      (large request, generated by a background task)

AssignmentService.run_job(job_id, request)
    Background worker body: plan → expand → render → store result on the job.

AssignmentService.get_job_status(job_id) → JobSnapshot
AssignmentService.render_to_buffer(content, metadata, file_type) → RenderedDocument
"""
from __future__ import annotations

import asyncio
import base64
import dataclasses
import logging
import time
from typing import Any, Dict, Optional, Union

from app.config import settings
from app.models.schemas import AssignmentRequest
from app.services.document_renderer import (
    DocumentFormat,
    DocumentRenderer,
    RenderedDocument,
    StudentInfo,
    resolve_format,
)
from app.services.expansion import AssemblyResult, ExpansionController
from app.services.job_manager import JobManager, job_manager
from app.services.job_tracker import JobSnapshot, JobTracker
from app.services.markdown_parser import strip_references
from app.services.section_planner import plan_sections
from app.services.text_generator import TextGenerator
from app.services.word_budget import resolve_target_words
from app.utils.helpers import generate_job_id, truncate_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class JobHandle:
    """Returned instead of content when a request is handed to a background job."""

    job_id: str
    target_word_count: int


def is_small_request(request: AssignmentRequest, target_words: int) -> bool:
    """Small requests (≤ 3 pages and ≤ 1500 words) are generated inline."""
    return (
        request.number_of_pages <= settings.SYNC_MAX_PAGES
        and target_words <= settings.SYNC_MAX_WORDS
    )


def build_result_payload(rendered: RenderedDocument, assembly: AssemblyResult) -> Dict[str, Any]:
    """The JSON document persisted on a completed job."""
    return {
        "fileName": rendered.file_name,
        "mimeType": rendered.mime_type,
        "buffer": base64.b64encode(rendered.buffer).decode("ascii"),
        "finalWordCount": assembly.final_word_count,
        "targetWordCount": assembly.target_word_count,
        "expansionsUsed": assembly.expansions_used,
    }


# ---------------------------------------------------------------------------
# AssignmentService
# ---------------------------------------------------------------------------

class AssignmentService:
    """
    Coordinates planning, expansion, job tracking and rendering.

    Collaborators are injected so the router can build one per request and
    tests can substitute a scripted generator and a throwaway job store.
    """

    def __init__(
        self,
        generator: TextGenerator,
        tracker: Optional[JobTracker] = None,
        renderer: Optional[DocumentRenderer] = None,
        manager: type[JobManager] = job_manager,
    ) -> None:
        self._generator = generator
        self._tracker = tracker or JobTracker()
        self._renderer = renderer or DocumentRenderer()
        self._manager = manager

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def plan_and_assemble(
        self, request: AssignmentRequest
    ) -> Union[AssemblyResult, JobHandle]:
        """
        Generate a small request inline, or start a background job for a
        large one and return its handle without waiting.

        Raises:
            UnsupportedFormatError: before any work starts, for an unknown file type.
            GenerationError: small requests only, from the generator.
        """
        resolve_format(request.file_type)
        target_words = resolve_target_words(request.number_of_pages, request.word_count)

        if is_small_request(request, target_words):
            logger.info("plan_and_assemble: inline generation of %d words", target_words)
            return await self.assemble(request, target_words)

        job_id = generate_job_id()
        await self._tracker.create(job_id)
        snapshot = request.model_copy(deep=True)
        self._manager.start(job_id, self.run_job(job_id, snapshot))
        logger.info(
            "plan_and_assemble: job %s dispatched for %d words", job_id, target_words
        )
        return JobHandle(job_id=job_id, target_word_count=target_words)

    async def assemble(
        self,
        request: AssignmentRequest,
        target_words: int,
        job_id: Optional[str] = None,
    ) -> AssemblyResult:
        """Plan and expand; reports progress on *job_id* when given."""
        plan = plan_sections(target_words, request.question)
        controller = ExpansionController(self._generator)

        on_progress = None
        if job_id is not None:
            async def on_progress(progress: int) -> None:
                await self._tracker.update_progress(job_id, progress)

        result = await controller.assemble(plan, request, target_words, on_progress=on_progress)
        return dataclasses.replace(result, content=strip_references(result.content))

    # ------------------------------------------------------------------
    # Background worker
    # ------------------------------------------------------------------

    async def run_job(self, job_id: str, request: AssignmentRequest) -> None:
        """
        Execute one job to completion or failure.

        Never raises for pipeline errors: they are written onto the job as
        ``failed`` with the error message.  Cancellation also marks the job
        ``failed`` and is then re-raised.
        """
        t0 = time.monotonic()
        target_words = resolve_target_words(request.number_of_pages, request.word_count)

        try:
            await self._tracker.start(job_id)
            assembly = await self.assemble(request, target_words, job_id=job_id)
            rendered = await self.render_to_buffer(
                assembly.content, StudentInfo.from_request(request), request.question, request.file_type
            )
            await self._tracker.complete(job_id, build_result_payload(rendered, assembly))
        except asyncio.CancelledError:
            logger.warning("run_job: job %s cancelled", job_id)
            await self._tracker.fail(job_id, "Job cancelled: server shutting down")
            raise
        except Exception as exc:
            logger.error("run_job: job %s failed: %s", job_id, exc, exc_info=True)
            await self._tracker.fail(job_id, truncate_text(str(exc) or type(exc).__name__, 500))
            return

        logger.info(
            "run_job: job %s done in %.2fs (%d/%d words, %d expansion(s))",
            job_id,
            time.monotonic() - t0,
            assembly.final_word_count,
            target_words,
            assembly.expansions_used,
        )

    # ------------------------------------------------------------------
    # Status / rendering
    # ------------------------------------------------------------------

    async def get_job_status(self, job_id: str) -> JobSnapshot:
        """Raises JobNotFoundError for an unknown id."""
        return await self._tracker.get(job_id)

    async def render_to_buffer(
        self,
        content: str,
        metadata: StudentInfo,
        question: str,
        file_type: str,
    ) -> RenderedDocument:
        """Render off the event loop; raises UnsupportedFormatError."""
        document_format = DocumentFormat(student_info=metadata, question=question, content=content)
        return await asyncio.to_thread(self._renderer.render, document_format, file_type)
