"""
Assignment generation endpoints.

Route summary
-------------
POST /generate              small: file download; large: 202 + job handle.
POST /generate-json         small: cleaned text as JSON; large: 202 + job handle.
GET  /jobs/{job_id}         poll a background job.
GET  /jobs/{job_id}/download download the file of a completed job.
GET  /info                  API description.
"""
from __future__ import annotations

import base64
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from app.exceptions import GenerationError, JobNotFoundError, UnsupportedFormatError
from app.models.database_models import JobStatus
from app.models.schemas import (
    ApiInfoResponse,
    AssignmentJsonData,
    AssignmentJsonResponse,
    AssignmentRequest,
    JobCreatedResponse,
    JobResultPayload,
    JobStatusResponse,
)
from app.services.assignment_service import AssignmentService, JobHandle
from app.services.document_renderer import SUPPORTED_FILE_TYPES, StudentInfo
from app.services.job_tracker import JobSnapshot, JobTracker
from app.services.markdown_parser import clean_markdown
from app.services.text_generator import OllamaTextGenerator
from app.services.word_budget import estimate_pages, estimate_word_count

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Dependencies ─────────────────────────────────────────────────────────────

def get_assignment_service() -> AssignmentService:
    """One service per request, backed by Ollama and the shared job store."""
    return AssignmentService(generator=OllamaTextGenerator(), tracker=JobTracker())


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _job_created(handle: JobHandle) -> JSONResponse:
    body = JobCreatedResponse(job_id=handle.job_id, target_word_count=handle.target_word_count)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=body.model_dump(mode="json", by_alias=True),
    )


def _job_status(snapshot: JobSnapshot) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=snapshot.job_id,
        status=snapshot.status.value,
        progress=snapshot.progress,
        result=JobResultPayload.model_validate(snapshot.result) if snapshot.result else None,
        error=snapshot.error,
        created_at=snapshot.created_at,
        updated_at=snapshot.updated_at,
    )


async def _plan_and_assemble(service: AssignmentService, request: AssignmentRequest):
    """Run the pipeline, translating domain errors into HTTP errors."""
    try:
        return await service.plan_and_assemble(request)
    except UnsupportedFormatError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except GenerationError as exc:
        logger.error("Generation failed for matric %s: %s", request.matric, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


# ─── Generation ───────────────────────────────────────────────────────────────

@router.post(
    "/generate",
    summary="Generate an assignment file (docx, doc, pdf, txt)",
    responses={202: {"model": JobCreatedResponse}},
)
async def generate_assignment(
    request: AssignmentRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> Response:
    """
    Generate an assignment and return it as a file download.

    Requests above 3 pages or 1500 words are answered with **202** and a
    ``jobId``; poll ``GET /jobs/{jobId}`` and fetch the file from
    ``GET /jobs/{jobId}/download`` when it completes.
    """
    outcome = await _plan_and_assemble(service, request)
    if isinstance(outcome, JobHandle):
        return _job_created(outcome)

    rendered = await service.render_to_buffer(
        outcome.content,
        StudentInfo.from_request(request),
        request.question,
        request.file_type,
    )
    logger.info(
        "generate: %s, %d/%d words",
        rendered.file_name,
        outcome.final_word_count,
        outcome.target_word_count,
    )
    return Response(
        content=rendered.buffer,
        media_type=rendered.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.file_name}"'},
    )


@router.post(
    "/generate-json",
    response_model=AssignmentJsonResponse,
    summary="Generate an assignment as cleaned text",
    responses={202: {"model": JobCreatedResponse}},
)
async def generate_assignment_json(
    request: AssignmentRequest,
    service: AssignmentService = Depends(get_assignment_service),
):
    """
    Generate an assignment and return Markdown-free text with word and page
    estimates.  Large requests are handed to a background job (202).
    """
    outcome = await _plan_and_assemble(service, request)
    if isinstance(outcome, JobHandle):
        return _job_created(outcome)

    cleaned = clean_markdown(outcome.content)
    return AssignmentJsonResponse(
        data=AssignmentJsonData(
            assignment=cleaned,
            pages=estimate_pages(cleaned),
            word_count=estimate_word_count(cleaned),
            timestamp=datetime.utcnow(),
        )
    )


# ─── Jobs ─────────────────────────────────────────────────────────────────────

@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    service: AssignmentService = Depends(get_assignment_service),
) -> JobStatusResponse:
    """Poll a background job's status, progress and (when done) result."""
    try:
        snapshot = await service.get_job_status(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return _job_status(snapshot)


@router.get("/jobs/{job_id}/download")
async def download_job_result(
    job_id: str,
    service: AssignmentService = Depends(get_assignment_service),
) -> Response:
    """Return the rendered file of a completed job."""
    try:
        snapshot = await service.get_job_status(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    if snapshot.status != JobStatus.COMPLETED or not snapshot.result:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Job {job_id} is {snapshot.status.value}, no file available yet.",
        )

    payload = JobResultPayload.model_validate(snapshot.result)
    return Response(
        content=base64.b64decode(payload.buffer),
        media_type=payload.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.file_name}"'},
    )


# ─── Info ─────────────────────────────────────────────────────────────────────

@router.get("/info", response_model=ApiInfoResponse)
async def get_api_info() -> ApiInfoResponse:
    """Describe the assignment API."""
    return ApiInfoResponse(
        name="Assignment Engine API",
        version="0.1.0",
        description="Target-length academic assignment generation with DOCX/PDF/TXT export",
        endpoints={
            "POST /api/assignments/generate": "Generate an assignment file (doc, docx, pdf, txt)",
            "POST /api/assignments/generate-json": "Generate an assignment (JSON response)",
            "GET /api/assignments/jobs/{jobId}": "Poll a background generation job",
            "GET /api/assignments/jobs/{jobId}/download": "Download a completed job's file",
            "GET /api/health/": "Health check",
        },
        supported_file_types=list(SUPPORTED_FILE_TYPES),
    )
