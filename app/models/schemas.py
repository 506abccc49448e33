"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


# Enums (matching database enums)
class JobStatusSchema(str, Enum):
    """Job statuses for API responses."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class _CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Assignment Schemas
class AssignmentRequest(_CamelModel):
    """Schema for an assignment generation request."""

    name: str = Field(..., min_length=2, max_length=100, pattern=r"^[a-zA-Z\s]+$")
    matric: str = Field(..., min_length=5, max_length=20)
    department: str = Field(..., min_length=3, max_length=100)
    course_code: str = Field(..., min_length=3, max_length=20)
    course_title: str = Field(..., min_length=5, max_length=200)
    lecturer_in_charge: str = Field(..., min_length=3, max_length=100)
    number_of_pages: int = Field(..., ge=1, le=100)
    word_count: Optional[int] = Field(None, ge=1)
    question: str = Field(..., min_length=10, max_length=2000)
    # Resolved by the renderer so unknown formats surface as a 400, not a 422
    file_type: str = Field("docx", max_length=10)


class AssignmentJsonData(_CamelModel):
    """Payload of a synchronous JSON assignment response."""

    assignment: str
    pages: int
    word_count: int
    timestamp: datetime


class AssignmentJsonResponse(BaseModel):
    """Schema for POST /generate-json on small requests."""

    success: bool = True
    data: AssignmentJsonData


class JobCreatedResponse(_CamelModel):
    """Returned when a request is handed to a background job."""

    job_id: str
    status: JobStatusSchema = JobStatusSchema.PENDING
    target_word_count: int
    message: str = "Assignment generation started. Poll the job status for progress."


class JobResultPayload(_CamelModel):
    """Encoded document and word-count telemetry stored on a completed job."""

    file_name: str
    mime_type: str
    buffer: str  # base64
    final_word_count: int
    target_word_count: int
    expansions_used: int


class JobStatusResponse(_CamelModel):
    """Schema for GET /jobs/{job_id}."""

    job_id: str
    status: JobStatusSchema
    progress: int = Field(..., ge=0, le=100)
    result: Optional[JobResultPayload] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ApiInfoResponse(BaseModel):
    """Schema for GET /info."""

    name: str
    version: str
    description: str
    endpoints: Dict[str, str]
    supported_file_types: List[str]


# Health Check
class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    ollama: str
    timestamp: datetime
    version: str = "0.1.0"

