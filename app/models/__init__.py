"""Database and schema models for the Assignment Engine."""
from app.models.database_models import (
    Job,
    JobStatus,
)
from app.models.schemas import (
    AssignmentRequest,
    AssignmentJsonResponse,
    JobCreatedResponse,
    JobResultPayload,
    JobStatusResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "Job",
    "JobStatus",
    # Pydantic schemas
    "AssignmentRequest",
    "AssignmentJsonResponse",
    "JobCreatedResponse",
    "JobResultPayload",
    "JobStatusResponse",
    "HealthCheckResponse",
]
