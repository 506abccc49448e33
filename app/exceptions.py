"""
Domain exceptions raised by the assignment pipeline.

Routers translate these into HTTP responses; the background worker records
them on the job instead of raising.
"""
from __future__ import annotations


class AssignmentEngineError(Exception):
    """Base class for all pipeline errors."""


class GenerationError(AssignmentEngineError):
    """The text-generation collaborator failed or returned nothing usable."""


class UnsupportedFormatError(AssignmentEngineError, ValueError):
    """Requested output format is not one of docx, doc, pdf or txt."""

    def __init__(self, file_type: str) -> None:
        self.file_type = file_type
        super().__init__(f"Unsupported file type: {file_type!r}")


class JobNotFoundError(AssignmentEngineError, LookupError):
    """No job exists with the given identifier."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class DuplicateJobError(AssignmentEngineError):
    """A job with the given identifier already exists."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} already exists")
