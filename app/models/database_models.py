"""
SQLAlchemy ORM models for the Assignment Engine database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Enum as SQLEnum,
    JSON,
)
from sqlalchemy.sql import func
import enum

from app.database import Base


# Enums
class JobStatus(str, enum.Enum):
    """Lifecycle states of a background assignment job."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Statuses from which a job may still be mutated
ACTIVE_JOB_STATUSES = (JobStatus.PENDING, JobStatus.IN_PROGRESS)


# Models
class Job(Base):
    """Background assembly job polled by the client."""

    __tablename__ = "jobs"

    job_id = Column(String(64), primary_key=True)
    status = Column(
        SQLEnum(JobStatus, name="jobstatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )
    progress = Column(Integer, nullable=False, default=0)  # 0-100

    # Encoded document plus word-count telemetry, set on completion
    result = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
