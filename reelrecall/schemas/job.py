"""
Schemas for ingestion jobs and the video submission API.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from reelrecall.schemas.analysis import SourceAnalysis, SubmissionMetadata


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    RETRY_SCHEDULED = "retry_scheduled"
    COMPLETED = "completed"
    FAILED = "failed"


class IngestionJob(BaseModel):
    """
    One submitted video moving through the queue.

    Mutated only by the queue's drain loop. ``analysis`` is set when the
    submitter already holds the structured analysis; otherwise the video
    analyzer is called on each attempt.
    """

    job_id: str
    user_id: str
    video_url: str
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)
    analysis: Optional[SourceAnalysis] = None
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    created_at: datetime
    last_attempt_time: Optional[float] = Field(
        None, description="Monotonic clock reading of the last attempt"
    )
    last_error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)


class SubmitResult(BaseModel):
    job_id: Optional[str] = None
    already_processed: bool = False


# ========================================
# API Schemas
# ========================================

class SubmitVideoRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=200)
    video_url: str = Field(..., min_length=1, max_length=2000)
    metadata: SubmissionMetadata = Field(default_factory=SubmissionMetadata)
    analysis: Optional[SourceAnalysis] = Field(
        None, description="Precomputed analysis; skips the analysis service"
    )

    @field_validator("user_id", "video_url")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be empty")
        return v


class SubmitVideoResponse(BaseModel):
    status: str = Field(..., examples=["queued", "already_processed"])
    job_id: Optional[str] = None
    message: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: JobStatus
    attempts: int
    max_attempts: int
    last_error: Optional[str] = None


class QueueStatusResponse(BaseModel):
    pending: int
    draining: bool
    job_ids: List[str] = Field(default_factory=list)
