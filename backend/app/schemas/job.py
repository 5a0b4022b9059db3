"""
Pydantic schemas for the job API.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.job import JobStatus, JobType


class CreateJobRequest(BaseModel):
    """Request schema for creating and enqueueing a job."""

    job_type: JobType = Field(..., description="Handler to run the job with")
    input_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Handler payload, e.g. {'items': [...], 'analysisType': 'backlinks'}",
    )
    total_items: Optional[int] = Field(
        None,
        ge=0,
        description="Expected progress steps; derived from input_data when omitted",
    )


class JobResponse(BaseModel):
    """Response schema for a job and its progress."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    profile_id: Optional[UUID] = None
    job_type: str
    status: JobStatus
    progress: int
    total_items: int
    input_data: dict[str, Any]
    result_data: Optional[Any] = None
    error_message: Optional[str] = None
    cancel_requested: bool
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
