"""
Job endpoints.

This router handles generic deferred jobs:
- Creating and enqueueing a job
- Polling job status, progress and result
- Cancelling a pending or running job
"""

import logging
from uuid import UUID

from fastapi import APIRouter, status

from app.api.dependencies.pipeline import Orchestrator, ProfileId
from app.models.job import Job
from app.schemas.job import CreateJobRequest, JobResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Create a job",
    description="Creates a pending job and hands it to a worker.",
)
async def create_job(
    request: CreateJobRequest,
    profile_id: ProfileId,
    orchestrator: Orchestrator,
) -> Job:
    return await orchestrator.create_and_submit(
        request.job_type,
        request.input_data,
        total_items=request.total_items,
        profile_id=profile_id,
    )


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get a job",
    description="Returns status, progress and, once terminal, the result or error of a job.",
)
async def get_job(job_id: UUID, orchestrator: Orchestrator) -> Job:
    return await orchestrator.get_job(job_id)


@router.post(
    "/{job_id}/cancel",
    response_model=JobResponse,
    summary="Cancel a job",
    description=(
        "Cancels a pending job immediately. A running job is flagged and stops "
        "at its next checkpoint; poll it until the status is cancelled."
    ),
)
async def cancel_job(job_id: UUID, orchestrator: Orchestrator) -> Job:
    return await orchestrator.cancel_job(job_id)
