from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.v1.deps import CurrentUserId, JobDispatcher, Orchestrator, get_checkpoint_manager
from app.core.exceptions import NotFoundError
from app.schemas.common import ApiResponse
from app.schemas.generation import (
    CheckpointCleanupRequest,
    CheckpointResponse,
    GenerationOutcomeResponse,
    ResumeJobRequest,
)
from app.services.generation.checkpoint_manager import CheckpointManager
from app.temporal.core.constants import JOB_RESUME
from app.utils.responses import create_api_response

router = APIRouter()

Checkpoints = Annotated[CheckpointManager, Depends(get_checkpoint_manager)]


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List resumable checkpoints",
    operation_id="list_resumable_checkpoints",
)
async def list_resumable_checkpoints(
    request: Request,
    user_id: CurrentUserId,
    manager: Checkpoints,
    client_id: Optional[UUID] = Query(None),
) -> ApiResponse:
    checkpoints = await manager.get_resumable_checkpoints(client_id)
    return create_api_response(
        data=[CheckpointResponse.model_validate(c) for c in checkpoints],
        message=f"Found {len(checkpoints)} resumable checkpoints",
        request=request,
    )


@router.get(
    "/{job_id}",
    response_model=ApiResponse,
    summary="Get checkpoint progress",
    operation_id="get_checkpoint",
)
async def get_checkpoint(
    request: Request,
    job_id: str,
    user_id: CurrentUserId,
    manager: Checkpoints,
) -> ApiResponse:
    checkpoint = await manager.get_checkpoint(job_id)
    if checkpoint is None:
        raise NotFoundError("Checkpoint", job_id)
    return create_api_response(
        data=CheckpointResponse.model_validate(checkpoint),
        message=f"Job is {checkpoint.progress}% complete",
        request=request,
    )


@router.post(
    "/resume",
    response_model=ApiResponse,
    summary="Resume a failed or interrupted generation job",
    operation_id="resume_generation_job",
)
async def resume_job(
    request: Request,
    body: ResumeJobRequest,
    user_id: CurrentUserId,
    orchestrator: Orchestrator,
    dispatcher: JobDispatcher,
) -> ApiResponse:
    if body.background:
        started = await dispatcher.start(JOB_RESUME, user_id, job_id=body.job_id)
        return create_api_response(data=started, message="Job resume started", request=request)

    outcome = await orchestrator.resume_job(body.job_id, user_id)
    return create_api_response(
        data=GenerationOutcomeResponse(**vars(outcome)),
        message=f"Resumed job {body.job_id}",
        request=request,
    )


@router.delete(
    "/{job_id}",
    response_model=ApiResponse,
    summary="Delete a checkpoint",
    operation_id="delete_checkpoint",
)
async def delete_checkpoint(
    request: Request,
    job_id: str,
    user_id: CurrentUserId,
    manager: Checkpoints,
) -> ApiResponse:
    await manager.delete_checkpoint(job_id)
    return create_api_response(
        data={"job_id": job_id}, message="Checkpoint deleted", request=request
    )


@router.post(
    "/cleanup",
    response_model=ApiResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete old completed checkpoints",
    operation_id="cleanup_checkpoints",
)
async def cleanup_checkpoints(
    request: Request,
    body: CheckpointCleanupRequest,
    user_id: CurrentUserId,
    manager: Checkpoints,
) -> ApiResponse:
    removed = await manager.cleanup_old_checkpoints(body.retention_days)
    return create_api_response(
        data={"deleted": removed}, message=f"Deleted {removed} checkpoints", request=request
    )
