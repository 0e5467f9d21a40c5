"""Start generation jobs as Temporal workflows."""

from typing import Any, Dict, Optional
from uuid import UUID

from temporalio.client import Client as TemporalClient

from app.core.exceptions import AppError
from app.core.temporal_client import get_temporal_client
from app.database.models import DocumentType
from app.services.generation.orchestrator import new_job_id
from app.temporal.core.constants import GENERATION_TASK_QUEUE, JOB_BUSINESS_PLAN, JOB_RESUME
from app.temporal.workflows.document_generation import DocumentGenerationWorkflow
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def start_generation_workflow(
    temporal_client: TemporalClient,
    kind: str,
    user_id: str,
    client_id: Optional[UUID] = None,
    month: Optional[int] = None,
    job_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Start a background generation job and return its identifiers.

    The Temporal workflow id is derived from the job id, so starting the same
    job twice is rejected by Temporal rather than generating twice.
    """
    if job_id is None:
        document_type = (
            DocumentType.BUSINESS_PLAN.value if kind == JOB_BUSINESS_PLAN else DocumentType.DELIVERABLE.value
        )
        job_id = new_job_id(document_type)

    payload = {
        "kind": kind,
        "job_id": job_id,
        "user_id": user_id,
        "client_id": str(client_id) if client_id else None,
        "month": month,
    }
    workflow_id = f"generation-{job_id}" if kind != JOB_RESUME else f"generation-{job_id}-resume"

    try:
        handle = await temporal_client.start_workflow(
            DocumentGenerationWorkflow.run,
            payload,
            id=workflow_id,
            task_queue=GENERATION_TASK_QUEUE,
        )
    except Exception as e:
        LOGGER.error(
            f"Failed to start generation workflow: {str(e)}",
            exc_info=True,
            extra={"job_id": job_id, "kind": kind},
        )
        raise AppError(f"Failed to start generation workflow: {str(e)}", original_error=e) from e

    LOGGER.info(f"Generation workflow started: {handle.id}", extra={"job_id": job_id})
    return {"job_id": job_id, "workflow_id": handle.id, "status": "STARTED"}


class GenerationJobDispatcher:
    """Starts background jobs, connecting to Temporal only when needed."""

    async def start(
        self,
        kind: str,
        user_id: str,
        client_id: Optional[UUID] = None,
        month: Optional[int] = None,
        job_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        temporal_client = await get_temporal_client()
        return await start_generation_workflow(
            temporal_client, kind, user_id, client_id=client_id, month=month, job_id=job_id
        )
