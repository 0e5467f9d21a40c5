"""Temporal activity running one document generation job."""

from typing import Any, Dict
from uuid import UUID

from temporalio import activity
from temporalio.exceptions import ApplicationError

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.exceptions import AppError
from app.core.unified_llm import create_llm_client_from_settings
from app.services.generation.orchestrator import GenerationOutcome, build_generation_orchestrator
from app.temporal.core.constants import JOB_BUSINESS_PLAN, JOB_DELIVERABLE, JOB_RESUME
from app.temporal.core.registry import ActivityRegistry
from app.utils.logging import get_job_logger, get_logger

LOGGER = get_logger(__name__)


def outcome_payload(outcome: GenerationOutcome) -> Dict[str, Any]:
    return {
        "status": "COMPLETED",
        "job_id": outcome.job_id,
        "document_id": str(outcome.document_id),
        "document_type": outcome.document_type,
        "client_id": str(outcome.client_id),
        "version": outcome.version,
        "section_count": outcome.section_count,
        "total_tokens": outcome.total_tokens,
        "resumed": outcome.resumed,
        "month": outcome.month,
    }


@ActivityRegistry.register("generation", "run_generation_job")
@activity.defn
async def run_generation_job(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Generate a document, or continue it from its checkpoint on a retry.

    A failed attempt leaves a resumable checkpoint behind, so the next attempt
    of the same job only generates the sections that are still missing.
    Errors the caller has to fix (validation, conflicts, missing records)
    are raised as non-retryable.
    """
    job_id = payload["job_id"]
    kind = payload["kind"]
    user_id = payload["user_id"]
    log = get_job_logger(LOGGER, job_id, attempt=activity.info().attempt)

    async with async_session_maker() as session:
        orchestrator = build_generation_orchestrator(
            session, create_llm_client_from_settings(settings.llm)
        )
        try:
            checkpoint = await orchestrator.checkpoint_manager.get_checkpoint(job_id)
            if kind == JOB_RESUME or (checkpoint is not None and checkpoint.can_resume):
                log.info("Resuming generation job from checkpoint")
                outcome = await orchestrator.resume_job(job_id, user_id)
            elif kind == JOB_BUSINESS_PLAN:
                outcome = await orchestrator.generate_business_plan(
                    UUID(payload["client_id"]), user_id, job_id=job_id
                )
            elif kind == JOB_DELIVERABLE:
                outcome = await orchestrator.generate_deliverable(
                    UUID(payload["client_id"]), int(payload["month"]), user_id, job_id=job_id
                )
            else:
                raise ApplicationError(f"Unknown generation job kind: {kind}", non_retryable=True)
        except AppError as e:
            log.error(f"Generation job failed: {e.message}", exc_info=True)
            raise ApplicationError(
                e.message, type=e.code, non_retryable=not e.retryable
            ) from e

    log.info(f"Generation job completed with {outcome.section_count} sections")
    return outcome_payload(outcome)
