"""Durable workflow wrapping a document generation job."""

from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

from app.temporal.core.constants import (
    GENERATION_ACTIVITY_TIMEOUT_SECONDS,
    GENERATION_MAX_ATTEMPTS,
    GENERATION_TASK_QUEUE,
)
from app.temporal.core.registry import WorkflowRegistry


@WorkflowRegistry.register(task_queue=GENERATION_TASK_QUEUE)
@workflow.defn
class DocumentGenerationWorkflow:
    """Runs ``run_generation_job`` with retries.

    Each retry of the activity resumes from the job's checkpoint instead of
    starting over.
    """

    def __init__(self):
        self._status = "initialized"
        self._job_id: Optional[str] = None
        self._result: Optional[Dict[str, Any]] = None

    @workflow.query
    def get_status(self) -> dict:
        """Query handler for real-time status updates."""
        return {
            "status": self._status,
            "job_id": self._job_id,
            "document_id": self._result.get("document_id") if self._result else None,
        }

    @workflow.run
    async def run(self, payload: Dict[str, Any]) -> dict:
        self._job_id = payload.get("job_id")
        self._status = "generating"

        try:
            self._result = await workflow.execute_activity(
                "run_generation_job",
                payload,
                start_to_close_timeout=timedelta(seconds=GENERATION_ACTIVITY_TIMEOUT_SECONDS),
                retry_policy=RetryPolicy(
                    initial_interval=timedelta(seconds=10),
                    backoff_coefficient=2.0,
                    maximum_attempts=GENERATION_MAX_ATTEMPTS,
                ),
            )
        except Exception:
            self._status = "failed"
            raise

        self._status = "completed"
        return self._result
