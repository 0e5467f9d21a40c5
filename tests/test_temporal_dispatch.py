"""Tests for starting background generation jobs."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.core.exceptions import AppError
from app.services.generation.orchestrator import GenerationOutcome
from app.temporal.activities.generation import outcome_payload
from app.temporal.core.constants import GENERATION_TASK_QUEUE, JOB_DELIVERABLE, JOB_RESUME
from app.temporal.dispatch import start_generation_workflow


def temporal_client() -> AsyncMock:
    client = AsyncMock()
    client.start_workflow.side_effect = lambda *args, **kwargs: SimpleNamespace(id=kwargs["id"])
    return client


@pytest.mark.asyncio
async def test_workflow_id_is_derived_from_job_id():
    client = temporal_client()
    client_id = uuid4()

    started = await start_generation_workflow(client, JOB_DELIVERABLE, "staff-1", client_id=client_id, month=2)

    assert started["job_id"].startswith("dl-")
    assert started["workflow_id"] == f"generation-{started['job_id']}"
    payload = client.start_workflow.call_args.args[1]
    assert payload == {
        "kind": JOB_DELIVERABLE,
        "job_id": started["job_id"],
        "user_id": "staff-1",
        "client_id": str(client_id),
        "month": 2,
    }
    assert client.start_workflow.call_args.kwargs["task_queue"] == GENERATION_TASK_QUEUE


@pytest.mark.asyncio
async def test_resume_keeps_the_job_id():
    client = temporal_client()

    started = await start_generation_workflow(client, JOB_RESUME, "staff-1", job_id="bp-7")

    assert started == {"job_id": "bp-7", "workflow_id": "generation-bp-7-resume", "status": "STARTED"}


@pytest.mark.asyncio
async def test_start_failure_is_wrapped():
    client = AsyncMock()
    client.start_workflow.side_effect = RuntimeError("temporal unreachable")

    with pytest.raises(AppError) as exc_info:
        await start_generation_workflow(client, JOB_RESUME, "staff-1", job_id="bp-7")

    assert "temporal unreachable" in exc_info.value.message


def test_outcome_payload_is_json_friendly():
    client_id = uuid4()
    document_id = uuid4()
    outcome = GenerationOutcome(
        job_id="bp-1",
        document_id=document_id,
        document_type="BUSINESS_PLAN",
        client_id=client_id,
        version=2,
        section_count=8,
        total_tokens=2400,
        resumed=True,
    )

    payload = outcome_payload(outcome)

    assert payload["status"] == "COMPLETED"
    assert payload["document_id"] == str(document_id)
    assert payload["client_id"] == str(client_id)
    assert payload["resumed"] is True
    assert payload["month"] is None
