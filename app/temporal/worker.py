"""Temporal worker service for document generation.

This worker:
- Connects to the Temporal server configured in settings, with retries
- Registers every workflow and activity from the registries
- Serves a minimal health check endpoint next to the worker
"""

import asyncio
import os
from typing import Dict, List

import uvicorn
from fastapi import FastAPI
from temporalio.client import Client
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner, SandboxRestrictions

from app.core.config import settings
from app.temporal.core.constants import GENERATION_TASK_QUEUE
from app.temporal.core.registry import ActivityRegistry, WorkflowRegistry
from app.utils.logging import get_logger

# Importing the packages registers their workflows and activities
import app.temporal.activities  # noqa: F401
import app.temporal.workflows  # noqa: F401

logger = get_logger(__name__)

app = FastAPI(title="Temporal Worker Health Check")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "generation-worker"}


async def run_health_check_server():
    port = int(os.getenv("WORKER_HEALTH_PORT", 8001))
    logger.info(f"Starting health check server on port {port}")
    config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


async def connect_with_retries(max_retries: int = 5, retry_delay: int = 5) -> Client:
    """Connect to Temporal, retrying while the server starts up."""
    target = f"{settings.temporal_host}:{settings.temporal_port}"
    for attempt in range(max_retries):
        try:
            logger.info(f"Connecting to Temporal server at {target} (Attempt {attempt + 1}/{max_retries})")
            return await Client.connect(target_host=target, namespace=settings.temporal_namespace)
        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(f"Connection attempt {attempt + 1} failed: {e}. Retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
            else:
                logger.error(f"Failed to connect to Temporal server after {max_retries} attempts: {e}")
                raise


def workflows_by_queue() -> Dict[str, List[type]]:
    queues: Dict[str, List[type]] = {}
    for metadata in WorkflowRegistry.get_all_workflows().values():
        queues.setdefault(metadata.task_queue or GENERATION_TASK_QUEUE, []).append(metadata.workflow_class)
    return queues


async def run_workers():
    client = await connect_with_retries()
    activities = list(ActivityRegistry.get_all_activities().values())
    queues = workflows_by_queue()

    workers = []
    for queue_name, workflows in queues.items():
        logger.debug(f"Starting worker for queue: {queue_name} (Workflows: {[w.__name__ for w in workflows]})")
        worker = Worker(
            client,
            task_queue=queue_name,
            workflows=workflows,
            activities=activities,
            max_concurrent_activities=5,
            max_concurrent_workflow_tasks=20,
            workflow_runner=SandboxedWorkflowRunner(
                restrictions=SandboxRestrictions.default.with_passthrough_all_modules()
            ),
        )
        workers.append(worker.run())

    logger.info(
        f"Registered {sum(len(w) for w in queues.values())} workflows and {len(activities)} activities; "
        f"polling queues {list(queues)}"
    )
    await asyncio.gather(*workers)


async def main():
    await asyncio.gather(run_health_check_server(), run_workers())


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Workers stopped by user")
    except Exception as e:
        logger.error(f"Worker failed: {e}", exc_info=True)
        raise
