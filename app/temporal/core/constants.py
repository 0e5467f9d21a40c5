"""Shared constants for Temporal workflows."""

from app.core.config import settings

# Task Queues
GENERATION_TASK_QUEUE = settings.temporal_task_queue

# Timeouts
GENERATION_ACTIVITY_TIMEOUT_SECONDS = 1800  # a full sectioned document
GENERATION_MAX_ATTEMPTS = 3

# Job kinds carried in the workflow payload
JOB_BUSINESS_PLAN = "business_plan"
JOB_DELIVERABLE = "deliverable"
JOB_RESUME = "resume"
