"""Durable progress tracking for generation jobs.

Checkpoint state machine per ``job_id``::

    (none) --save--> IN_PROGRESS --save--> IN_PROGRESS
    IN_PROGRESS --complete--> COMPLETED (can_resume=False, terminal)
    IN_PROGRESS --fail--> FAILED (can_resume=True) --save--> IN_PROGRESS
    any --delete/cleanup--> (none)

Persistence failures are raised as ``CheckpointPersistenceError`` after the
session is rolled back, and operations on an unknown job raise
``CheckpointNotFoundError``, so a job never continues on the belief that its
progress was saved.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, NoReturn, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import CheckpointNotFoundError, CheckpointPersistenceError
from app.database.models import CheckpointStatus, GenerationCheckpoint, utcnow
from app.repositories.checkpoint_repository import CheckpointRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class CheckpointData:
    """Progress snapshot written after each completed section."""

    job_id: str
    job_type: str
    client_id: UUID
    total_sections: int
    completed_sections: int
    current_section: int
    generated_content: List[Dict[str, Any]] = field(default_factory=list)
    prompt_context: Dict[str, Any] = field(default_factory=dict)
    document_id: Optional[UUID] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class CheckpointView:
    """A stored checkpoint with its JSON columns decoded."""

    job_id: str
    job_type: str
    client_id: UUID
    status: str
    total_sections: int
    completed_sections: int
    current_section: int
    generated_content: List[Dict[str, Any]]
    prompt_context: Dict[str, Any]
    can_resume: bool
    document_id: Optional[UUID] = None
    metadata: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def progress(self) -> int:
        return calculate_progress(self.completed_sections, self.total_sections)


def calculate_progress(completed_sections: int, total_sections: int) -> int:
    """Percent complete, rounded half up; 0 when there is nothing to do."""
    if total_sections <= 0:
        return 0
    return math.floor(100 * completed_sections / total_sections + 0.5)


def to_view(row: GenerationCheckpoint) -> CheckpointView:
    return CheckpointView(
        job_id=row.job_id,
        job_type=row.job_type,
        client_id=row.client_id,
        status=row.status,
        total_sections=row.total_sections,
        completed_sections=row.completed_sections,
        current_section=row.current_section,
        generated_content=json.loads(row.generated_content or "[]"),
        prompt_context=json.loads(row.prompt_context or "{}"),
        can_resume=row.can_resume,
        document_id=row.document_id,
        metadata=json.loads(row.job_metadata) if row.job_metadata else None,
        error_message=row.error_message,
        created_at=row.created_at,
        updated_at=row.updated_at,
        completed_at=row.completed_at,
    )


class CheckpointManager:
    """Reads and writes ``GenerationCheckpoint`` rows."""

    def __init__(self, repository: CheckpointRepository):
        self.repository = repository

    async def save_checkpoint(self, data: CheckpointData) -> CheckpointView:
        """Upsert progress for ``data.job_id`` and force status back to IN_PROGRESS."""
        try:
            row = await self.repository.get_by_job_id(data.job_id)
            if row is None:
                try:
                    row = await self._insert(data)
                except IntegrityError:
                    # Another writer created the row first
                    await self.repository.rollback()
                    row = await self.repository.get_by_job_id(data.job_id)
                    if row is None:
                        raise
                    await self._apply_progress(row, data)
            else:
                await self._apply_progress(row, data)
        except SQLAlchemyError as e:
            await self._rollback_and_raise("save", data.job_id, e)

        LOGGER.debug(
            f"Checkpoint saved: {data.completed_sections}/{data.total_sections}",
            extra={"job_id": data.job_id},
        )
        return to_view(row)

    async def get_checkpoint(self, job_id: str) -> Optional[CheckpointView]:
        """Checkpoint for ``job_id``, or None when there is none."""
        try:
            row = await self.repository.get_by_job_id(job_id)
        except SQLAlchemyError as e:
            await self._rollback_and_raise("read", job_id, e)
        return to_view(row) if row is not None else None

    async def complete_checkpoint(self, job_id: str) -> CheckpointView:
        now = utcnow()
        return await self._transition(
            job_id,
            "complete",
            status=CheckpointStatus.COMPLETED.value,
            can_resume=False,
            completed_at=now,
            updated_at=now,
        )

    async def fail_checkpoint(self, job_id: str, error_message: Optional[str] = None) -> CheckpointView:
        return await self._transition(
            job_id,
            "fail",
            status=CheckpointStatus.FAILED.value,
            can_resume=True,
            error_message=error_message,
            updated_at=utcnow(),
        )

    async def delete_checkpoint(self, job_id: str) -> None:
        try:
            deleted = await self.repository.delete_by_job_id(job_id)
        except SQLAlchemyError as e:
            await self._rollback_and_raise("delete", job_id, e)
        if not deleted:
            raise CheckpointNotFoundError(job_id)
        LOGGER.info("Checkpoint deleted", extra={"job_id": job_id})

    async def get_resumable_checkpoints(self, client_id: Optional[UUID] = None) -> List[CheckpointView]:
        try:
            rows = await self.repository.list_resumable(client_id)
        except SQLAlchemyError as e:
            await self._rollback_and_raise("list", "*", e)
        return [to_view(row) for row in rows]

    async def cleanup_old_checkpoints(self, retention_days: Optional[int] = None) -> int:
        """Delete COMPLETED checkpoints older than the retention window."""
        days = settings.generation.checkpoint_retention_days if retention_days is None else retention_days
        cutoff = utcnow() - timedelta(days=days)
        try:
            removed = await self.repository.delete_completed_before(cutoff)
        except SQLAlchemyError as e:
            await self._rollback_and_raise("cleanup", "*", e)
        LOGGER.info(f"Cleaned up {removed} completed checkpoints older than {days} days")
        return removed

    async def _insert(self, data: CheckpointData) -> GenerationCheckpoint:
        now = utcnow()
        return await self.repository.create(
            job_id=data.job_id,
            job_type=data.job_type,
            client_id=data.client_id,
            status=CheckpointStatus.IN_PROGRESS.value,
            total_sections=data.total_sections,
            completed_sections=data.completed_sections,
            current_section=data.current_section,
            document_id=data.document_id,
            generated_content=json.dumps(data.generated_content),
            prompt_context=json.dumps(data.prompt_context),
            job_metadata=json.dumps(data.metadata) if data.metadata else None,
            can_resume=True,
            created_at=now,
            updated_at=now,
        )

    async def _apply_progress(self, row: GenerationCheckpoint, data: CheckpointData) -> None:
        row.completed_sections = data.completed_sections
        row.current_section = data.current_section
        row.generated_content = json.dumps(data.generated_content)
        row.status = CheckpointStatus.IN_PROGRESS.value
        row.updated_at = utcnow()
        if data.document_id is not None:
            row.document_id = data.document_id
        await self.repository.commit()

    async def _transition(self, job_id: str, action: str, **values: Any) -> CheckpointView:
        try:
            row = await self.repository.get_by_job_id(job_id)
            if row is None:
                raise CheckpointNotFoundError(job_id)
            for key, value in values.items():
                setattr(row, key, value)
            await self.repository.commit()
        except SQLAlchemyError as e:
            await self._rollback_and_raise(action, job_id, e)

        LOGGER.info(f"Checkpoint {action}: status={values['status']}", extra={"job_id": job_id})
        return to_view(row)

    async def _rollback_and_raise(
        self, action: str, job_id: str, error: SQLAlchemyError
    ) -> NoReturn:
        LOGGER.error(
            f"Checkpoint {action} failed for job {job_id}", exc_info=True, extra={"job_id": job_id}
        )
        await self.repository.rollback()
        raise CheckpointPersistenceError(
            f"Could not {action} checkpoint for job {job_id}: {error}", original_error=error
        ) from error
