"""Repository for generation checkpoints."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import CheckpointStatus, GenerationCheckpoint
from app.repositories.base_repository import BaseRepository

RESUMABLE_STATUSES = (CheckpointStatus.IN_PROGRESS.value, CheckpointStatus.FAILED.value)


class CheckpointRepository(BaseRepository[GenerationCheckpoint]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, GenerationCheckpoint)

    async def get_by_job_id(self, job_id: str) -> Optional[GenerationCheckpoint]:
        result = await self.session.execute(
            select(GenerationCheckpoint).where(GenerationCheckpoint.job_id == job_id)
        )
        return result.scalar_one_or_none()

    async def list_resumable(self, client_id: Optional[UUID] = None) -> List[GenerationCheckpoint]:
        """Resumable checkpoints, most recently updated first."""
        stmt = select(GenerationCheckpoint).where(
            GenerationCheckpoint.can_resume.is_(True),
            GenerationCheckpoint.status.in_(RESUMABLE_STATUSES),
        )
        if client_id is not None:
            stmt = stmt.where(GenerationCheckpoint.client_id == client_id)
        result = await self.session.execute(stmt.order_by(GenerationCheckpoint.updated_at.desc()))
        return list(result.scalars().all())

    async def delete_by_job_id(self, job_id: str) -> int:
        result = await self.session.execute(
            delete(GenerationCheckpoint)
            .where(GenerationCheckpoint.job_id == job_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount

    async def delete_completed_before(self, cutoff: datetime) -> int:
        """Delete COMPLETED checkpoints finished before ``cutoff``; returns the count."""
        result = await self.session.execute(
            delete(GenerationCheckpoint)
            .where(
                GenerationCheckpoint.status == CheckpointStatus.COMPLETED.value,
                GenerationCheckpoint.completed_at < cutoff,
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount
