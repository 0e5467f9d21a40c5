"""Repository for the client activity log."""

from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Activity
from app.repositories.base_repository import BaseRepository


class ActivityRepository(BaseRepository[Activity]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Activity)

    async def list_for_client(self, client_id: UUID, limit: int = 50) -> List[Activity]:
        """Most recent activities for a client, newest first."""
        stmt = (
            select(Activity)
            .where(Activity.client_id == client_id)
            .order_by(Activity.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
