"""Repositories for generated documents: business plans and deliverables."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import BusinessPlan, Deliverable
from app.repositories.base_repository import BaseRepository


class BusinessPlanRepository(BaseRepository[BusinessPlan]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, BusinessPlan)

    async def get_by_client_id(self, client_id: UUID) -> Optional[BusinessPlan]:
        result = await self.session.execute(
            select(BusinessPlan).where(BusinessPlan.client_id == client_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, plan_id: UUID) -> Optional[BusinessPlan]:
        """Select the plan row with a write lock (ignored by SQLite)."""
        result = await self.session.execute(
            select(BusinessPlan).where(BusinessPlan.id == plan_id).with_for_update()
        )
        return result.scalar_one_or_none()


class DeliverableRepository(BaseRepository[Deliverable]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Deliverable)

    async def get_by_client_and_month(self, client_id: UUID, month: int) -> Optional[Deliverable]:
        result = await self.session.execute(
            select(Deliverable).where(Deliverable.client_id == client_id, Deliverable.month == month)
        )
        return result.scalar_one_or_none()

    async def list_before_month(self, client_id: UUID, month: int) -> List[Deliverable]:
        """Deliverables of earlier program months, ascending by month."""
        result = await self.session.execute(
            select(Deliverable)
            .where(Deliverable.client_id == client_id, Deliverable.month < month)
            .order_by(Deliverable.month.asc())
        )
        return list(result.scalars().all())

    async def list_for_client(self, client_id: UUID) -> List[Deliverable]:
        result = await self.session.execute(
            select(Deliverable)
            .where(Deliverable.client_id == client_id)
            .order_by(Deliverable.month.asc())
        )
        return list(result.scalars().all())

    async def get_for_update(self, deliverable_id: UUID) -> Optional[Deliverable]:
        result = await self.session.execute(
            select(Deliverable).where(Deliverable.id == deliverable_id).with_for_update()
        )
        return result.scalar_one_or_none()
