"""Repository for prompt templates."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import PromptTemplate
from app.repositories.base_repository import BaseRepository

TEMPLATE_FLAGS = ("is_active", "is_default")


class PromptTemplateRepository(BaseRepository[PromptTemplate]):
    """Prompt template queries and flag maintenance."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, PromptTemplate)

    async def get_active(self, template_type: str) -> Optional[PromptTemplate]:
        return await self._first_flagged(template_type, PromptTemplate.is_active)

    async def get_default(self, template_type: str) -> Optional[PromptTemplate]:
        return await self._first_flagged(template_type, PromptTemplate.is_default)

    async def list_templates(self, template_type: Optional[str] = None) -> List[PromptTemplate]:
        stmt = select(PromptTemplate).order_by(PromptTemplate.type, PromptTemplate.created_at)
        if template_type:
            stmt = stmt.where(PromptTemplate.type == template_type)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def clear_flag(
        self, template_type: str, flag: str, exclude_id: Optional[UUID] = None
    ) -> None:
        """Unset ``flag`` on every template of ``template_type`` except ``exclude_id``.

        Does not commit; the caller sets the new holder in the same transaction.
        """
        if flag not in TEMPLATE_FLAGS:
            raise ValueError(f"Unknown template flag: {flag}")

        column = getattr(PromptTemplate, flag)
        stmt = (
            update(PromptTemplate)
            .where(PromptTemplate.type == template_type, column.is_(True))
            .values({flag: False})
            .execution_options(synchronize_session="fetch")
        )
        if exclude_id is not None:
            stmt = stmt.where(PromptTemplate.id != exclude_id)
        await self.session.execute(stmt)

    async def _first_flagged(self, template_type: str, column) -> Optional[PromptTemplate]:
        stmt = (
            select(PromptTemplate)
            .where(PromptTemplate.type == template_type, column.is_(True))
            .order_by(PromptTemplate.updated_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
