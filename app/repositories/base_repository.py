from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.logging import get_logger

# Generic type for SQLAlchemy models
ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common CRUD operations.

    Writes flush and commit immediately; domain repositories that need
    several statements in one transaction pass ``commit=False`` and call
    :meth:`commit` themselves.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Get a record by its ID, or None."""
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving {self.model.__name__} by ID {id}: {str(e)}", exc_info=True
            )
            raise

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 200,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        """Get records with optional pagination and equality filters.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            filters: Dictionary of field_name: value to filter by
        """
        try:
            query = self._apply_filters(select(self.model), filters)
            result = await self.session.execute(query.offset(skip).limit(limit))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving all {self.model.__name__}: {str(e)}", exc_info=True)
            raise

    async def create(self, commit: bool = True, **kwargs) -> ModelType:
        """Create a new record from keyword fields."""
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            if commit:
                await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}", exc_info=True)
            raise

    async def update(self, id: UUID, commit: bool = True, **kwargs) -> Optional[ModelType]:
        """Update an existing record.

        Returns:
            The updated record if found, None otherwise
        """
        try:
            instance = await self.get_by_id(id)
            if not instance:
                return None

            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)

            await self.session.flush()
            if commit:
                await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__} {id}: {str(e)}", exc_info=True)
            raise

    async def delete(self, id: UUID, commit: bool = True) -> bool:
        """Delete a record by ID.

        Returns:
            True if deleted, False if not found
        """
        try:
            instance = await self.get_by_id(id)
            if not instance:
                return False

            await self.session.delete(instance)
            await self.session.flush()
            if commit:
                await self.session.commit()
            return True
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting {self.model.__name__} {id}: {str(e)}", exc_info=True)
            raise

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching equality filters."""
        try:
            query = self._apply_filters(select(func.count()).select_from(self.model), filters)
            result = await self.session.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting {self.model.__name__}: {str(e)}", exc_info=True)
            raise

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        for field, value in (filters or {}).items():
            if hasattr(self.model, field):
                query = query.where(getattr(self.model, field) == value)
        return query
