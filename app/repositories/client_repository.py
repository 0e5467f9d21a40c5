"""Repository for reading onboarded client profiles."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Client
from app.repositories.base_repository import BaseRepository


class ClientRepository(BaseRepository[Client]):
    """Client profile access. The generation pipeline never writes clients."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Client)

    async def get_profile(self, client_id: UUID) -> Optional[Client]:
        """Get a client profile. Archived clients are still returned."""
        return await self.get_by_id(client_id)
