"""Repository for cached LLM completions."""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import PromptCache, utcnow
from app.repositories.base_repository import BaseRepository


class PromptCacheRepository(BaseRepository[PromptCache]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, PromptCache)

    async def get_by_key(self, cache_key: str) -> Optional[PromptCache]:
        result = await self.session.execute(
            select(PromptCache)
            .where(PromptCache.cache_key == cache_key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def delete_if_expired(self, cache_key: str, now: datetime) -> bool:
        """Drop the entry for ``cache_key`` when it has expired."""
        result = await self.session.execute(
            delete(PromptCache)
            .where(PromptCache.cache_key == cache_key, PromptCache.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount > 0

    async def upsert(
        self,
        cache_key: str,
        prompt_hash: str,
        response: str,
        model: str,
        expires_at: datetime,
    ) -> PromptCache:
        """Insert a new entry or overwrite the existing one for the key."""
        entry = await self.get_by_key(cache_key)
        if entry is None:
            return await self.create(
                cache_key=cache_key,
                prompt_hash=prompt_hash,
                response=response,
                model=model,
                expires_at=expires_at,
            )

        entry.response = response
        entry.model = model
        entry.expires_at = expires_at
        entry.last_used_at = utcnow()
        await self.session.commit()
        return entry

    async def record_hit(self, cache_key: str, tokens_saved: int) -> None:
        await self.session.execute(
            update(PromptCache)
            .where(PromptCache.cache_key == cache_key)
            .values(
                hit_count=PromptCache.hit_count + 1,
                tokens_saved=PromptCache.tokens_saved + tokens_saved,
                last_used_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def delete_expired(self, now: datetime) -> int:
        result = await self.session.execute(
            delete(PromptCache)
            .where(PromptCache.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount

    async def evict_least_recently_used(self, max_entries: int) -> int:
        """Keep only the ``max_entries`` most recently used entries."""
        keep = (
            select(PromptCache.id)
            .order_by(PromptCache.last_used_at.desc())
            .limit(max_entries)
            .scalar_subquery()
        )
        result = await self.session.execute(
            delete(PromptCache)
            .where(PromptCache.id.not_in(keep))
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount

    async def stats(self, now: datetime) -> Dict[str, Any]:
        result = await self.session.execute(
            select(
                func.count(PromptCache.id),
                func.coalesce(func.sum(PromptCache.hit_count), 0),
                func.coalesce(func.sum(PromptCache.tokens_saved), 0),
            )
        )
        total_entries, total_hits, tokens_saved = result.one()
        expired = await self.count_expired(now)
        return {
            "total_entries": total_entries,
            "active_entries": total_entries - expired,
            "expired_entries": expired,
            "total_hits": int(total_hits),
            "tokens_saved": int(tokens_saved),
        }

    async def count_expired(self, now: datetime) -> int:
        result = await self.session.execute(
            select(func.count(PromptCache.id)).where(PromptCache.expires_at <= now)
        )
        return result.scalar_one()
