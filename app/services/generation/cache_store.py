"""Storage backends for cached completions.

``CompletionService`` only talks to the ``CacheStore`` protocol, so the
database table used in production can be swapped for the in-memory store in
tests or single-process tooling.
"""

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol

from app.database.models import utcnow
from app.repositories.prompt_cache_repository import PromptCacheRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")
_ARTICLES = re.compile(r"\b(the|a|an)\b")


def normalize_prompt(prompt: str) -> str:
    """Lowercase, collapse whitespace, drop articles, trim."""
    normalized = _WHITESPACE.sub(" ", prompt.lower())
    return _ARTICLES.sub("", normalized).strip()


def generate_cache_key(
    prompt: str,
    model: str,
    system_prompt: Optional[str] = None,
    operation: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 8000,
) -> str:
    payload = {
        "prompt": normalize_prompt(prompt),
        "model": model,
        "temperature": temperature,
        "maxTokens": max_tokens,
        "system": normalize_prompt(system_prompt) if system_prompt else "",
        "operation": operation or "",
    }
    return hashlib.sha256(json.dumps(payload).encode("utf-8")).hexdigest()


def generate_prompt_hash(prompt: str) -> str:
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    response: str
    model: str
    hit_count: int = 0


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Live entry for ``key``; expired entries are removed and reported as a miss."""
        ...

    async def set(
        self, key: str, prompt_hash: str, response: str, model: str, ttl_hours: int
    ) -> None: ...

    async def increment(self, key: str, tokens_saved: int) -> None:
        """Count a hit against ``key``."""
        ...

    async def clear_expired(self) -> int: ...

    async def stats(self) -> Dict[str, int]: ...


class DatabaseCacheStore:
    """Cache backed by the ``prompt_cache`` table with LRU eviction."""

    def __init__(self, repository: PromptCacheRepository, max_entries: int = 1000):
        self.repository = repository
        self.max_entries = max_entries

    async def get(self, key: str) -> Optional[CacheEntry]:
        if await self.repository.delete_if_expired(key, utcnow()):
            LOGGER.debug(f"Cache entry expired: {key[:12]}")
            return None

        row = await self.repository.get_by_key(key)
        if row is None:
            return None
        return CacheEntry(response=row.response, model=row.model, hit_count=row.hit_count)

    async def set(
        self, key: str, prompt_hash: str, response: str, model: str, ttl_hours: int
    ) -> None:
        await self.repository.upsert(
            cache_key=key,
            prompt_hash=prompt_hash,
            response=response,
            model=model,
            expires_at=utcnow() + timedelta(hours=ttl_hours),
        )
        evicted = await self.repository.evict_least_recently_used(self.max_entries)
        if evicted:
            LOGGER.info(f"Evicted {evicted} least recently used cache entries")

    async def increment(self, key: str, tokens_saved: int) -> None:
        await self.repository.record_hit(key, tokens_saved)

    async def clear_expired(self) -> int:
        return await self.repository.delete_expired(utcnow())

    async def stats(self) -> Dict[str, int]:
        return await self.repository.stats(utcnow())


@dataclass
class _MemoryEntry:
    response: str
    model: str
    expires_at: datetime
    last_used_at: datetime
    hit_count: int = 0
    tokens_saved: int = 0


class InMemoryCacheStore:
    """Process-local cache with the same expiry and eviction rules."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._entries: Dict[str, _MemoryEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= utcnow():
            del self._entries[key]
            return None
        return CacheEntry(response=entry.response, model=entry.model, hit_count=entry.hit_count)

    async def set(
        self, key: str, prompt_hash: str, response: str, model: str, ttl_hours: int
    ) -> None:
        now = utcnow()
        self._entries[key] = _MemoryEntry(
            response=response,
            model=model,
            expires_at=now + timedelta(hours=ttl_hours),
            last_used_at=now,
        )
        if len(self._entries) > self.max_entries:
            by_recency = sorted(self._entries, key=lambda k: self._entries[k].last_used_at)
            for stale in by_recency[: len(self._entries) - self.max_entries]:
                del self._entries[stale]

    async def increment(self, key: str, tokens_saved: int) -> None:
        entry = self._entries.get(key)
        if entry is not None:
            entry.hit_count += 1
            entry.tokens_saved += tokens_saved
            entry.last_used_at = utcnow()

    async def clear_expired(self) -> int:
        now = utcnow()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def stats(self) -> Dict[str, int]:
        now = utcnow()
        expired = sum(1 for entry in self._entries.values() if entry.expires_at <= now)
        return {
            "total_entries": len(self._entries),
            "active_entries": len(self._entries) - expired,
            "expired_entries": expired,
            "total_hits": sum(entry.hit_count for entry in self._entries.values()),
            "tokens_saved": sum(entry.tokens_saved for entry in self._entries.values()),
        }
