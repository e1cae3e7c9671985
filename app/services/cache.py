"""Read-through cache with per-entry expiration.

Entries are immutable and always replaced as a whole. Expiration is checked
lazily on read; nothing sweeps the store in the background.
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional
import logging

from app.config import Settings
from app.db.postgres import get_connection

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Producer = Callable[[], Awaitable[Any]]


def utcnow() -> datetime:
    """Naive UTC now, matching the TIMESTAMP columns of the Postgres backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class CacheEntry:
    """A stored value and its validity window."""
    key: str
    value: Any
    created_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return self.expires_at > now


@dataclass(frozen=True)
class CacheMetadata:
    """Read-only view of an entry for diagnostics."""
    created_at: datetime
    expires_at: datetime
    exists: bool


class CacheStore:
    """
    Base read-through cache.

    Backends implement get_entry, put and forget; the read-through logic,
    freshness checks and single-flight locking live here.
    """

    def __init__(self, clock: Optional[Clock] = None, single_flight: bool = True):
        self.clock = clock or utcnow
        self.single_flight = single_flight
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    async def put(self, entry: CacheEntry) -> None:
        raise NotImplementedError

    async def forget(self, key: str) -> None:
        raise NotImplementedError

    async def keys(self) -> list[str]:
        raise NotImplementedError

    async def has(self, key: str) -> bool:
        """True if an entry exists and has not expired."""
        entry = await self.get_entry(key)
        return entry is not None and entry.is_fresh(self.clock())

    async def metadata(self, key: str) -> Optional[CacheMetadata]:
        entry = await self.get_entry(key)
        if entry is None:
            return None
        return CacheMetadata(
            created_at=entry.created_at,
            expires_at=entry.expires_at,
            exists=entry.is_fresh(self.clock()),
        )

    async def remember(self, key: str, policy, producer: Producer) -> Any:
        """
        Return the fresh value for ``key``, producing and storing it on a miss.

        Args:
            key: Cache key
            policy: Object with ``expires_at(now) -> datetime``
            producer: Async callable returning the value to store

        Returns:
            The stored value
        """
        entry = await self._fresh_entry(key)
        if entry is not None:
            logger.info(f"Cache hit for {key}")
            return entry.value

        if not self.single_flight:
            return await self._produce(key, policy, producer)

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                # Another request may have filled the entry while we waited
                entry = await self._fresh_entry(key)
                if entry is not None:
                    logger.info(f"Cache hit for {key} after waiting on fetch")
                    return entry.value
                return await self._produce(key, policy, producer)
        finally:
            self._release_lock(key)

    def _release_lock(self, key: str) -> None:
        # Drop the lock once no request holds or waits on it
        self._lock_users[key] -= 1
        if self._lock_users[key] == 0:
            del self._lock_users[key]
            del self._locks[key]

    async def _fresh_entry(self, key: str) -> Optional[CacheEntry]:
        entry = await self.get_entry(key)
        if entry is not None and entry.is_fresh(self.clock()):
            return entry
        return None

    async def _produce(self, key: str, policy, producer: Producer) -> Any:
        logger.info(f"Cache miss for {key}, fetching")
        value = await producer()

        now = self.clock()
        expires_at = policy.expires_at(now)
        if expires_at <= now:
            raise ValueError(f"Policy for {key} produced a non-future expiry: {expires_at}")

        await self.put(CacheEntry(key=key, value=value, created_at=now, expires_at=expires_at))
        logger.info(f"Cached {key} until {expires_at.isoformat()}")
        return value


class MemoryCacheStore(CacheStore):
    """Process-local cache backed by a dict of immutable entries."""

    def __init__(self, clock: Optional[Clock] = None, single_flight: bool = True):
        super().__init__(clock=clock, single_flight=single_flight)
        self._entries: dict[str, CacheEntry] = {}

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def put(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    async def forget(self, key: str) -> None:
        self._entries.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._entries)


class PostgresCacheStore(CacheStore):
    """Cache persisted in the ``proxy_cache`` table, shared across workers."""

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        async with get_connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT key, value, created_at, expires_at
                FROM proxy_cache
                WHERE key = $1
                """,
                key,
            )

            if row:
                value = row["value"]
                if isinstance(value, str):
                    value = json.loads(value)
                return CacheEntry(
                    key=row["key"],
                    value=value,
                    created_at=row["created_at"],
                    expires_at=row["expires_at"],
                )

            return None

    async def put(self, entry: CacheEntry) -> None:
        async with get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO proxy_cache (key, value, created_at, expires_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (key) DO UPDATE SET
                    value = $2,
                    created_at = $3,
                    expires_at = $4
                """,
                entry.key,
                json.dumps(entry.value),
                entry.created_at,
                entry.expires_at,
            )

    async def forget(self, key: str) -> None:
        async with get_connection() as conn:
            await conn.execute("DELETE FROM proxy_cache WHERE key = $1", key)

    async def keys(self) -> list[str]:
        async with get_connection() as conn:
            rows = await conn.fetch("SELECT key FROM proxy_cache ORDER BY key")
            return [row["key"] for row in rows]


def build_cache_store(settings: Settings, clock: Optional[Clock] = None) -> CacheStore:
    """Construct the configured cache backend."""
    backend = settings.cache_backend.lower()
    if backend == "memory":
        return MemoryCacheStore(clock=clock, single_flight=settings.cache_single_flight)
    if backend == "postgres":
        return PostgresCacheStore(clock=clock, single_flight=settings.cache_single_flight)
    raise ValueError(f"Unknown cache backend: {settings.cache_backend}")
