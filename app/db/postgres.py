import asyncpg
from typing import Optional
from contextlib import asynccontextmanager
import logging

from app.config import get_settings

logger = logging.getLogger(__name__)

# Pool shared by the Postgres cache backend
_pool: Optional[asyncpg.Pool] = None


async def init_db() -> None:
    """Open the connection pool and create the cache table."""
    global _pool
    settings = get_settings()

    _pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=max(settings.db_pool_min_size, settings.db_pool_max_size),
    )

    async with _pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS proxy_cache (
                key VARCHAR(255) PRIMARY KEY,
                value JSONB NOT NULL,
                created_at TIMESTAMP NOT NULL,
                expires_at TIMESTAMP NOT NULL,
                CHECK (expires_at > created_at)
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_proxy_cache_expires
            ON proxy_cache(expires_at)
        """)


async def close_db() -> None:
    """Close the pool; safe to call when it was never opened."""
    global _pool
    if _pool is None:
        return
    await _pool.close()
    _pool = None
    logger.info("Cache database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError(
            "Cache database is not initialized. "
            "Call init_db() before using the postgres cache backend."
        )
    return _pool


@asynccontextmanager
async def get_connection():
    """Borrow a pooled connection for one cache operation."""
    async with get_pool().acquire() as conn:
        yield conn
