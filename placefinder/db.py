"""
Database connection management and cache-table queries.
Uses asyncpg for async Postgres access with connection pooling.
Backs the "postgres" cache backend; nothing else is persisted.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import asyncpg

from placefinder.config import get_settings

logger = logging.getLogger(__name__)

# ── Connection Pool ────────────────────────────────────────────────────

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.db.dsn,
            min_size=settings.db.min_pool_size,
            max_size=settings.db.max_pool_size,
        )
        logger.info("Database connection pool created (min=%d, max=%d)",
                    settings.db.min_pool_size, settings.db.max_pool_size)
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database connection pool closed")


@asynccontextmanager
async def get_connection() -> AsyncIterator[asyncpg.Connection]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


# ── Schema Initialization ─────────────────────────────────────────────

async def run_migrations() -> None:
    """Execute SQL migrations in order (idempotent)."""
    from pathlib import Path

    migrations_dir = Path(__file__).parent / "migrations"
    migration_paths = sorted(migrations_dir.glob("*.sql"))

    async with get_connection() as conn:
        for path in migration_paths:
            sql = path.read_text()
            await conn.execute(sql)
            logger.info("Applied migration: %s", path.name)
    logger.info("Migrations applied successfully (%d files)", len(migration_paths))


# ── Cache Table ───────────────────────────────────────────────────────

async def cache_fetch(key: str) -> Optional[Any]:
    """Look up a live cache entry; returns the decoded JSON value or None."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            """
            SELECT value
            FROM search_cache
            WHERE cache_key = $1 AND (expires_at IS NULL OR expires_at > NOW())
            """,
            key,
        )
        if row is None:
            return None
        await conn.execute(
            "UPDATE search_cache SET hit_count = hit_count + 1 WHERE cache_key = $1",
            key,
        )
        return json.loads(row["value"])


async def cache_store(key: str, value: Any, ttl_seconds: int = 0) -> None:
    """Upsert a cache entry. ttl_seconds <= 0 stores it without expiry."""
    async with get_connection() as conn:
        await conn.execute(
            """
            INSERT INTO search_cache (cache_key, value, expires_at)
            VALUES ($1, $2::jsonb,
                    CASE WHEN $3::int > 0 THEN NOW() + make_interval(secs => $3::int) END)
            ON CONFLICT (cache_key) DO UPDATE SET
                value = EXCLUDED.value,
                expires_at = EXCLUDED.expires_at,
                created_at = NOW(),
                hit_count = 0
            """,
            key, json.dumps(value, ensure_ascii=False), ttl_seconds,
        )


async def cache_remove(key: str) -> None:
    async with get_connection() as conn:
        await conn.execute("DELETE FROM search_cache WHERE cache_key = $1", key)


async def cache_remove_prefix(prefix: str) -> int:
    """Delete every entry whose key starts with `prefix`; returns the count."""
    async with get_connection() as conn:
        result = await conn.execute(
            "DELETE FROM search_cache WHERE left(cache_key, length($1)) = $1",
            prefix,
        )
    # asyncpg returns the command tag, e.g. "DELETE 12"
    return int(result.split()[-1])
