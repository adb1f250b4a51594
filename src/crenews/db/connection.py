"""
asyncpg pool for the article and subscriber store.

One pool per process, opened on first use:

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(LIST_UNCATEGORIZED_SQL, 50)

The API closes it in its lifespan hook; the CLI closes it after a run.
"""

import json
from urllib.parse import urlsplit

import asyncpg
import structlog

from crenews.config import get_settings

logger = structlog.get_logger()

POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 10

_pool: asyncpg.Pool | None = None


def _describe_dsn(dsn: str) -> str:
    """host:port/dbname, without credentials, for logs."""
    parts = urlsplit(dsn)
    return f"{parts.hostname}:{parts.port or 5432}{parts.path}"


async def _init_connection(conn: asyncpg.Connection) -> None:
    # Subscriber preference columns are JSONB
    await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


async def get_db_pool() -> asyncpg.Pool:
    """
    Return the shared pool, creating it on the first call.

    Raises:
        OSError / asyncpg.PostgresError: If the database cannot be reached
    """
    global _pool

    if _pool is None:
        database_url = get_settings().database_url
        log = logger.bind(database=_describe_dsn(database_url))
        log.info("Opening database pool")

        _pool = await asyncpg.create_pool(
            database_url,
            min_size=POOL_MIN_SIZE,
            max_size=POOL_MAX_SIZE,
            command_timeout=60,
            init=_init_connection,
        )

        log.info("Database pool ready", max_size=POOL_MAX_SIZE)

    return _pool


async def close_db_pool() -> None:
    """Close the shared pool if one was opened."""
    global _pool

    if _pool is None:
        return

    await _pool.close()
    _pool = None
    logger.info("Database pool closed")


async def check_db_health() -> bool:
    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except Exception as e:
        logger.error("Database health check failed", error=str(e), error_type=type(e).__name__)
        return False
    return True
