"""
Database schema setup script.

This script creates:
1. sources and articles (dedup on articles.link)
2. article_counties / article_cities / article_tags join tables
3. subscribers
4. pipeline_runs for tracking runs

Run with:
    python -m crenews.db.setup_db
"""

import asyncio

import structlog

from crenews.db.connection import close_db_pool, get_db_pool

logger = structlog.get_logger()


# ============================================================
# SQL SCHEMA DEFINITIONS
# ============================================================

CREATE_SOURCES_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    source_id TEXT PRIMARY KEY,
    source_name TEXT NOT NULL,
    -- National sources feed the "National" section of the digest
    is_national BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);
"""

CREATE_ARTICLES_SQL = """
CREATE TABLE IF NOT EXISTS articles (
    id BIGSERIAL PRIMARY KEY,

    -- Identity: one row per link, enforced at write time
    link TEXT NOT NULL UNIQUE,

    title TEXT NOT NULL DEFAULT '',
    source_id TEXT NOT NULL REFERENCES sources(source_id),
    published_at TIMESTAMPTZ NOT NULL,
    image_url TEXT,
    description TEXT,

    -- Classification status
    is_categorized BOOLEAN NOT NULL DEFAULT FALSE,
    is_relevant BOOLEAN NOT NULL DEFAULT TRUE,

    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- For "uncategorized, newest first" and digest window queries
CREATE INDEX IF NOT EXISTS idx_articles_pending
    ON articles(is_categorized, published_at DESC);
CREATE INDEX IF NOT EXISTS idx_articles_published_at
    ON articles(published_at DESC);
"""

CREATE_ASSIGNMENTS_SQL = """
CREATE TABLE IF NOT EXISTS article_counties (
    article_id BIGINT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
    county TEXT NOT NULL,
    PRIMARY KEY (article_id, county)
);

CREATE TABLE IF NOT EXISTS article_cities (
    article_id BIGINT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
    city TEXT NOT NULL,
    PRIMARY KEY (article_id, city)
);

CREATE TABLE IF NOT EXISTS article_tags (
    article_id BIGINT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    PRIMARY KEY (article_id, tag)
);

CREATE INDEX IF NOT EXISTS idx_article_counties_county ON article_counties(county);
CREATE INDEX IF NOT EXISTS idx_article_cities_city ON article_cities(city);
"""

CREATE_SUBSCRIBERS_SQL = """
CREATE TABLE IF NOT EXISTS subscribers (
    id BIGSERIAL PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    first_name TEXT NOT NULL DEFAULT '',
    -- Soft delete: unsubscribing flips this, rows are never removed
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    interests TEXT,
    timezone TEXT,
    preferred_send_times JSONB,          -- [{"dayOfWeek": 5, "hour": 9}, ...]
    selected_counties JSONB NOT NULL DEFAULT '[]',
    selected_cities JSONB NOT NULL DEFAULT '[]',  -- [{"name": ..., "state": ...}]
    subscribed_at TIMESTAMPTZ DEFAULT NOW(),
    last_sent_at TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_subscribers_active ON subscribers(is_active);
"""

CREATE_PIPELINE_RUNS_SQL = """
CREATE TABLE IF NOT EXISTS pipeline_runs (
    run_id VARCHAR(64) PRIMARY KEY,
    run_date TIMESTAMPTZ NOT NULL,
    completed_at TIMESTAMPTZ DEFAULT NOW(),
    articles_collected INT DEFAULT 0,
    articles_saved INT DEFAULT 0,
    articles_categorized INT DEFAULT 0,
    newsletters_sent INT DEFAULT 0,
    collection_errors INT DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_pipeline_runs_run_date
    ON pipeline_runs(run_date DESC);
"""


# ============================================================
# SETUP FUNCTIONS
# ============================================================


async def setup_database() -> None:
    """
    Set up the database schema.

    Safe to run multiple times (uses IF NOT EXISTS).
    """
    logger.info("Setting up database schema")

    pool = await get_db_pool()

    async with pool.acquire() as conn:
        logger.info("Creating sources and articles tables")
        await conn.execute(CREATE_SOURCES_SQL)
        await conn.execute(CREATE_ARTICLES_SQL)

        logger.info("Creating assignment tables")
        await conn.execute(CREATE_ASSIGNMENTS_SQL)

        logger.info("Creating subscribers table")
        await conn.execute(CREATE_SUBSCRIBERS_SQL)

        logger.info("Creating pipeline_runs table")
        await conn.execute(CREATE_PIPELINE_RUNS_SQL)

    logger.info("Database schema setup complete")


async def get_table_stats() -> dict:
    """
    Get basic statistics about the database.

    Returns:
        Dict with table row counts
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        articles = await conn.fetchval("SELECT COUNT(*) FROM articles")
        subscribers = await conn.fetchval("SELECT COUNT(*) FROM subscribers WHERE is_active")
        runs = await conn.fetchval("SELECT COUNT(*) FROM pipeline_runs")

    return {
        "articles": articles,
        "active_subscribers": subscribers,
        "pipeline_runs": runs,
    }


async def main() -> None:
    """Main entry point for running schema setup."""
    try:
        await setup_database()
        stats = await get_table_stats()
        logger.info("Database ready", **stats)
    finally:
        await close_db_pool()


if __name__ == "__main__":
    asyncio.run(main())
