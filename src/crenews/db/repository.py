"""
Store operations used by the pipeline.

Every function takes an asyncpg connection (from pool.acquire()) so callers
control transactions and tests can pass a mocked connection.

Article writes are idempotent: inserting an existing link is a no-op
(ON CONFLICT DO NOTHING), and the join tables ignore duplicate pairs.
"""

from datetime import datetime

import structlog

from crenews.articles import CanonicalArticle, DigestArticle, StoredArticle
from crenews.subscribers import Subscriber

logger = structlog.get_logger()


# ========================================
# SQL
# ========================================

UPSERT_SOURCE_SQL = """
INSERT INTO sources (source_id, source_name, is_national)
VALUES ($1, $2, $3)
ON CONFLICT (source_id) DO UPDATE SET
    source_name = EXCLUDED.source_name,
    is_national = EXCLUDED.is_national;
"""

# RETURNING yields no row when the link already exists
INSERT_ARTICLE_SQL = """
INSERT INTO articles (
    link, title, source_id, published_at, image_url, description, is_categorized
) VALUES (
    $1, $2, $3, $4, $5, $6, $7
)
ON CONFLICT (link) DO NOTHING
RETURNING id;
"""

LINK_COUNTIES_SQL = """
INSERT INTO article_counties (article_id, county)
SELECT $1, unnest($2::text[])
ON CONFLICT DO NOTHING;
"""

LINK_CITIES_SQL = """
INSERT INTO article_cities (article_id, city)
SELECT $1, unnest($2::text[])
ON CONFLICT DO NOTHING;
"""

LINK_TAGS_SQL = """
INSERT INTO article_tags (article_id, tag)
SELECT $1, unnest($2::text[])
ON CONFLICT DO NOTHING;
"""

LIST_UNCATEGORIZED_SQL = """
SELECT id, link, title, description, source_id, published_at
FROM articles
WHERE is_categorized = FALSE AND is_relevant = TRUE
ORDER BY published_at DESC
LIMIT $1;
"""

MARK_IRRELEVANT_SQL = """
UPDATE articles SET is_relevant = FALSE, is_categorized = TRUE
WHERE id = ANY($1::bigint[]);
"""

MARK_CATEGORIZED_SQL = """
UPDATE articles SET is_categorized = TRUE WHERE id = $1;
"""

UPDATE_ARTICLE_TEXT_SQL = """
UPDATE articles SET title = $2, description = $3 WHERE id = $1;
"""

LIST_RECENT_CATEGORIZED_SQL = """
SELECT
    a.id, a.title, a.link, a.description, a.published_at, a.image_url,
    COALESCE(s.source_name, a.source_id) AS source_name,
    COALESCE(s.is_national, FALSE) AS is_national,
    COALESCE(
        (SELECT array_agg(c.county ORDER BY c.county) FROM article_counties c WHERE c.article_id = a.id),
        '{}'
    ) AS counties,
    COALESCE(
        (SELECT array_agg(ci.city ORDER BY ci.city) FROM article_cities ci WHERE ci.article_id = a.id),
        '{}'
    ) AS cities,
    COALESCE(
        (SELECT array_agg(t.tag ORDER BY t.tag) FROM article_tags t WHERE t.article_id = a.id),
        '{}'
    ) AS tags
FROM articles a
LEFT JOIN sources s ON s.source_id = a.source_id
WHERE a.is_categorized = TRUE
  AND a.is_relevant = TRUE
  AND a.published_at >= $1
  AND a.published_at <= $2
ORDER BY a.published_at DESC;
"""

LIST_ACTIVE_SUBSCRIBERS_SQL = """
SELECT
    id, email, first_name, is_active, interests, timezone,
    preferred_send_times, selected_counties, selected_cities, last_sent_at
FROM subscribers
WHERE is_active = TRUE
ORDER BY id;
"""

UPDATE_SUBSCRIBER_LAST_SENT_SQL = """
UPDATE subscribers SET last_sent_at = $2 WHERE id = $1;
"""

DEACTIVATE_SUBSCRIBER_SQL = """
UPDATE subscribers SET is_active = FALSE
WHERE email = lower($1)
RETURNING id;
"""

RECORD_PIPELINE_RUN_SQL = """
INSERT INTO pipeline_runs (
    run_id, run_date, articles_collected, articles_saved,
    articles_categorized, newsletters_sent, collection_errors
) VALUES ($1, $2, $3, $4, $5, $6, $7)
ON CONFLICT (run_id) DO UPDATE SET
    completed_at = NOW(),
    articles_collected = EXCLUDED.articles_collected,
    articles_saved = EXCLUDED.articles_saved,
    articles_categorized = EXCLUDED.articles_categorized,
    newsletters_sent = EXCLUDED.newsletters_sent,
    collection_errors = EXCLUDED.collection_errors;
"""


# ========================================
# SOURCES & ARTICLES
# ========================================


async def upsert_source(conn, source_id: str, source_name: str, is_national: bool = False) -> None:
    await conn.execute(UPSERT_SOURCE_SQL, source_id, source_name, is_national)


async def insert_article_ignore_duplicate(
    conn,
    article: CanonicalArticle,
    is_categorized: bool = False,
) -> int | None:
    """
    Insert an article unless its link already exists.

    Returns:
        The new article id, or None if the link was already stored
    """
    return await conn.fetchval(
        INSERT_ARTICLE_SQL,
        article["link"],
        article["title"],
        article["source_id"],
        article["published_at"],
        article.get("image_url"),
        article.get("description"),
        is_categorized,
    )


async def link_counties(conn, article_id: int, counties: list[str]) -> None:
    if counties:
        await conn.execute(LINK_COUNTIES_SQL, article_id, counties)


async def link_cities(conn, article_id: int, cities: list[str]) -> None:
    if cities:
        await conn.execute(LINK_CITIES_SQL, article_id, cities)


async def link_tags(conn, article_id: int, tags: list[str]) -> None:
    if tags:
        await conn.execute(LINK_TAGS_SQL, article_id, tags)


async def save_articles(
    conn,
    articles: list[CanonicalArticle],
    source_id: str,
    source_name: str | None = None,
    is_categorized: bool = False,
    is_national: bool = False,
) -> int:
    """
    Persist a batch of articles from one source.

    The source row is upserted first. Each article is inserted with
    insert-or-ignore on link; duplicates are skipped silently and not
    counted. County/city/tag links are only written for newly inserted
    articles of a pre-categorized batch. A failure on one article is
    logged and the rest of the batch continues.

    Returns:
        Number of newly saved articles
    """
    log = logger.bind(source_id=source_id)

    try:
        await upsert_source(conn, source_id, source_name or source_id, is_national)
    except Exception as e:
        log.error("Failed to upsert source", error=str(e), error_type=type(e).__name__)

    saved = 0

    for article in articles:
        try:
            article_id = await insert_article_ignore_duplicate(conn, article, is_categorized)

            if article_id is None:
                # Already stored
                continue

            if is_categorized:
                await link_counties(conn, article_id, article.get("counties") or [])
                await link_cities(conn, article_id, article.get("cities") or [])
                await link_tags(conn, article_id, article.get("tags") or [])

            saved += 1

        except Exception as e:
            log.error(
                "Failed to save article",
                link=article.get("link"),
                error=str(e),
                error_type=type(e).__name__,
            )

    return saved


async def list_uncategorized_articles(conn, limit: int = 50) -> list[StoredArticle]:
    rows = await conn.fetch(LIST_UNCATEGORIZED_SQL, limit)
    return [StoredArticle(**dict(row)) for row in rows]


async def mark_irrelevant(conn, article_ids: list[int]) -> None:
    """Flag articles as off-topic. They count as categorized so they are never re-checked."""
    if article_ids:
        await conn.execute(MARK_IRRELEVANT_SQL, article_ids)


async def mark_categorized(conn, article_id: int) -> None:
    await conn.execute(MARK_CATEGORIZED_SQL, article_id)


async def update_article_text(conn, article_id: int, title: str, description: str | None) -> None:
    await conn.execute(UPDATE_ARTICLE_TEXT_SQL, article_id, title, description)


async def list_recent_categorized_articles(
    conn,
    since: datetime,
    until: datetime,
) -> list[DigestArticle]:
    """Categorized, relevant articles published in [since, until], newest first."""
    rows = await conn.fetch(LIST_RECENT_CATEGORIZED_SQL, since, until)
    return [_row_to_digest_article(row) for row in rows]


def _row_to_digest_article(row) -> DigestArticle:
    item = dict(row)
    return DigestArticle(
        id=item["id"],
        title=item["title"],
        link=item["link"],
        description=item.get("description") or "",
        published_at=item["published_at"],
        source_name=item["source_name"],
        is_national=bool(item["is_national"]),
        image_url=item.get("image_url"),
        counties=list(item.get("counties") or []),
        cities=list(item.get("cities") or []),
        tags=list(item.get("tags") or []),
    )


async def list_recent_articles(conn, limit: int = 20, county: str | None = None) -> list[DigestArticle]:
    """
    Recent categorized, relevant articles for the API, optionally for one county.

    Returns:
        Articles newest first, same shape as list_recent_categorized_articles()
    """
    query = """
        SELECT
            a.id, a.title, a.link, a.description, a.published_at, a.image_url,
            COALESCE(s.source_name, a.source_id) AS source_name,
            COALESCE(s.is_national, FALSE) AS is_national,
            COALESCE(
                (SELECT array_agg(c.county ORDER BY c.county) FROM article_counties c WHERE c.article_id = a.id),
                '{}'
            ) AS counties,
            COALESCE(
                (SELECT array_agg(ci.city ORDER BY ci.city) FROM article_cities ci WHERE ci.article_id = a.id),
                '{}'
            ) AS cities,
            COALESCE(
                (SELECT array_agg(t.tag ORDER BY t.tag) FROM article_tags t WHERE t.article_id = a.id),
                '{}'
            ) AS tags
        FROM articles a
        LEFT JOIN sources s ON s.source_id = a.source_id
        WHERE a.is_categorized = TRUE AND a.is_relevant = TRUE
    """
    params: list = []

    if county:
        query += f" AND EXISTS (SELECT 1 FROM article_counties c WHERE c.article_id = a.id AND c.county = ${len(params) + 1})"
        params.append(county)

    query += f" ORDER BY a.published_at DESC LIMIT ${len(params) + 1}"
    params.append(limit)

    rows = await conn.fetch(query, *params)
    return [_row_to_digest_article(row) for row in rows]


# ========================================
# SUBSCRIBERS
# ========================================


async def list_active_subscribers(conn) -> list[Subscriber]:
    """
    Load active subscribers.

    A row that cannot be turned into a Subscriber is logged and skipped
    rather than failing the whole newsletter run.
    """
    rows = await conn.fetch(LIST_ACTIVE_SUBSCRIBERS_SQL)

    subscribers = []
    for row in rows:
        data = dict(row)
        try:
            subscribers.append(Subscriber(**data))
        except Exception as e:
            logger.error(
                "Skipping malformed subscriber row",
                subscriber_id=data.get("id"),
                error=str(e),
            )
    return subscribers


async def update_subscriber_last_sent(conn, subscriber_id: int, sent_at: datetime) -> None:
    await conn.execute(UPDATE_SUBSCRIBER_LAST_SENT_SQL, subscriber_id, sent_at)


async def deactivate_subscriber(conn, email: str) -> bool:
    """
    Soft-delete a subscriber by email.

    Returns:
        True if a subscriber was found
    """
    result = await conn.fetchval(DEACTIVATE_SUBSCRIBER_SQL, email.strip())
    return result is not None


# ========================================
# PIPELINE RUNS
# ========================================


async def record_pipeline_run(conn, run_id: str, run_date: datetime, stats: dict) -> None:
    await conn.execute(
        RECORD_PIPELINE_RUN_SQL,
        run_id,
        run_date,
        stats.get("articles_collected", 0),
        stats.get("articles_saved", 0),
        stats.get("articles_categorized", 0),
        stats.get("newsletters_sent", 0),
        stats.get("collection_errors", 0),
    )
