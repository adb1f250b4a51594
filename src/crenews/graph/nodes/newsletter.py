"""
Newsletter Node - Sends digests to subscribers whose send slot is now.

A subscriber picks any number of weekly (weekday, hour) slots in their own
timezone. On each run the run time is converted into the subscriber's
zone and compared against those slots:

    IDLE - no slot matches the current local weekday/hour
    DUE  - a slot matches and nothing was sent yet in this local hour
    SENT - a slot matches but last_sent_at already falls in this local hour

Weekdays use Sunday=0 ... Saturday=6.

For every DUE subscriber the node picks National and Local candidates
from the last week of categorized articles, ranks them by the
subscriber's stated interests (newest first when there are none),
generates a subject line, renders the email and sends it. A failure for
one subscriber is logged and counted; the loop continues.

LangGraph Integration:
- Input: PipelineState with run_date
- Output: {"newsletters_sent": int, "newsletters_failed": int}
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

import structlog

from crenews.articles import DigestArticle
from crenews.classifier import ClassificationService, get_classifier
from crenews.config import get_settings
from crenews.db.connection import get_db_pool
from crenews.db.repository import (
    list_active_subscribers,
    list_recent_categorized_articles,
    update_subscriber_last_sent,
)
from crenews.email.template import render_newsletter
from crenews.email.transport import EmailTransport
from crenews.graph.nodes.compose import generate_batch_title
from crenews.graph.state import PipelineState
from crenews.personalization import rank_by_interests
from crenews.subscribers import Subscriber, format_interests
from crenews.vocabulary import NATIONAL_TAGS

logger = structlog.get_logger()

NATIONAL_LIMIT = 5
LOCAL_LIMIT = 10


class DigestState(str, Enum):
    IDLE = "idle"
    DUE = "due"
    SENT = "sent"


def local_weekday(moment: datetime) -> int:
    """Weekday with Sunday=0 ... Saturday=6."""
    return (moment.weekday() + 1) % 7


def _as_utc(moment: datetime) -> datetime:
    # Naive datetimes from the store are UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def digest_state(subscriber: Subscriber, run_at: datetime) -> DigestState:
    """Decide whether a digest is due for subscriber at run_at."""
    zone = subscriber.zone
    local = _as_utc(run_at).astimezone(zone)
    weekday = local_weekday(local)

    matches = any(
        slot.day_of_week == weekday and slot.hour == local.hour
        for slot in subscriber.preferred_send_times
    )
    if not matches:
        return DigestState.IDLE

    if subscriber.last_sent_at is not None:
        last = _as_utc(subscriber.last_sent_at).astimezone(zone)
        if last.date() == local.date() and last.hour == local.hour:
            return DigestState.SENT

    return DigestState.DUE


@dataclass
class Digest:
    national: list[DigestArticle] = field(default_factory=list)
    local: list[DigestArticle] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.national and not self.local

    @property
    def top_articles(self) -> list[DigestArticle]:
        return self.national + self.local


def select_digest_articles(
    articles: list[DigestArticle],
    subscriber: Subscriber,
    national_limit: int | None = NATIONAL_LIMIT,
    local_limit: int | None = LOCAL_LIMIT,
) -> Digest:
    """
    Split articles into the National and Local sections for one subscriber.

    National: from a national source and tagged national or economy.
    Local: matches one of the subscriber's counties or cities; with no
    locations selected every article qualifies. An article may appear in
    both sections. Each section is newest first and trimmed to its limit;
    a None limit keeps every match.
    """
    counties = set(subscriber.selected_counties)
    cities = set(subscriber.city_names)
    no_locations = not counties and not cities

    national: list[DigestArticle] = []
    local: list[DigestArticle] = []

    for article in articles:
        if article["is_national"] and NATIONAL_TAGS.intersection(article["tags"]):
            national.append(article)

        if (
            no_locations
            or counties.intersection(article["counties"])
            or cities.intersection(article["cities"])
        ):
            local.append(article)

    def newest_first(items: list[DigestArticle]) -> list[DigestArticle]:
        return sorted(items, key=lambda a: _as_utc(a["published_at"]), reverse=True)

    return Digest(
        national=newest_first(national)[:national_limit],
        local=newest_first(local)[:local_limit],
    )


async def personalize_digest(
    candidates: Digest,
    subscriber: Subscriber,
    classifier: ClassificationService | None,
    national_limit: int = NATIONAL_LIMIT,
    local_limit: int = LOCAL_LIMIT,
) -> Digest:
    """Rank each section's candidates by the subscriber's interests and trim to its limit."""
    interests = format_interests(subscriber.interests)
    model = get_settings().classifier_model

    return Digest(
        national=await rank_by_interests(
            candidates.national, interests, national_limit, classifier, section="national", model=model
        ),
        local=await rank_by_interests(
            candidates.local,
            interests,
            local_limit,
            classifier,
            section="local",
            counties=subscriber.selected_counties,
            cities=subscriber.city_names,
            model=model,
        ),
    )


async def send_digest(
    subscriber: Subscriber,
    digest: Digest,
    run_at: datetime,
    classifier: ClassificationService | None,
    transport: EmailTransport,
) -> bool:
    """Generate a subject line, render and send one digest."""
    settings = get_settings()

    title = await generate_batch_title(digest.top_articles, classifier, model=settings.composer_model)
    content = render_newsletter(
        subscriber,
        national=digest.national,
        local=digest.local,
        title=title,
        run_date=run_at,
        base_url=settings.public_base_url,
    )

    return await transport.send(subscriber.email, content)


async def newsletter(
    state: PipelineState,
    classifier: ClassificationService | None = None,
    transport: EmailTransport | None = None,
) -> dict:
    """
    LangGraph node: Send digests to every DUE subscriber.

    Subscribers and articles are loaded up front. Ranking, subject
    generation and SMTP run without a database connection; one is taken
    only to record last_sent_at after a successful send.

    Returns:
        Partial state update with newsletters_sent and newsletters_failed
    """
    settings = get_settings()
    run_at = _as_utc(state.get("run_date") or datetime.now(timezone.utc))
    classifier = classifier or get_classifier(settings)
    transport = transport or EmailTransport(settings)

    sent = 0
    failed = 0

    pool = await get_db_pool()

    async with pool.acquire() as conn:
        subscribers = await list_active_subscribers(conn)
        due = [s for s in subscribers if digest_state(s, run_at) is DigestState.DUE]

        logger.info("Newsletter check", active=len(subscribers), due=len(due))

        if not due:
            return {"newsletters_sent": 0, "newsletters_failed": 0}

        articles = await list_recent_categorized_articles(
            conn,
            since=run_at - timedelta(days=settings.digest_lookback_days),
            until=run_at,
        )

    for subscriber in due:
        log = logger.bind(subscriber_id=subscriber.id)

        candidates = select_digest_articles(articles, subscriber, national_limit=None, local_limit=None)
        if candidates.is_empty:
            log.info("No articles for subscriber, skipping")
            continue

        try:
            digest = await personalize_digest(candidates, subscriber, classifier)
            delivered = await send_digest(subscriber, digest, run_at, classifier, transport)
        except Exception as e:
            failed += 1
            log.error("Newsletter failed", error=str(e), error_type=type(e).__name__)
            continue

        if not delivered:
            failed += 1
            continue

        sent += 1
        log.info("Newsletter sent", national=len(digest.national), local=len(digest.local))

        try:
            async with pool.acquire() as conn:
                await update_subscriber_last_sent(conn, subscriber.id, run_at)
        except Exception as e:
            # Already delivered, so still counted as sent
            log.error(
                "Newsletter sent but last_sent_at not recorded",
                error=str(e),
                error_type=type(e).__name__,
            )

    logger.info("Newsletter run complete", sent=sent, failed=failed)

    return {"newsletters_sent": sent, "newsletters_failed": failed}
