"""
FastAPI application for the CRE news pipeline.

Endpoints:
- GET /: API info
- GET /health: Database health
- POST /run: Trigger a pipeline run (requires Authorization: Bearer <CRON_SECRET>)
- GET /articles: Recent categorized articles, optionally for one county
- GET /unsubscribe: Deactivate a subscriber by email

Usage:
    uvicorn crenews.api:app --reload

    # Or use the main.py entrypoint
    python -m crenews.main serve
"""

import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from crenews.config import get_settings
from crenews.db import close_db_pool, get_db_pool
from crenews.db.connection import check_db_health
from crenews.db.repository import deactivate_subscriber, list_recent_articles
from crenews.graph import run_crenews

logger = structlog.get_logger()


# ========================================
# LIFESPAN MANAGEMENT
# ========================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database pool on startup and close it on shutdown."""
    logger.info("Starting API server")
    try:
        await get_db_pool()
        logger.info("Database pool initialized")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
    yield

    logger.info("Shutting down API server")
    await close_db_pool()


app = FastAPI(
    title="CRE News Pipeline",
    description="Collects, classifies and delivers commercial real estate news",
    version="1.0.0",
    lifespan=lifespan,
)


# ========================================
# PYDANTIC MODELS
# ========================================


class HealthResponse(BaseModel):
    status: str = Field(description="Overall health status: healthy or unhealthy")
    database: bool = Field(description="Database connection status")
    timestamp: datetime = Field(description="Current server time")


class RunResponse(BaseModel):
    status: str = Field(description="Run status: completed or failed")
    run_id: str | None = Field(description="Unique run identifier")
    message: str = Field(description="Human-readable status message")
    stats: dict | None = Field(default=None, description="Run statistics if completed")


class ArticleResponse(BaseModel):
    id: int
    title: str
    link: str
    description: str
    published_at: datetime
    source_name: str
    is_national: bool
    image_url: str | None = None
    counties: list[str]
    cities: list[str]
    tags: list[str]


class ArticlesResponse(BaseModel):
    articles: list[ArticleResponse] = Field(description="Articles, newest first")
    count: int = Field(description="Number of articles returned")


# ========================================
# AUTH
# ========================================


def verify_cron_secret(authorization: str | None) -> None:
    """
    Check the Authorization header against CRON_SECRET.

    With no secret configured every request is rejected.
    """
    secret = get_settings().cron_secret
    if secret is None or not secret.get_secret_value():
        logger.warning("CRON_SECRET not configured, rejecting run trigger")
        raise HTTPException(status_code=401, detail="Unauthorized")

    expected = f"Bearer {secret.get_secret_value()}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


# ========================================
# ENDPOINTS
# ========================================


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": "CRE News Pipeline API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    db_healthy = await check_db_health()

    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        database=db_healthy,
        timestamp=datetime.now(timezone.utc),
    )


@app.post("/run", response_model=RunResponse, tags=["Pipeline"])
async def trigger_run(authorization: Annotated[str | None, Header()] = None):
    """
    Run the pipeline once (collect, classify, send due newsletters).

    Meant to be called hourly by a scheduler so every subscriber slot is seen.
    """
    verify_cron_secret(authorization)

    run_id = f"run_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}"
    logger.info("Pipeline run triggered via API", run_id=run_id)

    try:
        result = await run_crenews()
    except Exception as e:
        logger.error("Pipeline run failed", error=str(e), run_id=run_id)
        return RunResponse(
            status="failed",
            run_id=run_id,
            message=f"Pipeline failed: {e}",
            stats=None,
        )

    stats = result.get("stats", {})
    return RunResponse(
        status="completed",
        run_id=result.get("meta", {}).get("run_id", run_id),
        message=(
            f"Pipeline completed. Saved {stats.get('articles_saved', 0)} articles, "
            f"sent {stats.get('newsletters_sent', 0)} newsletters."
        ),
        stats=stats,
    )


@app.get("/articles", response_model=ArticlesResponse, tags=["News"])
async def get_articles(
    limit: Annotated[int, Query(ge=1, le=100, description="Max articles to return")] = 20,
    county: Annotated[str | None, Query(description="Only articles assigned to this county")] = None,
):
    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            articles = await list_recent_articles(conn, limit=limit, county=county)
    except Exception as e:
        logger.error("Failed to fetch articles", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch articles")

    return ArticlesResponse(
        articles=[ArticleResponse(**article) for article in articles],
        count=len(articles),
    )


@app.get("/unsubscribe", response_class=HTMLResponse, tags=["Subscribers"])
async def unsubscribe(email: Annotated[str, Query(min_length=3, description="Subscriber email")]):
    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            found = await deactivate_subscriber(conn, email)
    except Exception as e:
        logger.error("Failed to unsubscribe", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to unsubscribe")

    if not found:
        raise HTTPException(status_code=404, detail="Subscriber not found")

    logger.info("Subscriber unsubscribed")
    return HTMLResponse("<p>You have been unsubscribed from CRE News.</p>")
