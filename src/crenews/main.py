"""
Command-line entry point for the CRE news pipeline.

    crenews serve [--host H] [--port P] [--reload]   API server (default)
    crenews run [--run-date ISO]                     One pipeline run, e.g. from an hourly cron
    crenews setup-db                                 Create tables

`python -m crenews.main ...` works the same way.
"""

# Load .env into os.environ before LangChain modules are imported
from dotenv import load_dotenv

load_dotenv()

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

import structlog
import uvicorn

from crenews.config import get_settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


# ========================================
# COMMAND FUNCTIONS
# ========================================


async def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    logger.info("Starting API server", host=host, port=port, reload=reload)

    config = uvicorn.Config("crenews.api:app", host=host, port=port, reload=reload, log_level="info")
    await uvicorn.Server(config).serve()


def parse_run_date(value: str) -> datetime:
    """argparse type for --run-date; naive values are taken as UTC."""
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def print_run_summary(result: dict) -> None:
    stats = result.get("stats", {})
    rows = [
        ("Articles collected", stats.get("articles_collected", 0)),
        ("Articles saved", stats.get("articles_saved", 0)),
        ("Articles irrelevant", stats.get("articles_irrelevant", 0)),
        ("Articles rewritten", stats.get("articles_rewritten", 0)),
        ("Articles categorized", stats.get("articles_categorized", 0)),
        ("Newsletters sent", stats.get("newsletters_sent", 0)),
        ("Newsletters failed", stats.get("newsletters_failed", 0)),
        ("Collection errors", stats.get("collection_errors", 0)),
    ]

    print("\n" + "=" * 60)
    print(f"Run {result.get('meta', {}).get('run_id', '?')} complete")
    print("=" * 60)
    for label, value in rows:
        print(f"{label + ':':<22}{value}")


async def run_once(run_date: datetime | None = None):
    """Run the pipeline once (optionally as of run_date) and print a summary."""
    from crenews.db import close_db_pool
    from crenews.graph import run_crenews

    try:
        result = await run_crenews(run_date=run_date)
    except Exception as e:
        logger.error("Pipeline failed", error=str(e), error_type=type(e).__name__)
        print(f"\nPipeline failed: {e}")
        sys.exit(1)
    finally:
        await close_db_pool()

    print_run_summary(result)


async def initialize_database():
    from crenews.db import close_db_pool
    from crenews.db.setup_db import get_table_stats, setup_database

    try:
        await setup_database()
        stats = await get_table_stats()
    except Exception as e:
        logger.error("Database setup failed", error=str(e), error_type=type(e).__name__)
        print(f"\nDatabase setup failed: {e}")
        print("\nMake sure PostgreSQL is running and DATABASE_URL is correct.")
        sys.exit(1)
    finally:
        await close_db_pool()

    print("\nDatabase ready:")
    for table, count in stats.items():
        print(f"  {table}: {count} rows")


# ========================================
# CLI ENTRY POINT
# ========================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crenews",
        description="Collect, classify and deliver commercial real estate news",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  crenews serve --port 8080                      # API server (default command)
  crenews run                                    # One run, as of now
  crenews run --run-date 2024-12-27T17:00:00Z    # Replay the 17:00 UTC slot
  crenews setup-db                               # Create tables
        """,
    )

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    run_parser = subparsers.add_parser("run", help="Run the pipeline once")
    run_parser.add_argument(
        "--run-date",
        type=parse_run_date,
        default=None,
        help="Treat the run as happening at this ISO-8601 time (newsletter slots match against it)",
    )

    subparsers.add_parser("setup-db", help="Create the database schema")

    parser.set_defaults(command="serve", host="0.0.0.0", port=8000, reload=False)
    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except Exception as e:
        print(f"\nConfiguration Error: {e}")
        print("\nCheck the environment or the .env file.")
        sys.exit(1)

    configure_logging(settings.log_level)
    logger.debug(
        "Settings loaded",
        classifier_configured=settings.classifier_configured,
        smtp_configured=settings.smtp_configured,
    )

    if args.command == "serve":
        asyncio.run(run_server(host=args.host, port=args.port, reload=args.reload))
    elif args.command == "run":
        asyncio.run(run_once(args.run_date))
    elif args.command == "setup-db":
        asyncio.run(initialize_database())


if __name__ == "__main__":
    main()
