"""
Entry point for the peer review lifecycle jobs.

Usage: python main.py [job ...]   (runs every job when none are given)
       python main.py init-db     (creates missing tables)
"""
import asyncio
import logging
import sys

from peer_review.config.settings import settings, PeerReviewPolicy
from peer_review.config.logging_config import setup_production_logging
from peer_review.database.base import get_session_factory, wait_for_database, init_database, close_database
from peer_review.jobs import run_jobs
from peer_review.notifications.telegram_notifier import TelegramNotifier, create_bot
from peer_review.services.factory import build_services
from peer_review.services.retry_policy import RetryPolicy
from peer_review.services.reviewer_cache import ReviewerCache


def setup_logging():
    """Configure logging for the application."""
    try:
        if settings.DEBUG:
            # Simple logging for development
            logging.basicConfig(
                level=getattr(logging, settings.LOG_LEVEL.upper()),
                format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                handlers=[logging.StreamHandler(sys.stdout)]
            )
        else:
            # Production logging with file rotation
            setup_production_logging()
    except Exception as e:
        # Fallback to basic console logging if production logging fails
        print(f"Warning: Production logging setup failed ({e}). Using basic console logging.")
        logging.basicConfig(
            level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[logging.StreamHandler(sys.stdout)]
        )


async def main(job_names):
    """Run the requested lifecycle jobs once."""
    setup_logging()
    logger = logging.getLogger(__name__)

    settings.validate_required_settings()
    logger.info("Configuration validated successfully")

    if list(job_names) == ["init-db"]:
        try:
            await init_database()
        finally:
            await close_database()
        return 0

    if not await wait_for_database(max_retries=5):
        raise RuntimeError("Database unavailable")

    notifier = TelegramNotifier(create_bot(settings.TELEGRAM_BOT_TOKEN))
    try:
        async with get_session_factory()() as session:
            services = build_services(
                session,
                notifier,
                policy=PeerReviewPolicy.from_settings(settings),
                retry_policy=RetryPolicy.from_settings(settings),
                cache=ReviewerCache(
                    ttl=settings.REVIEWER_CACHE_TTL_SECONDS,
                    max_size=settings.REVIEWER_CACHE_MAX_SIZE,
                ),
            )
            results = await run_jobs(services, job_names)
    finally:
        await notifier.close()
        await close_database()

    failed = [name for name, result in results if result.errors]
    if failed:
        logger.warning(f"Jobs finished with errors: {', '.join(failed)}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
