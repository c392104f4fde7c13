"""
APScheduler Configuration

Manages the scheduled revalidation of the whole catalog against the active
quality rules.
"""
import logging
import time
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from catalog_quality.config import get_settings
from catalog_quality.services.product_provider import DatabaseProductProvider
from catalog_quality.services.quality_engine import get_quality_engine

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def revalidate_all_products():
    """
    Daily job re-evaluating every product.

    Runs a batch evaluation over all products, which also appends one
    validation log per product. Logs a summary including products below the
    complete threshold.
    """
    logger.info("Starting daily product quality revalidation")
    start_time = time.time()

    try:
        settings = get_settings()
        engine = get_quality_engine()
        product_ids = await DatabaseProductProvider().list_product_ids()

        evaluated = failed = below_threshold = 0
        async for item in engine.evaluate_batch(product_ids):
            if not item.ok:
                failed += 1
                logger.warning(f"Revalidation failed for product {item.product_id}: {item.error}")
                continue
            evaluated += 1
            if item.report.overall_score < settings.complete_threshold:
                below_threshold += 1

        duration = time.time() - start_time
        logger.info(
            f"Quality revalidation complete: {evaluated} products evaluated, "
            f"{failed} failed in {duration:.1f}s"
        )

        # Warn if products below threshold
        if below_threshold > 0:
            logger.warning(
                f"Quality ALERT: {below_threshold} products below {settings.complete_threshold} threshold"
            )

    except Exception as e:
        logger.error(f"Failed to revalidate products: {e}", exc_info=True)


def configure_scheduler():
    """
    Configure APScheduler with all scheduled jobs.

    Jobs:
        - Product revalidation: Daily at QUALITY_REVALIDATION_CRON_HOUR (default 02:00)
    """
    settings = get_settings()

    scheduler.add_job(
        revalidate_all_products,
        trigger=CronTrigger(hour=settings.revalidation_cron_hour, minute=0),
        id='product_quality_revalidation',
        name='Revalidate Product Quality',
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1  # Only one instance at a time
    )

    logger.info(f"Scheduler configured with daily revalidation at {settings.revalidation_cron_hour:02d}:00")


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler"""
    scheduler.shutdown()
    logger.info("Scheduler stopped")
