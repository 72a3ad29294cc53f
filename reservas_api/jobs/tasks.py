"""Background job tasks"""

from datetime import date
from typing import Optional
import asyncio
import structlog

from reservas_api.jobs.celery_app import celery_app
from reservas_api.config import settings

logger = structlog.get_logger()

_loop = None


def run_async(coro):
    """Run a coroutine on the worker's single event loop; pooled connections are bound to it"""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


async def finalize_past_reservations_job(session_factory, today: Optional[date] = None) -> int:
    """Close out active reservations whose date has passed"""
    from reservas_api.services.reservations import ReservationService

    today = today or date.today()
    async with session_factory() as db:
        finalized = await ReservationService(db).finalize_past(today)

    logger.info("Finalized past reservations", finalized=finalized, before=str(today))
    return finalized


async def cleanup_webhook_logs_job(session_factory, retention_days: Optional[int] = None) -> int:
    """Delete webhook delivery logs older than the retention window"""
    from reservas_api.webhooks.dispatcher import WebhookConfigRepository

    retention_days = retention_days or settings.webhook_log_retention_days
    async with session_factory() as db:
        deleted = await WebhookConfigRepository(db).purge_logs(retention_days)

    logger.info("Cleaned up webhook logs", deleted_count=deleted, retention_days=retention_days)
    return deleted


@celery_app.task(name="finalize_past_reservations")
def finalize_past_reservations():
    """Mark reservations from previous days as completed"""
    from reservas_api.database import SessionLocal

    logger.info("Finalizing past reservations")
    return run_async(finalize_past_reservations_job(SessionLocal))


@celery_app.task(name="cleanup_webhook_logs")
def cleanup_webhook_logs():
    """Clean up old webhook delivery logs"""
    from reservas_api.database import SessionLocal

    logger.info("Cleaning up webhook logs")
    return run_async(cleanup_webhook_logs_job(SessionLocal))
