import logging
from typing import Any

from arq import cron

from notifyhub.core.database import new_session
from notifyhub.services.retry_service import DeliveryRetryService
from notifyhub.tasks import redis_settings

logger = logging.getLogger(__name__)


async def retry_failed_deliveries_task(ctx: dict[str, Any]) -> int:
    """Background task: retry failed email and push deliveries with exponential backoff.

    Runs every 5 minutes. In-app deliveries are never retried here; clients
    catch up through the feed.
    """
    db = new_session()
    try:
        service = DeliveryRetryService(db)
        count = await service.retry_failed_deliveries()
        if count > 0:
            logger.info("Retried %d failed deliveries", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [retry_failed_deliveries_task]
    cron_jobs = [
        cron(
            retry_failed_deliveries_task,
            minute={0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55},
        ),
    ]
    redis_settings = redis_settings
