"""ARQ worker for store notification delivery."""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


async def task_dispatch_outbox(ctx: dict):
    from services.store_service.tasks import dispatch_outbox

    logger.info("Running: dispatch_outbox")
    await dispatch_outbox()


class WorkerSettings:
    redis_settings = get_redis_settings()

    functions = [
        task_dispatch_outbox,
    ]

    cron_jobs = [
        cron(
            task_dispatch_outbox,
            minute=set(range(60)),
            run_at_startup=True,
        ),
    ]
