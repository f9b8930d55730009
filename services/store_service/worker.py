"""ARQ worker for scheduled catalog sync."""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def startup(ctx: dict):
    configure_logging()


async def task_sync_printify_catalog(ctx: dict):
    from services.store_service.tasks import sync_printify_catalog

    logger.info("Running: sync_printify_catalog")
    result = await sync_printify_catalog()
    if result is not None:
        return {
            "synced": result.synced_count,
            "pending_images": len(result.pending_image_product_ids),
            "failed": len(result.failed),
        }


class WorkerSettings:
    redis_settings = get_redis_settings()
    on_startup = startup

    functions = [task_sync_printify_catalog]

    cron_jobs = [
        cron(
            task_sync_printify_catalog,
            minute={0, 15, 30, 45},
            run_at_startup=True,
            unique=True,
        ),
    ]
