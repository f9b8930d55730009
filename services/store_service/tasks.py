"""Background tasks for the store service."""

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal
from services.store_service.printify_client import PrintifyClient
from services.store_service.services.catalog_sync import CatalogSyncEngine, SyncResult

logger = get_logger(__name__)


async def sync_printify_catalog() -> SyncResult | None:
    """Run a full catalog sync; products still rendering images are retried here."""
    settings = get_settings()
    if not settings.printify_configured:
        logger.warning("Printify is not configured; skipping scheduled catalog sync")
        return None

    client = PrintifyClient.from_settings(settings)
    async with AsyncSessionLocal() as db:
        return await CatalogSyncEngine(db, client, settings).sync()
