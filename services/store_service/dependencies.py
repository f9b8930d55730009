"""FastAPI dependency wiring for store components."""

from typing import Optional

from fastapi import Depends
from libs.common.errors import ConfigurationError
from libs.db.session import get_async_db
from services.store_service.printify_client import PrintifyClient, get_printify_client
from services.store_service.services.catalog_sync import CatalogSyncEngine
from services.store_service.services.checkout import CheckoutOrderService
from services.store_service.services.fulfillment import FulfillmentDispatcher
from services.store_service.services.publishing import PublishingService
from services.store_service.services.webhook_processor import WebhookProcessor
from services.store_service.stripe_client import StripeClient, get_stripe_client
from sqlalchemy.ext.asyncio import AsyncSession


def get_catalog_sync_engine(
    db: AsyncSession = Depends(get_async_db),
    client: Optional[PrintifyClient] = Depends(get_printify_client),
) -> CatalogSyncEngine:
    if client is None:
        raise ConfigurationError(
            "Printify is not configured (PRINTIFY_API_TOKEN / PRINTIFY_SHOP_ID)"
        )
    return CatalogSyncEngine(db, client)


def get_checkout_service(
    db: AsyncSession = Depends(get_async_db),
    stripe: Optional[StripeClient] = Depends(get_stripe_client),
) -> CheckoutOrderService:
    return CheckoutOrderService(db, stripe)


def get_fulfillment_dispatcher(
    db: AsyncSession = Depends(get_async_db),
    client: Optional[PrintifyClient] = Depends(get_printify_client),
) -> FulfillmentDispatcher:
    return FulfillmentDispatcher(db, client)


def get_webhook_processor(
    db: AsyncSession = Depends(get_async_db),
    dispatcher: FulfillmentDispatcher = Depends(get_fulfillment_dispatcher),
) -> WebhookProcessor:
    return WebhookProcessor(db, dispatcher)


def get_publishing_service(
    db: AsyncSession = Depends(get_async_db),
    client: Optional[PrintifyClient] = Depends(get_printify_client),
) -> PublishingService:
    return PublishingService(db, client)
