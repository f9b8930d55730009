"""Store Service models package."""

from services.store_service.models.catalog import Product, Variant
from services.store_service.models.commerce import Order, OrderItem
from services.store_service.models.enums import (
    FulfillmentStatus,
    OrderStatus,
    PublishState,
    WebhookSource,
)
from services.store_service.models.events import WebhookEvent

__all__ = [
    "FulfillmentStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "PublishState",
    "Variant",
    "WebhookEvent",
    "WebhookSource",
]
