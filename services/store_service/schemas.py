"""Pydantic schemas for store service.

The storefront speaks camelCase (``productId``, ``sessionUrl``); models
accept either spelling on input and emit camelCase.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from services.store_service.models import (
    FulfillmentStatus,
    OrderStatus,
    PublishState,
    WebhookSource,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================


class VariantResponse(CamelModel):
    id: uuid.UUID
    name: str
    size: str
    color: str
    sku: Optional[str] = None
    price_cents: int
    available: bool
    preview_url: Optional[str] = None


class ProductResponse(CamelModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    price_cents: int
    thumbnail_url: Optional[str] = None
    images: list[str] = []
    active: bool
    featured: bool
    publish_state: PublishState


class ColorOption(CamelModel):
    name: str
    hex: str


class VariantOptionsResponse(CamelModel):
    colors: list[ColorOption]
    sizes: list[str]
    # "{size}|{color}" -> variant id
    variant_map: dict[str, uuid.UUID]


class ProductDetail(ProductResponse):
    variants: list[VariantResponse] = []
    options: VariantOptionsResponse


class ProductUpdate(CamelModel):
    active: Optional[bool] = None
    featured: Optional[bool] = None


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutItem(CamelModel):
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    quantity: int = Field(1, ge=1, le=100)


class CheckoutRequest(CamelModel):
    items: list[CheckoutItem]
    customer_email: Optional[EmailStr] = None


class TotalsResponse(CamelModel):
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int


class CheckoutResponse(CamelModel):
    session_url: str
    session_id: str
    order_id: uuid.UUID
    totals: TotalsResponse


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemResponse(CamelModel):
    id: uuid.UUID
    product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    name: str
    quantity: int
    unit_price_cents: int


class OrderResponse(CamelModel):
    id: uuid.UUID
    payment_session_id: str
    status: OrderStatus
    fulfillment_status: FulfillmentStatus
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    currency: str
    external_order_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderDetail(OrderResponse):
    payment_intent_id: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[dict] = None
    metadata: dict = Field(default_factory=dict, validation_alias="order_metadata")
    items: list[OrderItemResponse] = []


class DispatchResponse(CamelModel):
    order_id: uuid.UUID
    external_order_id: str
    already_dispatched: bool = False


# ============================================================================
# SYNC / PUBLISHING SCHEMAS
# ============================================================================


class SyncFailureResponse(CamelModel):
    product_id: str
    error: str


class SyncResultResponse(CamelModel):
    synced_count: int
    synced_product_ids: list[str]
    pending_image_product_ids: list[str]
    skipped_product_ids: list[str]
    failed: list[SyncFailureResponse]


class PublishAckResponse(CamelModel):
    acknowledged: list[str]
    failed: list[dict]


class WebhookEventResponse(CamelModel):
    id: uuid.UUID
    event_id: str
    source: WebhookSource
    event_type: str
    processed: bool
    error_message: Optional[str] = None
    claimed_at: datetime
    processed_at: Optional[datetime] = None
    created_at: datetime
