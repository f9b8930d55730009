"""Store admin router: catalog sync, publish acks, product flags, orders, webhooks."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.errors import NotFoundError
from libs.common.logging import get_logger
from libs.common.rate_limit import admin_limit
from libs.db.session import get_async_db
from services.store_service.dependencies import (
    get_catalog_sync_engine,
    get_fulfillment_dispatcher,
    get_publishing_service,
)
from services.store_service.models import (
    FulfillmentStatus,
    Order,
    OrderStatus,
    Product,
    WebhookEvent,
)
from services.store_service.schemas import (
    DispatchResponse,
    OrderDetail,
    OrderResponse,
    ProductResponse,
    ProductUpdate,
    PublishAckResponse,
    SyncResultResponse,
    WebhookEventResponse,
)
from services.store_service.services.catalog_sync import CatalogSyncEngine
from services.store_service.services.fulfillment import FulfillmentDispatcher
from services.store_service.services.publishing import PublishingService
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["admin-store"])
logger = get_logger(__name__)


# ============================================================================
# CATALOG
# ============================================================================


@router.post("/catalog/sync", response_model=SyncResultResponse)
@admin_limit
async def sync_catalog(
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    engine: CatalogSyncEngine = Depends(get_catalog_sync_engine),
):
    """Run a catalog sync against Printify now."""
    logger.info(f"Catalog sync triggered by {current_user.user_id}")
    result = await engine.sync()
    return SyncResultResponse.model_validate(result)


@router.post("/catalog/publish-ack", response_model=PublishAckResponse)
@admin_limit
async def acknowledge_publishing(
    request: Request,
    current_user: AuthUser = Depends(require_admin),
    service: PublishingService = Depends(get_publishing_service),
):
    """Acknowledge publishing for every provider-backed product."""
    return await service.acknowledge_all()


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Update locally owned product flags (survive re-sync)."""
    product = await db.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(product, field, value)
    await db.commit()
    await db.refresh(product)
    return product


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_model=list[OrderResponse])
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    fulfillment_status: Optional[FulfillmentStatus] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List orders, newest first."""
    query = select(Order)
    if status:
        query = query.where(Order.status == status)
    if fulfillment_status:
        query = query.where(Order.fulfillment_status == fulfillment_status)
    query = query.order_by(Order.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/orders/{order_id}", response_model=OrderDetail)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Order detail including items and the fulfillment audit trail."""
    result = await db.execute(
        select(Order).where(Order.id == order_id).options(selectinload(Order.items))
    )
    order = result.scalar_one_or_none()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return OrderDetail.model_validate(order)


@router.post("/orders/{order_id}/fulfillment", response_model=DispatchResponse)
async def resend_fulfillment(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    dispatcher: FulfillmentDispatcher = Depends(get_fulfillment_dispatcher),
):
    """Manually (re)submit a paid order to Printify."""
    logger.info(f"Fulfillment resend for order {order_id} by {current_user.user_id}")
    return await dispatcher.dispatch(order_id)


# ============================================================================
# WEBHOOK EVENTS
# ============================================================================


@router.get("/webhook-events", response_model=list[WebhookEventResponse])
async def list_webhook_events(
    processed: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """List received webhooks; ``processed=false`` surfaces stuck events."""
    query = select(WebhookEvent)
    if processed is not None:
        query = query.where(WebhookEvent.processed.is_(processed))
    query = query.order_by(WebhookEvent.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()
