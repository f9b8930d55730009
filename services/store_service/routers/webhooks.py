"""Inbound provider webhooks (no auth; verified by signature)."""

from fastapi import APIRouter, Depends, Request
from libs.common.rate_limit import webhook_limit
from services.store_service.dependencies import (
    get_publishing_service,
    get_webhook_processor,
)
from services.store_service.services.publishing import PublishingService
from services.store_service.services.webhook_processor import WebhookProcessor

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
@webhook_limit
async def stripe_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """Stripe checkout events. Verified by the Stripe-Signature header."""
    raw = await request.body()
    ack = await processor.handle(raw, request.headers.get("stripe-signature"))
    return ack.to_dict()


@router.post("/printify")
@webhook_limit
async def printify_webhook(
    request: Request,
    service: PublishingService = Depends(get_publishing_service),
):
    """Printify publish lifecycle events."""
    raw = await request.body()
    return await service.handle_event(raw, request.headers.get("x-pfy-signature"))
