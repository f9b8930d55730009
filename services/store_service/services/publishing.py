"""Printify publish lifecycle: track publish state and acknowledge publish requests.

State is persisted first; the acknowledgement back to Printify is a separate
step afterwards whose failure is logged and reported but never undoes the
local update.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from typing import Optional

from libs.common.config import Settings, get_settings, is_configured
from libs.common.errors import SignatureVerificationError, ValidationError
from libs.common.logging import get_logger
from services.store_service.models import Product, PublishState, WebhookSource
from services.store_service.printify_client import PrintifyClient
from services.store_service.services.webhook_ledger import claim_event, mark_processed
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PUBLISH_STARTED = "product:publish:started"
PUBLISH_SUCCEEDED = "product:publish:succeeded"
PUBLISH_FAILED = "product:publish:failed"

STATE_BY_EVENT = {
    PUBLISH_STARTED: PublishState.PUBLISHING,
    PUBLISH_SUCCEEDED: PublishState.PUBLISHED,
    PUBLISH_FAILED: PublishState.FAILED,
}


def verify_printify_signature(payload: bytes, signature: Optional[str], secret: str) -> None:
    """Printify signs the raw body with HMAC-SHA256 (``sha256=<hex>``)."""
    if not signature:
        raise SignatureVerificationError("Missing X-Pfy-Signature header")
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    provided = signature.split("=", 1)[1] if signature.startswith("sha256=") else signature
    if not hmac.compare_digest(expected, provided):
        raise SignatureVerificationError("Invalid Printify webhook signature")


def _event_product_id(payload: dict) -> Optional[str]:
    data = payload.get("data") or {}
    resource = payload.get("resource") or {}
    product_id = (
        data.get("product_id") or data.get("id") or resource.get("id") or payload.get("product_id")
    )
    return str(product_id) if product_id else None


@dataclass
class AckReport:
    acknowledged: list[str] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)


class PublishingService:
    def __init__(
        self,
        db: AsyncSession,
        client: Optional[PrintifyClient],
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.client = client
        self.settings = settings or get_settings()

    async def handle_event(self, raw_payload: bytes, signature: Optional[str]) -> dict:
        secret = self.settings.PRINTIFY_WEBHOOK_SECRET
        if is_configured(secret):
            verify_printify_signature(raw_payload, signature, secret)
        else:
            logger.warning(
                "PRINTIFY_WEBHOOK_SECRET is not set; processing webhook without signature verification"
            )

        try:
            payload = json.loads(raw_payload.decode("utf-8") or "{}")
        except (UnicodeDecodeError, ValueError):
            raise ValidationError("Webhook payload is not valid JSON")
        if not isinstance(payload, dict):
            raise ValidationError("Webhook payload is not an object")

        event_type = payload.get("event") or payload.get("type")
        product_id = _event_product_id(payload)
        if not event_type or not product_id:
            raise ValidationError("Invalid payload: missing event type or product id")

        if event_type not in STATE_BY_EVENT:
            logger.info(f"Ignoring Printify event {event_type} for product {product_id}")
            return {"received": True, "ignored": True}

        event_id = str(payload.get("id") or hashlib.sha256(raw_payload).hexdigest())
        claim = await claim_event(
            self.db,
            event_id=f"printify:{event_id}",
            source=WebhookSource.PRINTIFY,
            event_type=event_type,
            payload=payload,
            lease_minutes=self.settings.WEBHOOK_CLAIM_LEASE_MINUTES,
        )
        if not claim.acquired:
            return {"received": True, "duplicate": True}

        state = STATE_BY_EVENT[event_type]
        found = await self.set_publish_state(product_id, state)
        await mark_processed(self.db, claim.event_pk)

        if not found:
            logger.warning(f"Printify publish event for unknown product {product_id}")
            return {"received": True, "product_id": product_id, "publish_state": state.value}

        acknowledged = True
        if event_type == PUBLISH_SUCCEEDED:
            acknowledged = await self.acknowledge(product_id)
        elif event_type == PUBLISH_FAILED:
            reason = (payload.get("data") or {}).get("reason") or "Publishing failed"
            acknowledged = await self.acknowledge(product_id, failed_reason=reason)

        return {
            "received": True,
            "product_id": product_id,
            "publish_state": state.value,
            "acknowledged": acknowledged,
        }

    async def set_publish_state(self, external_id: str, state: PublishState) -> bool:
        result = await self.db.execute(
            select(Product).where(Product.external_id == external_id)
        )
        product = result.scalar_one_or_none()
        if product is None:
            return False

        product.publish_state = state
        if state == PublishState.PUBLISHING:
            product.active = False
        elif state == PublishState.PUBLISHED:
            product.active = True
        await self.db.commit()
        logger.info(f"Product {external_id} publish_state -> {state.value}")
        return True

    async def acknowledge(self, external_id: str, failed_reason: Optional[str] = None) -> bool:
        """Send the publish ack for a persisted product. Returns False on failure."""
        if self.client is None:
            logger.warning(f"Printify not configured; skipping publish ack for {external_id}")
            return False
        try:
            if failed_reason:
                await self.client.mark_publishing_failed(external_id, failed_reason)
            else:
                await self.client.mark_publishing_succeeded(external_id)
        except Exception as exc:
            logger.error(
                f"Publish ack failed for product {external_id}: {exc}",
                extra={"extra_fields": {"product_id": external_id}},
            )
            return False
        return True

    async def acknowledge_all(self) -> AckReport:
        """Acknowledge publishing for every provider-backed product."""
        result = await self.db.execute(
            select(Product.external_id).where(Product.external_id.is_not(None))
        )
        report = AckReport()
        for (external_id,) in result.all():
            if await self.acknowledge(external_id):
                report.acknowledged.append(external_id)
            else:
                report.failed.append({"product_id": external_id, "error": "acknowledgement failed"})
        return report
