"""Stripe webhook handling: mark orders paid and hand them to fulfillment.

Order.status transitions driven here:
    pending -> paid     checkout.session.completed / async_payment_succeeded
    pending -> failed   checkout.session.expired / async_payment_failed

Once the event is claimed the webhook is always acknowledged, except for an
unknown checkout session, which is a bookkeeping error and answered 404.
"""

import json
from dataclasses import dataclass
from typing import Optional

from libs.common.config import Settings, get_settings, is_configured
from libs.common.datetime_utils import utc_now
from libs.common.errors import AppError, NotFoundError, ValidationError
from libs.common.logging import get_logger
from services.store_service.models import (
    FulfillmentStatus,
    Order,
    OrderStatus,
    WebhookSource,
)
from services.store_service.services.fulfillment import FulfillmentDispatcher
from services.store_service.services.webhook_ledger import (
    claim_event,
    mark_processed,
    record_error,
)
from services.store_service.stripe_client import verify_webhook_signature
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PAID_EVENTS = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
}
FAILED_EVENTS = {
    "checkout.session.expired",
    "checkout.session.async_payment_failed",
}
ADDRESS_KEYS = ("line1", "line2", "city", "state", "postal_code", "country")


@dataclass
class WebhookAck:
    event_id: str
    event_type: str
    duplicate: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"received": True, "event_id": self.event_id}
        if self.duplicate:
            data["duplicate"] = True
        return data


def parse_event(raw_payload: bytes) -> dict:
    try:
        event = json.loads(raw_payload.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError):
        raise ValidationError("Webhook payload is not valid JSON")
    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise ValidationError("Webhook payload is missing id or type", fields=["id", "type"])
    return event


def extract_shipping_address(session: dict) -> Optional[dict]:
    """Shipping details win over the billing address on the customer."""
    shipping = session.get("shipping_details") or (
        (session.get("collected_information") or {}).get("shipping_details")
    ) or {}
    address = shipping.get("address") or (session.get("customer_details") or {}).get(
        "address"
    )
    if not address:
        return None
    return {key: address.get(key) for key in ADDRESS_KEYS}


class WebhookProcessor:
    def __init__(
        self,
        db: AsyncSession,
        dispatcher: FulfillmentDispatcher,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()

    async def handle(self, raw_payload: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Verify, claim and process one Stripe event.

        Raises:
            SignatureVerificationError: Signature check failed
            ValidationError: Payload is not a Stripe event envelope
            NotFoundError: No order exists for the completed session
        """
        secret = self.settings.STRIPE_WEBHOOK_SECRET
        if is_configured(secret):
            verify_webhook_signature(
                raw_payload,
                signature,
                secret,
                tolerance_seconds=self.settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        else:
            logger.warning(
                "STRIPE_WEBHOOK_SECRET is not set; processing webhook without signature verification",
                extra={"extra_fields": {"environment": self.settings.ENVIRONMENT}},
            )

        event = parse_event(raw_payload)
        event_id, event_type = str(event["id"]), str(event["type"])
        ack = WebhookAck(event_id=event_id, event_type=event_type)

        claim = await claim_event(
            self.db,
            event_id=event_id,
            source=WebhookSource.STRIPE,
            event_type=event_type,
            payload=event,
            lease_minutes=self.settings.WEBHOOK_CLAIM_LEASE_MINUTES,
        )
        if not claim.acquired:
            ack.duplicate = True
            return ack

        session = (event.get("data") or {}).get("object") or {}
        try:
            if event_type in PAID_EVENTS:
                await self._handle_paid(session, event_type)
            elif event_type in FAILED_EVENTS:
                await self._handle_failed(session, event_type)
            else:
                logger.info(f"Ignoring unhandled Stripe event type {event_type}")
        except NotFoundError as exc:
            await self.db.rollback()
            await record_error(self.db, claim.event_pk, exc.message)
            raise
        except Exception as exc:
            await self.db.rollback()
            await record_error(self.db, claim.event_pk, f"{type(exc).__name__}: {exc}")
            logger.exception(
                f"Webhook {event_id} failed after claim; left unprocessed for review",
                extra={"extra_fields": {"event_id": event_id, "event_type": event_type}},
            )
            ack.error = str(exc)
            return ack

        await mark_processed(self.db, claim.event_pk)
        return ack

    async def _get_order(self, session_id: Optional[str]) -> Optional[Order]:
        if not session_id:
            return None
        result = await self.db.execute(
            select(Order).where(Order.payment_session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def _handle_paid(self, session: dict, event_type: str) -> None:
        session_id = session.get("id")
        order = await self._get_order(session_id)
        if order is None:
            raise NotFoundError(f"No order for checkout session {session_id}")

        if order.status == OrderStatus.PAID:
            if (
                not order.external_order_id
                and order.fulfillment_status == FulfillmentStatus.PROCESSING
            ):
                # Paid but never handed to the provider; an earlier attempt died mid-dispatch.
                logger.warning(
                    f"Order {order.id} paid without a provider order, resuming fulfillment",
                    extra={"extra_fields": {"order_id": str(order.id), "event_type": event_type}},
                )
                await self._dispatch(order)
                return
            logger.info(f"Order {order.id} already paid, skipping {event_type}")
            return

        if session.get("payment_intent"):
            order.payment_intent_id = session["payment_intent"]

        # Delayed payment methods complete the session before funds arrive.
        if session.get("payment_status") == "unpaid":
            await self.db.commit()
            logger.info(f"Order {order.id} session completed, awaiting async payment")
            return

        customer = session.get("customer_details") or {}
        order.customer_name = customer.get("name") or "Guest"
        order.customer_email = (
            customer.get("email") or session.get("customer_email") or order.customer_email
        )
        order.customer_phone = customer.get("phone") or order.customer_phone
        order.shipping_address = extract_shipping_address(session)
        order.status = OrderStatus.PAID
        order.fulfillment_status = FulfillmentStatus.PROCESSING
        order.order_metadata = {
            **(order.order_metadata or {}),
            "paid_at": utc_now().isoformat(),
            "payment_event": event_type,
        }
        await self.db.commit()
        logger.info(
            f"Order {order.id} marked paid",
            extra={"extra_fields": {"order_id": str(order.id), "session_id": session_id}},
        )

        await self._dispatch(order)

    async def _dispatch(self, order: Order) -> None:
        order_id = order.id
        try:
            await self.dispatcher.dispatch(order_id)
        except AppError as exc:
            # Recorded on the order by the dispatcher; payment stays acknowledged.
            logger.warning(
                f"Fulfillment for order {order_id} failed: {exc.message}",
                extra={"extra_fields": {"order_id": str(order_id), "code": exc.code}},
            )
        except Exception as exc:
            await self.db.rollback()
            order = await self.db.get(Order, order_id, populate_existing=True)
            order.fulfillment_status = FulfillmentStatus.FAILED
            order.order_metadata = {
                **(order.order_metadata or {}),
                "fulfillment_error": {
                    "message": str(exc),
                    "code": type(exc).__name__,
                    "at": utc_now().isoformat(),
                },
            }
            await self.db.commit()
            logger.exception(f"Unexpected fulfillment error for order {order_id}")

    async def _handle_failed(self, session: dict, event_type: str) -> None:
        order = await self._get_order(session.get("id"))
        if order is None:
            logger.info(f"No order for session {session.get('id')}, ignoring {event_type}")
            return
        if order.status != OrderStatus.PENDING:
            return

        order.status = OrderStatus.FAILED
        order.order_metadata = {
            **(order.order_metadata or {}),
            "payment_failure": {"event": event_type, "at": utc_now().isoformat()},
        }
        await self.db.commit()
        logger.info(f"Order {order.id} marked failed ({event_type})")
