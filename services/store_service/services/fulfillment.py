"""Fulfillment dispatch: submit paid orders to Printify for production.

Every failure is written to ``Order.metadata`` with ``fulfillment_status``
set to failed before it is raised, so an operator can see why and resend.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from libs.common.config import Settings, get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    AppError,
    ConfigurationError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from libs.common.logging import get_logger
from services.store_service.models import (
    FulfillmentStatus,
    Order,
    OrderItem,
    OrderStatus,
    Variant,
)
from services.store_service.printify_client import PrintifyClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

DEFAULT_COUNTRY = "US"
DEFAULT_FIRST_NAME = "Customer"

COUNTRY_CODES = {
    "united states": "US",
    "united states of america": "US",
    "usa": "US",
    "america": "US",
    "canada": "CA",
    "united kingdom": "GB",
    "great britain": "GB",
    "england": "GB",
    "scotland": "GB",
    "wales": "GB",
    "australia": "AU",
    "new zealand": "NZ",
    "ireland": "IE",
    "germany": "DE",
    "france": "FR",
    "spain": "ES",
    "italy": "IT",
    "netherlands": "NL",
    "mexico": "MX",
}

# (address key, human-readable name) checked before any outbound call
REQUIRED_ADDRESS_FIELDS = (
    ("line1", "street address"),
    ("city", "city"),
    ("postal_code", "postal code"),
)


def normalize_country_code(country: Optional[str]) -> str:
    """Two letters pass through upper-cased; names map through a table."""
    value = (country or "").strip()
    if not value:
        return DEFAULT_COUNTRY
    if len(value) == 2 and value.isalpha():
        return value.upper()
    return COUNTRY_CODES.get(value.lower(), value[:2].upper())


def split_customer_name(name: Optional[str]) -> tuple[str, str]:
    parts = (name or "").split()
    if not parts:
        return DEFAULT_FIRST_NAME, ""
    return parts[0], " ".join(parts[1:])


def _provider_variant_id(value: str) -> Any:
    return int(value) if value.isdigit() else value


@dataclass
class DispatchResult:
    order_id: uuid.UUID
    external_order_id: str
    already_dispatched: bool = False


class FulfillmentDispatcher:
    def __init__(
        self,
        db: AsyncSession,
        client: Optional[PrintifyClient],
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.client = client
        self.settings = settings or get_settings()

    async def dispatch(self, order_id: uuid.UUID) -> DispatchResult:
        """
        Submit a paid order to Printify.

        Raises:
            NotFoundError: Unknown order
            ValidationError: Order not paid, or order data incomplete
            ConfigurationError: Printify credentials missing
            ProviderError: Printify rejected the order or was unreachable
        """
        order = await self._load_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if order.external_order_id:
            logger.info(
                f"Order {order_id} already dispatched as {order.external_order_id}"
            )
            return DispatchResult(
                order_id=order.id,
                external_order_id=order.external_order_id,
                already_dispatched=True,
            )
        if order.status != OrderStatus.PAID:
            raise ValidationError(
                f"Order {order_id} is not paid (status={order.status.value})"
            )

        try:
            if self.client is None:
                raise ConfigurationError(
                    "Printify is not configured (PRINTIFY_API_TOKEN / PRINTIFY_SHOP_ID)"
                )
            payload = await self.build_order_payload(order)
        except AppError as exc:
            await self._record_failure(order, exc)
            raise

        try:
            response = await self.client.create_order(payload)
        except ProviderError as exc:
            await self._record_failure(order, exc, request=payload)
            raise

        external_order_id = str((response or {}).get("id") or "")
        if not external_order_id:
            exc = ProviderError(
                "Printify order response has no id",
                body=response,
                endpoint="orders.json",
            )
            await self._record_failure(order, exc, request=payload)
            raise exc

        order.external_order_id = external_order_id
        order.fulfillment_status = FulfillmentStatus.PROCESSING
        metadata = dict(order.order_metadata or {})
        metadata.pop("fulfillment_error", None)
        order.order_metadata = {
            **metadata,
            "printify_order": response,
            "dispatched_at": utc_now().isoformat(),
        }
        await self.db.commit()

        logger.info(
            f"Order {order.id} dispatched to Printify as {external_order_id}",
            extra={"extra_fields": {
                "order_id": str(order.id),
                "printify_order_id": external_order_id,
                "line_items": len(payload["line_items"]),
            }},
        )
        return DispatchResult(order_id=order.id, external_order_id=external_order_id)

    async def build_order_payload(self, order: Order) -> dict:
        """Validate the order and build the Printify order request."""
        address = order.shipping_address or {}
        if not address:
            raise ValidationError(
                f"Order {order.id} has no shipping address", fields=["shipping_address"]
            )

        missing = [] if order.customer_email else ["email"]
        missing += [label for key, label in REQUIRED_ADDRESS_FIELDS if not address.get(key)]
        if missing:
            raise ValidationError(
                f"Order {order.id} is missing required fields: {', '.join(missing)}",
                fields=missing,
            )

        line_items = []
        for item in order.items:
            product = item.product
            if product is None or not product.external_id:
                logger.warning(
                    f"Skipping item '{item.name}' on order {order.id}: product is not provider-backed"
                )
                continue

            variant = await self.db.get(Variant, item.variant_id) if item.variant_id else None
            if variant is None or not variant.external_variant_id:
                raise ValidationError(
                    f"Item '{item.name}' on order {order.id} has no provider variant mapping",
                    fields=["variant_id"],
                )
            line_items.append(
                {
                    "product_id": product.external_id,
                    "variant_id": _provider_variant_id(variant.external_variant_id),
                    "quantity": item.quantity,
                }
            )

        if not line_items:
            raise ValidationError(f"Order {order.id} has no fulfillable items")

        first_name, last_name = split_customer_name(order.customer_name)
        return {
            "external_id": str(order.id),
            "label": f"Order {str(order.id)[:8]}",
            "line_items": line_items,
            "shipping_method": self.settings.PRINTIFY_SHIPPING_METHOD,
            "send_shipping_notification": True,
            "address_to": {
                "first_name": first_name,
                "last_name": last_name,
                "email": order.customer_email,
                "phone": order.customer_phone or "",
                "country": normalize_country_code(address.get("country")),
                "region": address.get("state") or "",
                "address1": address.get("line1"),
                "address2": address.get("line2") or "",
                "city": address.get("city"),
                "zip": address.get("postal_code"),
            },
        }

    async def _load_order(self, order_id: uuid.UUID) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _record_failure(
        self, order: Order, exc: AppError, request: Optional[dict] = None
    ) -> None:
        error: dict[str, Any] = {
            "message": exc.message,
            "code": exc.code,
            "at": utc_now().isoformat(),
        }
        if isinstance(exc, ProviderError):
            error["status_code"] = exc.status_code
            error["body"] = exc.body
        if isinstance(exc, ValidationError) and exc.fields:
            error["fields"] = exc.fields

        metadata = {**(order.order_metadata or {}), "fulfillment_error": error}
        if request is not None:
            metadata["fulfillment_request"] = request
        order.order_metadata = metadata
        order.fulfillment_status = FulfillmentStatus.FAILED
        await self.db.commit()

        logger.error(
            f"Fulfillment failed for order {order.id}: {exc.message}",
            extra={"extra_fields": {"order_id": str(order.id), "code": exc.code}},
        )
