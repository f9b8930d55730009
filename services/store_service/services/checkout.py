"""Checkout: price a cart, open a hosted payment session, persist the pending order."""

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from libs.common.config import Settings, get_settings
from libs.common.errors import ConfigurationError, NotFoundError, ValidationError
from libs.common.logging import get_logger
from services.store_service.models import (
    FulfillmentStatus,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Variant,
)
from services.store_service.stripe_client import StripeClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CartLine:
    product_id: uuid.UUID
    quantity: int
    variant_id: Optional[uuid.UUID] = None


@dataclass
class Totals:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.shipping_cents + self.tax_cents


@dataclass
class CheckoutResult:
    session_url: str
    session_id: str
    order_id: uuid.UUID
    totals: Totals


@dataclass
class _PricedLine:
    product: Product
    variant: Optional[Variant]
    quantity: int
    unit_price_cents: int
    name: str


def compute_totals(subtotal_cents: int, settings: Optional[Settings] = None) -> Totals:
    """Flat shipping under the free-shipping threshold; tax rounded half-up."""
    settings = settings or get_settings()
    shipping = (
        0
        if subtotal_cents >= settings.FREE_SHIPPING_THRESHOLD_CENTS
        else settings.FLAT_SHIPPING_CENTS
    )
    tax = int(
        (Decimal(subtotal_cents) * Decimal(str(settings.TAX_RATE))).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )
    return Totals(subtotal_cents=subtotal_cents, shipping_cents=shipping, tax_cents=tax)


class CheckoutOrderService:
    """The only writer of new orders."""

    def __init__(
        self,
        db: AsyncSession,
        stripe: Optional[StripeClient],
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.stripe = stripe
        self.settings = settings or get_settings()

    async def create_checkout(
        self, items: Sequence[CartLine], customer_email: Optional[str] = None
    ) -> CheckoutResult:
        if not items:
            raise ValidationError("Cart is empty", fields=["items"])
        if any(line.quantity < 1 for line in items):
            raise ValidationError("Quantity must be at least 1", fields=["quantity"])
        if self.stripe is None:
            raise ConfigurationError("Stripe is not configured (STRIPE_SECRET_KEY)")

        lines = await self._price_lines(items)
        totals = compute_totals(
            sum(line.unit_price_cents * line.quantity for line in lines), self.settings
        )

        order_id = uuid.uuid4()
        session = await self.stripe.create_checkout_session(
            self._session_params(order_id, lines, totals, customer_email),
            idempotency_key=f"checkout-{order_id}",
        )

        order = Order(
            id=order_id,
            payment_session_id=session["id"],
            status=OrderStatus.PENDING,
            fulfillment_status=FulfillmentStatus.PENDING,
            customer_email=customer_email,
            subtotal_cents=totals.subtotal_cents,
            shipping_cents=totals.shipping_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            currency=self.settings.CURRENCY,
            order_metadata={},
        )
        self.db.add(order)
        for line in lines:
            self.db.add(
                OrderItem(
                    order_id=order_id,
                    product_id=line.product.id,
                    variant_id=line.variant.id if line.variant else None,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                )
            )
        await self.db.commit()

        logger.info(
            f"Checkout session {session['id']} opened for order {order_id}",
            extra={"extra_fields": {
                "order_id": str(order_id),
                "session_id": session["id"],
                "total_cents": totals.total_cents,
                "items": len(lines),
            }},
        )
        return CheckoutResult(
            session_url=session.get("url") or "",
            session_id=session["id"],
            order_id=order_id,
            totals=totals,
        )

    async def _price_lines(self, items: Sequence[CartLine]) -> list[_PricedLine]:
        product_ids = {line.product_id for line in items}
        variant_ids = {line.variant_id for line in items if line.variant_id}

        result = await self.db.execute(select(Product).where(Product.id.in_(product_ids)))
        products = {p.id: p for p in result.scalars().all()}
        variants: dict[uuid.UUID, Variant] = {}
        if variant_ids:
            result = await self.db.execute(
                select(Variant).where(Variant.id.in_(variant_ids))
            )
            variants = {v.id: v for v in result.scalars().all()}

        priced: list[_PricedLine] = []
        for line in items:
            product = products.get(line.product_id)
            if product is None:
                raise NotFoundError(f"Product {line.product_id} not found")

            variant = variants.get(line.variant_id) if line.variant_id else None
            if variant is not None and variant.product_id != product.id:
                variant = None
            if variant is not None and not variant.available:
                raise ValidationError(
                    f"Variant {variant.name} of {product.name} is no longer available",
                    fields=["variant_id"],
                )

            priced.append(
                _PricedLine(
                    product=product,
                    variant=variant,
                    quantity=line.quantity,
                    unit_price_cents=variant.price_cents if variant else product.price_cents,
                    name=f"{product.name} - {variant.name}" if variant else product.name,
                )
            )
        return priced

    def _session_params(
        self,
        order_id: uuid.UUID,
        lines: list[_PricedLine],
        totals: Totals,
        customer_email: Optional[str],
    ) -> dict:
        currency = self.settings.CURRENCY
        line_items = []
        for line in lines:
            product_data: dict = {"name": line.name}
            if line.product.thumbnail_url:
                product_data["images"] = [line.product.thumbnail_url]
            line_items.append(
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": product_data,
                        "unit_amount": line.unit_price_cents,
                    },
                    "quantity": line.quantity,
                }
            )

        for label, amount in (
            ("Shipping", totals.shipping_cents),
            ("Estimated Tax", totals.tax_cents),
        ):
            if amount > 0:
                line_items.append(
                    {
                        "price_data": {
                            "currency": currency,
                            "product_data": {"name": label},
                            "unit_amount": amount,
                        },
                        "quantity": 1,
                    }
                )

        frontend = self.settings.FRONTEND_URL.rstrip("/")
        return {
            "mode": "payment",
            "line_items": line_items,
            "success_url": f"{frontend}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{frontend}/checkout/cancel",
            "shipping_address_collection": {
                "allowed_countries": list(self.settings.CHECKOUT_ALLOWED_COUNTRIES)
            },
            "phone_number_collection": {"enabled": True},
            "customer_email": customer_email,
            "client_reference_id": str(order_id),
            "metadata": {"order_id": str(order_id)},
        }
