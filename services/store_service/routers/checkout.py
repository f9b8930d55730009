"""Store checkout router: open a hosted payment session for a cart."""

from fastapi import APIRouter, Depends, Request
from libs.common.rate_limit import checkout_limit
from services.store_service.dependencies import get_checkout_service
from services.store_service.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    TotalsResponse,
)
from services.store_service.services.checkout import CartLine, CheckoutOrderService

router = APIRouter(tags=["store"])


@router.post("/checkout", response_model=CheckoutResponse)
@checkout_limit
async def create_checkout(
    request: Request,
    payload: CheckoutRequest,
    service: CheckoutOrderService = Depends(get_checkout_service),
):
    """Price the cart, create the payment session and the pending order."""
    result = await service.create_checkout(
        [
            CartLine(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
            )
            for item in payload.items
        ],
        customer_email=payload.customer_email,
    )
    totals = result.totals
    return CheckoutResponse(
        session_url=result.session_url,
        session_id=result.session_id,
        order_id=result.order_id,
        totals=TotalsResponse(
            subtotal_cents=totals.subtotal_cents,
            shipping_cents=totals.shipping_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
        ),
    )
