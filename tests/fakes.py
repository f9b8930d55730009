"""In-memory stand-ins for the Printify and Stripe clients."""

import copy
from typing import Optional

from libs.common.errors import ProviderError


class FakePrintifyClient:
    """Serves product payloads from a dict and records outbound writes."""

    def __init__(self, products: Optional[dict[str, dict]] = None, shop_id: str = "shop-1"):
        self.shop_id = shop_id
        self.products: dict[str, dict] = products or {}
        self.failing_products: set[str] = set()
        self.orders: list[dict] = []
        self.order_error: Optional[ProviderError] = None
        self.acks: list[tuple] = []
        self.ack_error: Optional[Exception] = None

    def add_product(self, product: dict) -> None:
        self.products[str(product["id"])] = product

    async def list_products(self, limit: int = 50) -> list[dict]:
        return [{"id": pid, "title": p.get("title")} for pid, p in self.products.items()]

    async def get_product(self, product_id: str) -> dict:
        if product_id in self.failing_products:
            raise ProviderError(
                f"GET product {product_id} returned 500",
                status_code=500,
                body={"error": "boom"},
                endpoint=f"/shops/{self.shop_id}/products/{product_id}.json",
            )
        return copy.deepcopy(self.products[product_id])

    async def create_order(self, payload: dict) -> dict:
        self.orders.append(payload)
        if self.order_error is not None:
            raise self.order_error
        return {"id": f"pf-order-{len(self.orders)}", "status": "pending"}

    async def mark_publishing_succeeded(self, product_id: str, external: Optional[dict] = None) -> None:
        if self.ack_error is not None:
            raise self.ack_error
        self.acks.append(("succeeded", product_id))

    async def mark_publishing_failed(self, product_id: str, reason: str) -> None:
        if self.ack_error is not None:
            raise self.ack_error
        self.acks.append(("failed", product_id, reason))


class FakeStripeClient:
    """Opens sequential fake checkout sessions."""

    def __init__(self):
        self.sessions: list[dict] = []

    async def create_checkout_session(self, params: dict, idempotency_key: Optional[str] = None) -> dict:
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append(
            {"id": session_id, "params": params, "idempotency_key": idempotency_key}
        )
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}
