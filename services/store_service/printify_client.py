"""
Printify API client for catalog reads, production orders and publish acks.

Provides async methods for:
- Listing shop products (page-driven until a short page)
- Fetching full product detail (options, variants, images)
- Submitting production orders
- Acknowledging publish requests (succeeded/failed)

All calls go through ``RetryingHttpClient`` so rate limits and provider
outages are retried with backoff.
"""

from typing import Any, Optional

import httpx
from libs.common.config import Settings, get_settings
from libs.common.errors import ConfigurationError
from libs.common.http_client import RetryingHttpClient
from libs.common.logging import get_logger

logger = get_logger(__name__)


def variant_image(variant_id: Any, images: list[dict]) -> Optional[str]:
    """
    Pick the preview image for a variant.

    Prefers the front image tagged with the variant, then any image tagged
    with it, then the product's first image.
    """
    tagged = [img for img in images or [] if variant_id in (img.get("variant_ids") or [])]
    front = next((img for img in tagged if img.get("position") == "front"), None)
    chosen = front or (tagged[0] if tagged else None) or (images[0] if images else None)
    return chosen.get("src") if chosen else None


class PrintifyClient:
    """Async client for one Printify shop."""

    def __init__(
        self,
        api_token: str,
        shop_id: str,
        base_url: str = "https://api.printify.com/v1",
        max_attempts: int = 5,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_token or not shop_id:
            raise ConfigurationError("Printify API token and shop id are required")
        self.shop_id = str(shop_id)
        self._http = RetryingHttpClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
            max_attempts=max_attempts,
            timeout=timeout,
            log_context={"provider": "printify", "shop_id": self.shop_id},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PrintifyClient":
        settings = settings or get_settings()
        if not settings.printify_configured:
            raise ConfigurationError(
                "Printify is not configured (PRINTIFY_API_TOKEN / PRINTIFY_SHOP_ID)"
            )
        return cls(
            api_token=settings.PRINTIFY_API_TOKEN,
            shop_id=settings.PRINTIFY_SHOP_ID,
            base_url=settings.PRINTIFY_API_URL,
            max_attempts=settings.HTTP_MAX_ATTEMPTS,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    # =========================================================================
    # Catalog
    # =========================================================================

    async def list_products(self, limit: int = 50) -> list[dict]:
        """
        Return every product summary in the shop.

        Pages are requested until one comes back shorter than ``limit``; the
        total count is never assumed.
        """
        results: list[dict] = []
        page = 1
        while True:
            data = await self._http.request(
                f"/shops/{self.shop_id}/products.json",
                params={"page": page, "limit": limit},
            )
            page_data = (data or {}).get("data") or []
            results.extend(page_data)
            if len(page_data) < limit:
                break
            page += 1

        logger.info(
            f"Fetched {len(results)} Printify products over {page} page(s)",
            extra={"extra_fields": {"shop_id": self.shop_id, "count": len(results)}},
        )
        return results

    async def get_product(self, product_id: str) -> dict:
        return await self._http.request(
            f"/shops/{self.shop_id}/products/{product_id}.json"
        )

    # =========================================================================
    # Orders
    # =========================================================================

    async def create_order(self, payload: dict) -> dict:
        """Submit a production order; returns the provider response (with ``id``)."""
        return await self._http.request(
            f"/shops/{self.shop_id}/orders.json", method="POST", body=payload
        )

    # =========================================================================
    # Publishing
    # =========================================================================

    async def mark_publishing_succeeded(
        self, product_id: str, external: Optional[dict] = None
    ) -> None:
        await self._http.request(
            f"/shops/{self.shop_id}/products/{product_id}/publishing_succeeded.json",
            method="POST",
            body={"external": external} if external else None,
        )
        logger.info(
            f"Printify publishing_succeeded acknowledged for product {product_id}",
            extra={"extra_fields": {"shop_id": self.shop_id, "product_id": product_id}},
        )

    async def mark_publishing_failed(self, product_id: str, reason: str) -> None:
        await self._http.request(
            f"/shops/{self.shop_id}/products/{product_id}/publishing_failed.json",
            method="POST",
            body={"reason": reason},
        )
        logger.info(
            f"Printify publishing_failed acknowledged for product {product_id}",
            extra={"extra_fields": {"shop_id": self.shop_id, "product_id": product_id}},
        )


def get_printify_client() -> Optional[PrintifyClient]:
    """FastAPI dependency: a client for the configured shop, or None when unset."""
    settings = get_settings()
    if not settings.printify_configured:
        return None
    return PrintifyClient.from_settings(settings)
