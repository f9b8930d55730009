"""Catalog synchronization: mirror Printify products into the local catalog.

Each remote product is synced on its own and committed on its own. A
failure rolls back that product only and is recorded in the run result;
the rest of the batch continues.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from libs.common.config import Settings, get_settings
from libs.common.logging import get_logger
from services.store_service.models import Product, PublishState, Variant
from services.store_service.printify_client import PrintifyClient, variant_image
from services.store_service.variant_resolver import resolve_variant
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

DEFAULT_STOCK = 100
SLUG_SUFFIX_LENGTH = 6

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    return _NON_ALNUM.sub("-", (title or "").lower()).strip("-")


@dataclass
class SyncFailure:
    product_id: str
    error: str


@dataclass
class SyncResult:
    synced_product_ids: list[str] = field(default_factory=list)
    pending_image_product_ids: list[str] = field(default_factory=list)
    skipped_product_ids: list[str] = field(default_factory=list)
    failed: list[SyncFailure] = field(default_factory=list)

    @property
    def synced_count(self) -> int:
        return len(self.synced_product_ids)


# Per-product outcomes
SYNCED = "synced"
PENDING_IMAGES = "pending_images"
SKIPPED = "skipped"


class CatalogSyncEngine:
    def __init__(
        self,
        db: AsyncSession,
        client: PrintifyClient,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.client = client
        self.settings = settings or get_settings()

    async def sync(self) -> SyncResult:
        """Sync every product in the shop and return the batch result."""
        result = SyncResult()
        summaries = await self.client.list_products(limit=self.settings.PRINTIFY_PAGE_SIZE)

        for summary in summaries:
            product_id = str(summary.get("id"))
            try:
                outcome = await self.sync_product(product_id)
                await self.db.commit()
            except Exception as exc:
                await self.db.rollback()
                logger.exception(
                    f"Failed to sync Printify product {product_id}",
                    extra={"extra_fields": {"product_id": product_id, "error": str(exc)}},
                )
                result.failed.append(SyncFailure(product_id=product_id, error=str(exc)))
                continue

            if outcome == SYNCED:
                result.synced_product_ids.append(product_id)
            elif outcome == PENDING_IMAGES:
                result.pending_image_product_ids.append(product_id)
            else:
                result.skipped_product_ids.append(product_id)

        logger.info(
            f"Catalog sync finished: {result.synced_count} synced, "
            f"{len(result.pending_image_product_ids)} pending images, "
            f"{len(result.failed)} failed",
            extra={"extra_fields": {
                "shop_id": self.client.shop_id,
                "synced": result.synced_count,
                "pending_images": len(result.pending_image_product_ids),
                "skipped": len(result.skipped_product_ids),
                "failed": len(result.failed),
            }},
        )
        return result

    async def sync_product(self, external_id: str) -> str:
        """Upsert one product and its variants. The caller commits."""
        detail = await self.client.get_product(external_id)

        images = detail.get("images") or []
        if not images:
            # Mockups are still rendering; the next scheduled run picks it up.
            logger.info(f"Product {external_id} has no images yet, deferring")
            return PENDING_IMAGES

        eligible = [
            v
            for v in detail.get("variants") or []
            if v.get("is_enabled") and v.get("is_available")
        ]
        product = await self._get_product(external_id)
        if not eligible:
            logger.info(f"Product {external_id} has no enabled variants, skipping")
            if product is not None:
                await self._withdraw_variants(product)
            return SKIPPED

        if product is None:
            product = Product(
                external_id=external_id,
                active=True,
                featured=False,
                publish_state=PublishState.PUBLISHED,
            )
            self.db.add(product)

        thumbnail = images[0].get("src")
        product.name = detail.get("title") or external_id
        product.slug = await self._unique_slug(
            slugify(product.name), external_id, product.id
        )
        product.description = detail.get("description")
        product.price_cents = eligible[0].get("price") or self.settings.DEFAULT_PRICE_CENTS
        product.thumbnail_url = thumbnail
        product.images = [img.get("src") for img in images if img.get("src")]
        product.external_shop_id = str(detail.get("shop_id") or self.client.shop_id)
        await self.db.flush()

        await self._sync_variants(product, detail, eligible, images, thumbnail)
        return SYNCED

    async def _sync_variants(
        self,
        product: Product,
        detail: dict,
        eligible: list[dict],
        images: list[dict],
        thumbnail: Optional[str],
    ) -> None:
        result = await self.db.execute(
            select(Variant).where(Variant.product_id == product.id)
        )
        existing = {v.external_variant_id: v for v in result.scalars().all()}

        options = detail.get("options") or []
        seen_keys: set[str] = set()
        kept: set[str] = set()

        for remote in eligible:
            variant_id = str(remote.get("id"))
            resolved = resolve_variant(remote, options)
            if resolved.key in seen_keys:
                logger.warning(
                    f"Duplicate variant {resolved.key} on product {product.external_id}, "
                    f"dropping variant {variant_id}"
                )
                continue
            seen_keys.add(resolved.key)
            kept.add(variant_id)

            row = existing.get(variant_id)
            if row is None:
                row = Variant(product_id=product.id, external_variant_id=variant_id)
                self.db.add(row)

            row.name = resolved.name
            row.size = resolved.size
            row.color = resolved.color
            row.option_values = resolved.option_values
            row.sku = remote.get("sku") or f"{product.external_id}-{variant_id}"
            row.price_cents = remote.get("price") or product.price_cents
            row.available = True
            row.stock = DEFAULT_STOCK
            row.preview_url = variant_image(remote.get("id"), images) or thumbnail

        stale = [row for vid, row in existing.items() if vid not in kept]
        for row in stale:
            await self.db.delete(row)
        if stale:
            logger.info(
                f"Pruned {len(stale)} stale variant(s) from product {product.external_id}"
            )
        await self.db.flush()

    async def _withdraw_variants(self, product: Product) -> None:
        """Stop selling every variant of a product that is no longer offered upstream."""
        result = await self.db.execute(
            select(Variant).where(
                Variant.product_id == product.id, Variant.available.is_(True)
            )
        )
        rows = result.scalars().all()
        for row in rows:
            row.available = False
        if rows:
            logger.info(
                f"Marked {len(rows)} variant(s) unavailable on product {product.external_id}"
            )
        await self.db.flush()

    async def _get_product(self, external_id: str) -> Optional[Product]:
        result = await self.db.execute(
            select(Product).where(Product.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def _unique_slug(self, base: str, external_id: str, product_id) -> str:
        """
        Return ``base`` unless another product owns it.

        Taken slugs get a short id suffix, then a counter, until one is free.
        """
        suffix = re.sub(r"[^a-z0-9]", "", external_id.lower())[-SLUG_SUFFIX_LENGTH:]
        stem = base or f"product-{suffix}"

        slug = stem
        attempt = 0
        while await self._slug_taken(slug, product_id):
            attempt += 1
            slug = f"{stem}-{suffix}" if attempt == 1 else f"{stem}-{suffix}-{attempt}"

        if slug != stem:
            logger.warning(
                f"Slug '{stem}' already taken, using '{slug}' for product {external_id}"
            )
        return slug

    async def _slug_taken(self, slug: str, product_id) -> bool:
        query = select(Product.id).where(Product.slug == slug)
        if product_id is not None:
            query = query.where(Product.id != product_id)
        return (await self.db.execute(query)).first() is not None
