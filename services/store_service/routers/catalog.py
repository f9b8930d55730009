"""Store catalog router: public product listing and detail."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.common.errors import NotFoundError
from libs.db.session import get_async_db
from services.store_service.models import Product
from services.store_service.schemas import (
    ColorOption,
    ProductDetail,
    ProductResponse,
    VariantOptionsResponse,
    VariantResponse,
)
from services.store_service.variant_resolver import color_hex, organize_variants
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

router = APIRouter(tags=["store"])


@router.get("/products", response_model=list[ProductResponse])
async def list_products(
    featured: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_async_db),
):
    """List active products, featured first."""
    query = select(Product).where(Product.active.is_(True))
    if featured is not None:
        query = query.where(Product.featured.is_(featured))
    query = query.order_by(Product.featured.desc(), Product.name)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/products/{slug}", response_model=ProductDetail)
async def get_product(
    slug: str,
    db: AsyncSession = Depends(get_async_db),
):
    """Get an active product with its size/color selector options."""
    result = await db.execute(
        select(Product)
        .where(Product.slug == slug, Product.active.is_(True))
        .options(selectinload(Product.variants))
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError(f"Product '{slug}' not found")

    variants = [v for v in product.variants if v.available]
    organized = organize_variants(variants)

    detail = ProductResponse.model_validate(product).model_dump()
    return ProductDetail(
        **detail,
        variants=[VariantResponse.model_validate(v) for v in variants],
        options=VariantOptionsResponse(
            colors=[ColorOption(name=c, hex=color_hex(c)) for c in organized.colors],
            sizes=organized.sizes,
            variant_map={key: v.id for key, v in organized.variant_map.items()},
        ),
    )
