"""Store catalog models: products and their purchasable variants.

Provider-authoritative fields are overwritten on every sync pass; ``active``,
``featured`` and ``publish_state`` are owned locally and carried forward.
"""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import JSONType
from services.store_service.models.enums import PublishState, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Product(Base):
    """Catalog products mirrored from the print-on-demand provider."""

    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSONType, default=list)

    # Provider linkage (NULL = not provider-backed, cannot be fulfilled)
    external_id: Mapped[Optional[str]] = mapped_column(
        String(64), unique=True, nullable=True
    )
    external_shop_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )

    # Locally owned
    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())
    featured: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false()
    )
    publish_state: Mapped[PublishState] = mapped_column(
        SAEnum(
            PublishState,
            values_callable=enum_values,
            name="store_publish_state_enum",
        ),
        default=PublishState.PUBLISHED,
        server_default="published",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    variants = relationship(
        "Variant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Variant.created_at",
    )

    def __repr__(self):
        return f"<Product {self.slug} external_id={self.external_id}>"


class Variant(Base):
    """A purchasable (size, color) combination of a product."""

    __tablename__ = "store_variants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Provider variant ids repeat across products of the same blueprint.
    external_variant_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(64), nullable=False)
    option_values: Mapped[dict] = mapped_column(JSONType, default=dict)
    sku: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    available: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true()
    )
    stock: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    preview_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "product_id",
            "external_variant_id",
            name="uq_store_variants_product_external",
        ),
    )

    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<Variant {self.size}|{self.color} external_id={self.external_variant_id}>"
