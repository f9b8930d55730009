"""create_store_tables

Revision ID: b3f1c2d4e5a6
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "b3f1c2d4e5a6"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

publish_state_enum = sa.Enum(
    "publishing", "published", "failed", name="store_publish_state_enum"
)
order_status_enum = sa.Enum("pending", "paid", "failed", name="store_order_status_enum")
fulfillment_status_enum = sa.Enum(
    "pending",
    "processing",
    "shipped",
    "delivered",
    "failed",
    name="store_fulfillment_status_enum",
)
webhook_source_enum = sa.Enum("stripe", "printify", name="store_webhook_source_enum")


def upgrade() -> None:
    op.create_table(
        "store_products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("images", JSONType, nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("external_shop_id", sa.String(length=64), nullable=True),
        sa.Column("active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("featured", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "publish_state",
            publish_state_enum,
            server_default="published",
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_store_products"),
        sa.UniqueConstraint("external_id", name="uq_store_products_external_id"),
    )
    op.create_index(
        "ix_store_products_slug", "store_products", ["slug"], unique=True
    )

    op.create_table(
        "store_variants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("external_variant_id", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("size", sa.String(length=64), nullable=False),
        sa.Column("color", sa.String(length=64), nullable=False),
        sa.Column("option_values", JSONType, nullable=False),
        sa.Column("sku", sa.String(length=128), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("available", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("stock", sa.Integer(), server_default="0", nullable=False),
        sa.Column("preview_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["store_products.id"],
            name="fk_store_variants_product_id_store_products",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_store_variants"),
        sa.UniqueConstraint(
            "product_id",
            "external_variant_id",
            name="uq_store_variants_product_external",
        ),
    )
    op.create_index(
        "ix_store_variants_product_id", "store_variants", ["product_id"]
    )

    op.create_table(
        "store_orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("payment_session_id", sa.String(length=255), nullable=False),
        sa.Column("payment_intent_id", sa.String(length=255), nullable=True),
        sa.Column(
            "status", order_status_enum, server_default="pending", nullable=False
        ),
        sa.Column("customer_email", sa.String(length=255), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("customer_phone", sa.String(length=64), nullable=True),
        sa.Column("shipping_address", JSONType, nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("shipping_cents", sa.Integer(), nullable=False),
        sa.Column("tax_cents", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column(
            "fulfillment_status",
            fulfillment_status_enum,
            server_default="pending",
            nullable=False,
        ),
        sa.Column("external_order_id", sa.String(length=64), nullable=True),
        sa.Column("metadata", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_store_orders"),
        sa.UniqueConstraint(
            "payment_session_id", name="uq_store_orders_payment_session_id"
        ),
    )

    op.create_table(
        "store_order_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("variant_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["store_orders.id"],
            name="fk_store_order_items_order_id_store_orders",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["store_products.id"],
            name="fk_store_order_items_product_id_store_products",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_store_order_items"),
    )
    op.create_index(
        "ix_store_order_items_order_id", "store_order_items", ["order_id"]
    )

    op.create_table(
        "store_webhook_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("source", webhook_source_enum, nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", JSONType, nullable=False),
        sa.Column("processed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_store_webhook_events"),
        sa.UniqueConstraint("event_id", name="uq_store_webhook_events_event_id"),
    )
    op.create_index(
        "ix_store_webhook_events_processed_created",
        "store_webhook_events",
        ["processed", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_store_webhook_events_processed_created", table_name="store_webhook_events"
    )
    op.drop_table("store_webhook_events")
    op.drop_index("ix_store_order_items_order_id", table_name="store_order_items")
    op.drop_table("store_order_items")
    op.drop_table("store_orders")
    op.drop_index("ix_store_variants_product_id", table_name="store_variants")
    op.drop_table("store_variants")
    op.drop_index("ix_store_products_slug", table_name="store_products")
    op.drop_table("store_products")

    bind = op.get_bind()
    for enum_type in (
        webhook_source_enum,
        fulfillment_status_enum,
        order_status_enum,
        publish_state_enum,
    ):
        enum_type.drop(bind, checkfirst=True)
