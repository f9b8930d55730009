"""Integration tests for the public store API: catalog, checkout, webhooks."""

import json
import uuid

import pytest
from services.store_service.models import FulfillmentStatus, Order, OrderStatus, Product
from tests.factories import ProductFactory, VariantFactory, stripe_event

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _product(db, **overrides):
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.commit()
    return product


async def _product_with_variants(db, variants, **overrides):
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.flush()
    rows = []
    for index, (size, color) in enumerate(variants):
        row = VariantFactory.create(
            product_id=product.id,
            size=size,
            color=color,
            external_variant_id=str(1000 + index),
        )
        db.add(row)
        rows.append(row)
    await db.commit()
    return product, rows


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(store_client):
    response = await store_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "store"}
    assert "X-Request-ID" in response.headers


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_products_hides_inactive_and_lists_featured_first(store_client, db_session):
    await _product(db_session, name="Alpha Tee")
    await _product(db_session, name="Zeta Tee", featured=True)
    await _product(db_session, name="Hidden Tee", active=False)

    response = await store_client.get("/store/products")

    assert response.status_code == 200
    names = [p["name"] for p in response.json()]
    assert names == ["Zeta Tee", "Alpha Tee"]
    assert "priceCents" in response.json()[0]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_products_featured_filter(store_client, db_session):
    await _product(db_session, name="Alpha Tee")
    await _product(db_session, name="Zeta Tee", featured=True)

    response = await store_client.get("/store/products", params={"featured": "true"})

    assert [p["name"] for p in response.json()] == ["Zeta Tee"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_detail_includes_selector_options(store_client, db_session):
    product, variants = await _product_with_variants(
        db_session,
        [("XL", "Navy"), ("S", "Navy"), ("M", "Mystery")],
        slug="club-tee",
    )

    response = await store_client.get("/store/products/club-tee")

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["id"] == str(product.id)
    assert len(data["variants"]) == 3
    options = data["options"]
    assert options["sizes"] == ["S", "M", "XL"]
    assert options["colors"] == [
        {"name": "Navy", "hex": "#001f3f"},
        {"name": "Mystery", "hex": "#808080"},
    ]
    assert options["variantMap"]["S|Navy"] == str(variants[1].id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_detail_not_found_for_inactive(store_client, db_session):
    await _product(db_session, slug="hidden", active=False)

    response = await store_client.get("/store/products/hidden")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_returns_session_and_totals(store_client, db_session, fake_stripe):
    product, variants = await _product_with_variants(db_session, [("M", "Black")])

    response = await store_client.post(
        "/store/checkout",
        json={
            "items": [
                {"productId": str(product.id), "variantId": str(variants[0].id), "quantity": 1}
            ],
            "customerEmail": "buyer@example.com",
        },
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["sessionId"] == "cs_test_1"
    assert data["sessionUrl"] == "https://checkout.stripe.test/cs_test_1"
    assert data["totals"] == {
        "subtotalCents": 2500,
        "shippingCents": 500,
        "taxCents": 200,
        "totalCents": 3200,
    }
    order = await db_session.get(Order, uuid.UUID(data["orderId"]))
    assert order.status == OrderStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_empty_cart(store_client):
    response = await store_client.post("/store/checkout", json={"items": []})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_rejects_zero_quantity(store_client, db_session):
    product = await _product(db_session)

    response = await store_client.post(
        "/store/checkout",
        json={"items": [{"productId": str(product.id), "quantity": 0}]},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_unknown_product(store_client):
    response = await store_client.post(
        "/store/checkout",
        json={"items": [{"productId": str(uuid.uuid4()), "quantity": 1}]},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_without_gateway_is_configuration_error(store_client, db_session):
    from services.store_service.app.main import app
    from services.store_service.stripe_client import get_stripe_client

    product = await _product(db_session)
    app.dependency_overrides[get_stripe_client] = lambda: None

    response = await store_client.post(
        "/store/checkout",
        json={"items": [{"productId": str(product.id), "quantity": 1}]},
    )

    assert response.status_code == 500
    assert response.json()["code"] == "CONFIGURATION_ERROR"


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_then_payment_webhook_dispatches_order(
    store_client, db_session, fake_printify
):
    product, variants = await _product_with_variants(
        db_session, [("M", "Black")], external_id="pf-200"
    )
    checkout = await store_client.post(
        "/store/checkout",
        json={"items": [{"productId": str(product.id), "variantId": str(variants[0].id), "quantity": 2}]},
    )
    session_id = checkout.json()["sessionId"]
    order_id = uuid.UUID(checkout.json()["orderId"])

    event = stripe_event(session_id=session_id, event_id="evt_flow")
    response = await store_client.post(
        "/store/webhooks/stripe",
        content=json.dumps(event),
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200, response.text
    assert response.json() == {"received": True, "event_id": "evt_flow"}
    order = await db_session.get(Order, order_id, populate_existing=True)
    assert order.status == OrderStatus.PAID
    assert order.fulfillment_status == FulfillmentStatus.PROCESSING
    assert order.external_order_id == "pf-order-1"
    assert fake_printify.orders[0]["line_items"] == [
        {"product_id": "pf-200", "variant_id": 1000, "quantity": 2}
    ]

    again = await store_client.post("/store/webhooks/stripe", content=json.dumps(event))
    assert again.json()["duplicate"] is True
    assert len(fake_printify.orders) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stripe_webhook_unknown_session_is_404(store_client):
    event = stripe_event(session_id="cs_nowhere")

    response = await store_client.post("/store/webhooks/stripe", content=json.dumps(event))

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stripe_webhook_malformed_payload(store_client):
    response = await store_client.post("/store/webhooks/stripe", content=b"{not json")

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_printify_publish_webhook(store_client, db_session, fake_printify):
    product = await _product(db_session, external_id="pf-300", active=False)

    response = await store_client.post(
        "/store/webhooks/printify",
        content=json.dumps(
            {"id": "pfy-1", "type": "product:publish:succeeded", "resource": {"id": "pf-300"}}
        ),
    )

    assert response.status_code == 200, response.text
    assert response.json()["acknowledged"] is True
    stored = await db_session.get(Product, product.id, populate_existing=True)
    assert stored.active is True
