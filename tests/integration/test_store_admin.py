"""Integration tests for the store admin API (/admin/store)."""

import uuid

import pytest
from services.store_service.models import (
    FulfillmentStatus,
    OrderStatus,
    WebhookEvent,
    WebhookSource,
)
from tests.factories import (
    OrderFactory,
    OrderItemFactory,
    ProductFactory,
    VariantFactory,
    printify_product,
    shipping_address,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _paid_order(db, **overrides):
    product = ProductFactory.create(external_id=f"pf-{uuid.uuid4().hex[:6]}")
    db.add(product)
    await db.flush()
    variant = VariantFactory.create(product_id=product.id, external_variant_id="777")
    db.add(variant)
    fields = {
        "status": OrderStatus.PAID,
        "fulfillment_status": FulfillmentStatus.FAILED,
        "customer_name": "Jane Buyer",
        "shipping_address": shipping_address(),
        "order_metadata": {"fulfillment_error": {"message": "Printify was down"}},
    }
    fields.update(overrides)
    order = OrderFactory.create(**fields)
    db.add(order)
    await db.flush()
    db.add(OrderItemFactory.create(order.id, product.id, variant_id=variant.id))
    await db.commit()
    return order


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_requires_token(store_client):
    response = await store_client.get("/admin/store/orders")

    assert response.status_code in (401, 403)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_rejects_non_admin_role(store_client, member_headers):
    response = await store_client.get("/admin/store/orders", headers=member_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_rejects_bad_token(store_client):
    response = await store_client.get(
        "/admin/store/orders", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_catalog_sync(store_client, admin_headers, fake_printify):
    fake_printify.add_product(printify_product("pf-1", "Logo Tee"))
    fake_printify.add_product(printify_product("pf-2", "Rendering", images=[]))

    response = await store_client.post("/admin/store/catalog/sync", headers=admin_headers)

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["syncedCount"] == 1
    assert data["syncedProductIds"] == ["pf-1"]
    assert data["pendingImageProductIds"] == ["pf-2"]
    assert data["failed"] == []

    listing = await store_client.get("/store/products")
    assert [p["slug"] for p in listing.json()] == ["logo-tee"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_catalog_sync_reports_failures(store_client, admin_headers, fake_printify):
    fake_printify.add_product(printify_product("pf-bad", "Broken"))
    fake_printify.failing_products.add("pf-bad")

    response = await store_client.post("/admin/store/catalog/sync", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["failed"][0]["productId"] == "pf-bad"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_catalog_sync_unconfigured(store_client, admin_headers):
    from services.store_service.app.main import app
    from services.store_service.printify_client import get_printify_client

    app.dependency_overrides[get_printify_client] = lambda: None

    response = await store_client.post("/admin/store/catalog/sync", headers=admin_headers)

    assert response.status_code == 500
    assert response.json()["code"] == "CONFIGURATION_ERROR"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_publish_ack_all(store_client, db_session, admin_headers, fake_printify):
    db_session.add(ProductFactory.create(external_id="pf-a"))
    await db_session.commit()

    response = await store_client.post("/admin/store/catalog/publish-ack", headers=admin_headers)

    assert response.status_code == 200, response.text
    assert response.json() == {"acknowledged": ["pf-a"], "failed": []}
    assert fake_printify.acks == [("succeeded", "pf-a")]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_product_flags(store_client, db_session, admin_headers):
    product = ProductFactory.create()
    db_session.add(product)
    await db_session.commit()

    response = await store_client.patch(
        f"/admin/store/products/{product.id}",
        json={"featured": True, "active": False},
        headers=admin_headers,
    )

    assert response.status_code == 200, response.text
    assert response.json()["featured"] is True
    assert response.json()["active"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_unknown_product(store_client, admin_headers):
    response = await store_client.patch(
        f"/admin/store/products/{uuid.uuid4()}", json={"featured": True}, headers=admin_headers
    )

    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_orders_filters_by_fulfillment_status(store_client, db_session, admin_headers):
    failed = await _paid_order(db_session)
    await _paid_order(db_session, fulfillment_status=FulfillmentStatus.PROCESSING)

    response = await store_client.get(
        "/admin/store/orders", params={"fulfillment_status": "failed"}, headers=admin_headers
    )

    assert response.status_code == 200, response.text
    assert [o["id"] for o in response.json()] == [str(failed.id)]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_detail_shows_fulfillment_error(store_client, db_session, admin_headers):
    order = await _paid_order(db_session)

    response = await store_client.get(f"/admin/store/orders/{order.id}", headers=admin_headers)

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["metadata"]["fulfillment_error"]["message"] == "Printify was down"
    assert data["shippingAddress"]["city"] == "Springfield"
    assert len(data["items"]) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_detail_not_found(store_client, admin_headers):
    response = await store_client.get(f"/admin/store/orders/{uuid.uuid4()}", headers=admin_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_resend_fulfillment(store_client, db_session, admin_headers, fake_printify):
    order = await _paid_order(db_session)

    response = await store_client.post(
        f"/admin/store/orders/{order.id}/fulfillment", headers=admin_headers
    )

    assert response.status_code == 200, response.text
    assert response.json() == {
        "orderId": str(order.id),
        "externalOrderId": "pf-order-1",
        "alreadyDispatched": False,
    }

    again = await store_client.post(
        f"/admin/store/orders/{order.id}/fulfillment", headers=admin_headers
    )
    assert again.json()["alreadyDispatched"] is True
    assert len(fake_printify.orders) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_resend_unpaid_order_rejected(store_client, db_session, admin_headers):
    order = await _paid_order(db_session, status=OrderStatus.PENDING)

    response = await store_client.post(
        f"/admin/store/orders/{order.id}/fulfillment", headers=admin_headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_resend_provider_failure_is_bad_gateway(store_client, db_session, admin_headers, fake_printify):
    from libs.common.errors import ProviderError

    order = await _paid_order(db_session)
    fake_printify.order_error = ProviderError("rejected", status_code=400, endpoint="orders.json")

    response = await store_client.post(
        f"/admin/store/orders/{order.id}/fulfillment", headers=admin_headers
    )

    assert response.status_code == 502
    assert response.json()["upstream_status"] == 400


# ---------------------------------------------------------------------------
# Webhook ledger
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_unprocessed_webhook_events(store_client, db_session, admin_headers):
    db_session.add(
        WebhookEvent(
            event_id="evt_stuck",
            source=WebhookSource.STRIPE,
            event_type="checkout.session.completed",
            payload={},
            processed=False,
            error_message="boom",
        )
    )
    db_session.add(
        WebhookEvent(
            event_id="evt_done",
            source=WebhookSource.STRIPE,
            event_type="checkout.session.completed",
            payload={},
            processed=True,
        )
    )
    await db_session.commit()

    response = await store_client.get(
        "/admin/store/webhook-events", params={"processed": "false"}, headers=admin_headers
    )

    assert response.status_code == 200, response.text
    events = response.json()
    assert [e["eventId"] for e in events] == ["evt_stuck"]
    assert events[0]["errorMessage"] == "boom"
