"""Unit tests for the Stripe client: form encoding, sessions, webhook signatures."""

import json
from urllib.parse import parse_qs

import httpx
import pytest
from libs.common.config import Settings
from libs.common.errors import ConfigurationError, SignatureVerificationError
from services.store_service.stripe_client import (
    StripeClient,
    encode_form,
    sign_webhook_payload,
    verify_webhook_signature,
)

SECRET = "whsec_test_secret"
PAYLOAD = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()


# ---------------------------------------------------------------------------
# encode_form
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_encode_form_flattens_nested_params():
    flat = encode_form(
        {
            "mode": "payment",
            "line_items": [
                {"price_data": {"currency": "usd", "unit_amount": 2500}, "quantity": 2}
            ],
            "shipping_address_collection": {"allowed_countries": ["US", "CA"]},
            "phone_number_collection": {"enabled": True},
            "customer_email": None,
        }
    )

    assert flat == {
        "mode": "payment",
        "line_items[0][price_data][currency]": "usd",
        "line_items[0][price_data][unit_amount]": "2500",
        "line_items[0][quantity]": "2",
        "shipping_address_collection[allowed_countries][0]": "US",
        "shipping_address_collection[allowed_countries][1]": "CA",
        "phone_number_collection[enabled]": "true",
    }


# ---------------------------------------------------------------------------
# create_checkout_session
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_checkout_session_posts_form_with_idempotency_key():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "cs_123", "url": "https://pay.test/cs_123"})

    client = StripeClient("sk_test_x", base_url="https://stripe.test", transport=httpx.MockTransport(handler))

    session = await client.create_checkout_session(
        {"mode": "payment", "metadata": {"order_id": "o-1"}}, idempotency_key="checkout-o-1"
    )

    assert session["id"] == "cs_123"
    request = seen[0]
    assert request.url.path == "/v1/checkout/sessions"
    assert request.headers["Authorization"] == "Bearer sk_test_x"
    assert request.headers["Idempotency-Key"] == "checkout-o-1"
    form = parse_qs(request.content.decode())
    assert form["metadata[order_id]"] == ["o-1"]


@pytest.mark.unit
def test_from_settings_requires_secret_key():
    settings = Settings(DATABASE_URL="sqlite+aiosqlite://", STRIPE_SECRET_KEY="your_stripe_key")

    with pytest.raises(ConfigurationError):
        StripeClient.from_settings(settings)


# ---------------------------------------------------------------------------
# Webhook signatures
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_signature_roundtrip_accepts_valid_header():
    header = sign_webhook_payload(PAYLOAD, SECRET, timestamp=1_700_000_000)

    verify_webhook_signature(PAYLOAD, header, SECRET, now=1_700_000_010)


@pytest.mark.unit
def test_signature_accepts_any_matching_v1_entry():
    good = sign_webhook_payload(PAYLOAD, SECRET, timestamp=1_700_000_000)
    header = good.replace("v1=", "v1=deadbeef,v1=")

    verify_webhook_signature(PAYLOAD, header, SECRET, now=1_700_000_000)


@pytest.mark.unit
@pytest.mark.parametrize(
    "header",
    [None, "", "garbage", "t=abc,v1=00", "v1=00"],
)
def test_signature_rejects_missing_or_malformed_header(header):
    with pytest.raises(SignatureVerificationError):
        verify_webhook_signature(PAYLOAD, header, SECRET, now=1_700_000_000)


@pytest.mark.unit
def test_signature_rejects_tampered_body():
    header = sign_webhook_payload(PAYLOAD, SECRET, timestamp=1_700_000_000)

    with pytest.raises(SignatureVerificationError):
        verify_webhook_signature(PAYLOAD + b" ", header, SECRET, now=1_700_000_000)


@pytest.mark.unit
def test_signature_rejects_wrong_secret():
    header = sign_webhook_payload(PAYLOAD, "whsec_other", timestamp=1_700_000_000)

    with pytest.raises(SignatureVerificationError):
        verify_webhook_signature(PAYLOAD, header, SECRET, now=1_700_000_000)


@pytest.mark.unit
def test_signature_rejects_stale_timestamp():
    header = sign_webhook_payload(PAYLOAD, SECRET, timestamp=1_700_000_000)

    with pytest.raises(SignatureVerificationError):
        verify_webhook_signature(PAYLOAD, header, SECRET, tolerance_seconds=300, now=1_700_000_301)
