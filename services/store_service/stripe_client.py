"""
Stripe API client for hosted checkout sessions, plus webhook signature checks.

Stripe's API takes form-encoded bodies with bracketed keys for nested data
(``line_items[0][price_data][currency]=usd``); ``encode_form`` flattens a
plain dict into that shape.
"""

import hashlib
import hmac
import time
from typing import Any, Optional

import httpx
from libs.common.config import Settings, get_settings
from libs.common.errors import ConfigurationError, SignatureVerificationError
from libs.common.http_client import RetryingHttpClient
from libs.common.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_SCHEME = "v1"


def encode_form(params: dict, prefix: str = "") -> dict[str, str]:
    """Flatten nested dicts/lists into Stripe's bracketed form keys."""
    flat: dict[str, str] = {}
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            flat.update(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    flat.update(encode_form(item, item_name))
                else:
                    flat[item_name] = _form_scalar(item)
        else:
            flat[name] = _form_scalar(value)
    return flat


def _form_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def verify_webhook_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> None:
    """
    Verify a ``Stripe-Signature`` header (``t=<ts>,v1=<hex>[,v1=<hex>]``).

    The signed message is ``"{t}.{raw body}"`` under HMAC-SHA256.

    Raises:
        SignatureVerificationError: Header missing/malformed, no matching
            signature, or timestamp outside the tolerance window
    """
    if not signature_header:
        raise SignatureVerificationError("Missing Stripe-Signature header")

    timestamp: Optional[str] = None
    signatures: list[str] = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)

    if not timestamp or not signatures:
        raise SignatureVerificationError("Malformed Stripe-Signature header")
    try:
        signed_at = int(timestamp)
    except ValueError:
        raise SignatureVerificationError("Malformed Stripe-Signature timestamp")

    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(
        secret.encode("utf-8"), signed_payload, hashlib.sha256
    ).hexdigest()
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise SignatureVerificationError("No matching webhook signature")

    current = time.time() if now is None else now
    if tolerance_seconds and abs(current - signed_at) > tolerance_seconds:
        raise SignatureVerificationError("Webhook timestamp outside tolerance")


def sign_webhook_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.".encode("utf-8") + payload,
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},{SIGNATURE_SCHEME}={digest}"


class StripeClient:
    """Async client for the Stripe Checkout API."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.stripe.com",
        max_attempts: int = 5,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret_key:
            raise ConfigurationError("STRIPE_SECRET_KEY is required")
        self._http = RetryingHttpClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {secret_key}"},
            max_attempts=max_attempts,
            timeout=timeout,
            log_context={"provider": "stripe"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "StripeClient":
        settings = settings or get_settings()
        if not settings.stripe_configured:
            raise ConfigurationError("Stripe is not configured (STRIPE_SECRET_KEY)")
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            base_url=settings.STRIPE_API_URL,
            max_attempts=settings.HTTP_MAX_ATTEMPTS,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def create_checkout_session(
        self, params: dict, idempotency_key: Optional[str] = None
    ) -> dict:
        """
        Create a hosted checkout session.

        ``idempotency_key`` makes retried creates return the same session
        instead of opening a second one.

        Returns:
            The session object (``id``, ``url``, ...)
        """
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return await self._http.request(
            "/v1/checkout/sessions",
            method="POST",
            form=encode_form(params),
            headers=headers,
        )


def get_stripe_client() -> Optional[StripeClient]:
    """FastAPI dependency: a Stripe client, or None when no key is set."""
    settings = get_settings()
    if not settings.stripe_configured:
        return None
    return StripeClient.from_settings(settings)
