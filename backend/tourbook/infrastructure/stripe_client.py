"""
Minimal Stripe REST client (Checkout Sessions) and webhook signature check.

Stripe takes form-encoded bodies with bracketed keys for nested objects,
e.g. `line_items[0][price_data][currency]=usd`.
"""

import hashlib
import hmac
import json
import time
from typing import Any, Optional

import httpx

from tourbook.core.config import get_settings
from tourbook.core.logging import get_logger

logger = get_logger(__name__)


class StripeError(Exception):
    pass


class StripeSignatureError(StripeError):
    pass


def encode_form(data: Any, prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested dicts/lists into Stripe's bracketed form keys."""
    pairs: list[tuple[str, str]] = []
    if isinstance(data, dict):
        for key, value in data.items():
            pairs.extend(encode_form(value, f"{prefix}[{key}]" if prefix else str(key)))
    elif isinstance(data, (list, tuple)):
        for index, value in enumerate(data):
            pairs.extend(encode_form(value, f"{prefix}[{index}]"))
    elif isinstance(data, bool):
        pairs.append((prefix, "true" if data else "false"))
    elif data is not None:
        pairs.append((prefix, str(data)))
    return pairs


class StripeClient:
    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    async def _post(self, path: str, data: dict) -> dict:
        async with httpx.AsyncClient(
            base_url=self.api_base,
            auth=(self.secret_key, ""),
            transport=self.transport,
            timeout=self.timeout,
        ) as client:
            response = await client.post(path, data=encode_form(data))

        payload = response.json()
        if response.is_error:
            message = payload.get("error", {}).get("message", response.text)
            logger.error("stripe_request_failed", path=path, status_code=response.status_code, error=message)
            raise StripeError(message)
        return payload

    async def create_checkout_session(self, **params) -> dict:
        return await self._post("/checkout/sessions", params)


def get_stripe_client() -> StripeClient:
    settings = get_settings()
    return StripeClient(settings.STRIPE_SECRET_KEY, settings.STRIPE_API_BASE)


def sign_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a `Stripe-Signature` header value for `payload`."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def verify_webhook_signature(payload: bytes, header: Optional[str], secret: str, tolerance: int = 300) -> dict:
    """
    Verify a `Stripe-Signature` header and return the decoded event.
    Raises StripeSignatureError on a missing, malformed, stale or wrong signature.
    """
    if not header:
        raise StripeSignatureError("No signatures found matching the expected signature for payload")

    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not timestamp.isdigit() or not signatures:
        raise StripeSignatureError("Unable to extract timestamp and signatures from header")

    signed = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise StripeSignatureError("No signatures found matching the expected signature for payload")

    if tolerance and int(timestamp) < time.time() - tolerance:
        raise StripeSignatureError("Timestamp outside the tolerance zone")

    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        raise StripeSignatureError("Invalid JSON payload")
