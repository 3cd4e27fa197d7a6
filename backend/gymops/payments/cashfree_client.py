"""Async Cashfree Payment Gateway wrapper for GymOps."""

import base64
import hashlib
import hmac
import logging

import httpx

from gymops.config import settings

logger = logging.getLogger(__name__)


class CashfreeError(Exception):
    """The gateway could not be reached or answered with an error."""


def get_cashfree_client(timeout: float = 15.0) -> httpx.AsyncClient:
    """Create an AsyncClient with Cashfree credentials and API version headers."""
    return httpx.AsyncClient(
        base_url=settings.cashfree_base_url,
        headers={
            "x-api-version": settings.cashfree_api_version,
            "x-client-id": settings.cashfree_app_id,
            "x-client-secret": settings.cashfree_secret_key,
            "Content-Type": "application/json",
        },
        timeout=timeout,
    )


async def fetch_order(order_id: str, client: httpx.AsyncClient | None = None) -> dict:
    """Retrieve a Cashfree order (status, amount, customer details)."""
    owns_client = client is None
    client = client or get_cashfree_client()
    try:
        response = await client.get(f"/orders/{order_id}")
        response.raise_for_status()
        order = response.json()
    except ValueError as e:
        logger.error("Cashfree returned a non-JSON body for order %s", order_id)
        raise CashfreeError(f"Order {order_id}: invalid JSON response") from e
    except httpx.HTTPStatusError as e:
        logger.error("Cashfree returned %s for order %s", e.response.status_code, order_id)
        raise CashfreeError(f"Order {order_id}: HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.error("Cashfree request failed for order %s: %s", order_id, e)
        raise CashfreeError(f"Order {order_id}: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if not isinstance(order, dict):
        raise CashfreeError(f"Order {order_id}: unexpected response shape")
    return order


def order_status_from_payload(order: dict) -> str | None:
    """Raw status of an order payload, preferring the payment status."""
    return order.get("payment_status") or order.get("order_status")


def verify_webhook_signature(payload: bytes, timestamp: str, signature: str) -> bool:
    """Check ``x-webhook-signature``: base64 HMAC-SHA256 of timestamp + raw body."""
    secret = settings.cashfree_webhook_secret or settings.cashfree_secret_key
    if not secret or not signature or not timestamp:
        return False
    digest = hmac.new(secret.encode(), timestamp.encode() + payload, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return hmac.compare_digest(expected, signature)
