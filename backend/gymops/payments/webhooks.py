"""Cashfree webhook event handling — apply gateway payment status to stored orders."""

import logging

from gymops.membership.records import PaymentRecord
from gymops.membership.storage import SqlAlchemyStorage

logger = logging.getLogger(__name__)

HANDLED_EVENT_TYPES = {
    "PAYMENT_SUCCESS_WEBHOOK",
    "PAYMENT_FAILED_WEBHOOK",
    "PAYMENT_USER_DROPPED_WEBHOOK",
}


class WebhookPayloadError(ValueError):
    """The webhook body is missing the order id or payment status."""


class UnknownOrderError(LookupError):
    """The webhook refers to an order we never created."""


def parse_payment_event(event: dict) -> tuple[str, str]:
    """Extract ``(order_id, raw_payment_status)`` from a webhook body."""
    data = event.get("data") or {}
    order_id = (data.get("order") or {}).get("order_id")
    if not order_id:
        raise WebhookPayloadError("No order ID in webhook payload")
    raw_status = (data.get("payment") or {}).get("payment_status")
    if not raw_status:
        raise WebhookPayloadError("No payment status in webhook payload")
    return order_id, raw_status


async def handle_payment_event(storage: SqlAlchemyStorage, event: dict) -> PaymentRecord:
    """Store the payment status carried by a webhook event.

    Raises:
        WebhookPayloadError: If the body lacks an order id or a recognizable status.
        UnknownOrderError: If no payment exists for the order id.
    """
    order_id, raw_status = parse_payment_event(event)
    try:
        payment = await storage.apply_gateway_status(order_id, raw_status, event.get("data"))
    except ValueError as e:
        raise WebhookPayloadError(str(e)) from e

    if payment is None:
        logger.warning("Payment not found for order ID: %s", order_id)
        raise UnknownOrderError(order_id)

    logger.info("Webhook %s: order %s is now %s", event.get("type"), order_id, payment.payment_status)
    return payment
