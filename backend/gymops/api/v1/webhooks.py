"""Cashfree webhook endpoint — receives and processes payment events."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from gymops.api.deps import get_storage
from gymops.membership.exceptions import StorageError
from gymops.membership.storage import SqlAlchemyStorage
from gymops.payments.cashfree_client import verify_webhook_signature
from gymops.payments.webhooks import (
    HANDLED_EVENT_TYPES,
    UnknownOrderError,
    WebhookPayloadError,
    handle_payment_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/cashfree")
async def cashfree_webhook(
    request: Request,
    storage: SqlAlchemyStorage = Depends(get_storage),
) -> dict[str, str]:
    """Receive and process Cashfree payment webhook events."""
    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    signature = request.headers.get("x-webhook-signature", "")
    timestamp = request.headers.get("x-webhook-timestamp", "")

    # 2. Verify signature
    if not verify_webhook_signature(payload, timestamp, signature):
        logger.warning("Webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        )

    try:
        event = json.loads(payload)
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        ) from e
    if not isinstance(event, dict):
        logger.warning("Webhook payload is not a JSON object")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )

    # 3. Dispatch
    event_type = event.get("type")
    if event_type not in HANDLED_EVENT_TYPES:
        logger.debug("Unhandled webhook event type: %s", event_type)
        return {"status": "ignored"}

    logger.info("Processing webhook event: %s", event_type)
    try:
        await handle_payment_event(storage, event)
    except WebhookPayloadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except UnknownOrderError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found") from e
    except StorageError as e:
        logger.exception("Error processing webhook event %s", event_type)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from e

    return {"status": "processed"}
