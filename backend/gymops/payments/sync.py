"""Payment status sync — poll the gateway for orders still awaiting a final status.

Run periodically or by hand:
    python -m gymops.payments.sync
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from gymops.config import settings
from gymops.membership.exceptions import StorageError
from gymops.membership.status import normalize_payment_status
from gymops.membership.storage import SqlAlchemyStorage
from gymops.payments.cashfree_client import CashfreeError, fetch_order, order_status_from_payload

logger = logging.getLogger(__name__)

OrderFetcher = Callable[[str], Awaitable[dict]]


@dataclass
class SyncResult:
    checked: int = 0
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


async def sync_payment_statuses(
    storage: SqlAlchemyStorage,
    fetch: OrderFetcher = fetch_order,
    lookback_days: int = 7,
    delay: float = 0.5,
    now: datetime | None = None,
) -> SyncResult:
    """Refresh recent initiated/pending payments from the gateway.

    One failing order is logged and skipped; the rest are still synced.
    """
    now = now or datetime.utcnow()
    payments = await storage.list_syncable_payments(since=now - timedelta(days=lookback_days))
    logger.info("Found %d payments to sync", len(payments))

    result = SyncResult()
    for payment in payments:
        result.checked += 1
        try:
            order = await fetch(payment.order_id)
            raw_status = order_status_from_payload(order)
            status = normalize_payment_status(raw_status)
            if status is None:
                logger.warning("No usable status for order %s (%r)", payment.order_id, raw_status)
                result.errors.append(payment.order_id)
            elif status == normalize_payment_status(payment.payment_status):
                result.unchanged.append(payment.order_id)
            else:
                await storage.apply_gateway_status(payment.order_id, raw_status, order)
                result.updated.append(payment.order_id)
        except (CashfreeError, StorageError):
            logger.exception("Error syncing payment %s", payment.order_id)
            result.errors.append(payment.order_id)

        if delay > 0:
            await asyncio.sleep(delay)

    logger.info(
        "Payment sync completed: %d checked, %d updated, %d errors",
        result.checked,
        len(result.updated),
        len(result.errors),
    )
    return result


async def main() -> None:
    from gymops.database import async_session_factory, engine

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        await sync_payment_statuses(
            SqlAlchemyStorage(async_session_factory),
            lookback_days=settings.payment_sync_lookback_days,
            delay=settings.payment_sync_delay_seconds,
        )
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
