"""Shared API dependencies — single import point for all routers.

The storage and the expiration trigger are built once by the application
lifespan and kept on ``app.state``::

    from gymops.api.deps import get_storage, get_trigger
"""

import hmac

from fastapi import Header, HTTPException, Request, status

from gymops.config import settings
from gymops.membership.scheduler import DailyTrigger
from gymops.membership.storage import SqlAlchemyStorage


def get_storage(request: Request) -> SqlAlchemyStorage:
    return request.app.state.storage


def get_trigger(request: Request) -> DailyTrigger:
    return request.app.state.expiration_trigger


async def verify_cron_secret(x_cron_secret: str = Header(default="")) -> None:
    """Reject calls that do not carry the shared cron secret."""
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )


__all__ = [
    "get_storage",
    "get_trigger",
    "verify_cron_secret",
]
