"""Shared test configuration and fixtures.

The membership core depends on the ``Storage`` and ``Notifier`` contracts
only, so tests run against in-memory fakes:
- ``InMemoryStorage`` holds members, payments and plans as plain records.
- ``RecordingNotifier`` records every notice and can be told to fail.
API tests override the storage and trigger dependencies with the same fakes.
"""

import uuid
from collections.abc import AsyncGenerator
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gymops.api.deps import get_storage, get_trigger
from gymops.main import app
from gymops.membership.exceptions import StorageError
from gymops.membership.records import MemberRecord, PaymentRecord, PlanRecord
from gymops.membership.scheduler import DailyTrigger, ExpirationScheduler

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryStorage:
    """Storage contract over lists of records."""

    def __init__(self, users=(), payments=(), plans=()):
        self.users: dict[uuid.UUID, MemberRecord] = {u.id: u for u in users}
        self.payments: list[PaymentRecord] = list(payments)
        self.plans: list[PlanRecord] = list(plans)
        self.status_updates: list[tuple[uuid.UUID, str]] = []
        self.fail_reads = False
        self.fail_writes_for: set[uuid.UUID] = set()

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise StorageError("database unreachable")

    async def list_users(self, account_status=None, payment_status=None) -> list[MemberRecord]:
        self._check_reads()
        return [
            u
            for u in self.users.values()
            if (account_status is None or u.account_status == account_status)
            and (payment_status is None or u.payment_status == payment_status)
        ]

    async def get_user(self, user_id: uuid.UUID) -> MemberRecord | None:
        self._check_reads()
        return self.users.get(user_id)

    async def list_payments(self, paid_only: bool = False) -> list[PaymentRecord]:
        self._check_reads()
        if not paid_only:
            return list(self.payments)
        return [p for p in self.payments if p.payment_status.lower() in ("paid", "success")]

    async def list_plans(self) -> list[PlanRecord]:
        self._check_reads()
        return list(self.plans)

    async def update_user_status(self, user_id: uuid.UUID, account_status: str) -> None:
        if user_id in self.fail_writes_for:
            raise RuntimeError("write failed")
        self.users[user_id] = replace(self.users[user_id], account_status=account_status)
        self.status_updates.append((user_id, account_status))


class RecordingNotifier:
    """Notifier that records notices; emails in ``fail_for`` fail, in ``raise_for`` raise."""

    def __init__(self, fail_for=(), raise_for=()):
        self.sent: list[tuple[str, int | None]] = []
        self.attempts: list[tuple[str, int | None]] = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)

    async def send_expiration_notice(self, email: str, days_remaining: int | None) -> bool:
        self.attempts.append((email, days_remaining))
        if email in self.raise_for:
            raise ConnectionError("SMTP connection reset")
        if email in self.fail_for:
            return False
        self.sent.append((email, days_remaining))
        return True


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


def make_plan(plan_type: str, amount, duration: int) -> PlanRecord:
    return PlanRecord(plan_type=plan_type, amount=Decimal(str(amount)), duration=duration)


def make_user(
    email: str | None = None,
    account_status: str = "active",
    payment_status: str = "paid",
    plan_type: str | None = "no plan",
    end_date: datetime | None = None,
    name: str = "Test Member",
) -> MemberRecord:
    unique = uuid.uuid4().hex[:8]
    return MemberRecord(
        id=uuid.uuid4(),
        email=email or f"member-{unique}@test.com",
        account_status=account_status,
        payment_status=payment_status,
        plan_type=plan_type,
        end_date=end_date,
        name=name,
        created_at=datetime(2024, 1, 1),
    )


def make_payment(
    created_at: datetime,
    amount=999,
    email: str | None = None,
    user_id: uuid.UUID | None = None,
    status: str = "paid",
    plan_type: str | None = None,
    completed_at: datetime | None = None,
    order_id: str | None = None,
) -> PaymentRecord:
    return PaymentRecord(
        order_id=order_id or f"order_{uuid.uuid4().hex[:10]}",
        order_amount=Decimal(str(amount)),
        payment_status=status,
        created_at=created_at,
        customer_email=email,
        user_id=user_id,
        plan_type=plan_type,
        payment_completed_at=completed_at,
    )


@pytest.fixture
def catalog() -> list[PlanRecord]:
    """The default plan catalog."""
    return [
        make_plan("basic", 999, 1),
        make_plan("standard", 1999, 3),
        make_plan("premium", 2998, 6),
    ]


@pytest.fixture
def storage(catalog) -> InMemoryStorage:
    return InMemoryStorage(plans=catalog)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def scheduler(storage, notifier) -> ExpirationScheduler:
    return ExpirationScheduler(storage, notifier, notification_delay=0)


@pytest.fixture
def trigger(scheduler) -> DailyTrigger:
    return DailyTrigger(scheduler)


# ---------------------------------------------------------------------------
# HTTP client wired to the fakes
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(storage, trigger) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient with storage and trigger overridden."""
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_trigger] = lambda: trigger

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
