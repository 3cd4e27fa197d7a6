"""Plain records consumed by the end-date resolver.

The resolver never touches the ORM; storage converts rows into these.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class PlanRecord:
    """A plan catalog entry."""

    plan_type: str
    amount: Decimal
    duration: int  # months

    @property
    def total_price(self) -> Decimal:
        return self.amount * self.duration


@dataclass(frozen=True)
class PaymentRecord:
    """One payment attempt, as stored."""

    order_id: str
    order_amount: Decimal
    payment_status: str
    created_at: datetime
    customer_email: str | None = None
    user_id: uuid.UUID | None = None
    plan_type: str | None = None
    payment_completed_at: datetime | None = None


@dataclass(frozen=True)
class MemberRecord:
    """The member fields the lifecycle logic needs."""

    id: uuid.UUID
    email: str
    account_status: str
    payment_status: str
    plan_type: str | None = None
    end_date: datetime | None = None  # admin override
    name: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class MembershipWindow:
    """Derived membership period. Never persisted."""

    start_date: datetime | None
    end_date: datetime
    days_remaining: int
    plan_type: str | None = None
    matched_by: str | None = None  # which resolution rule produced the plan
