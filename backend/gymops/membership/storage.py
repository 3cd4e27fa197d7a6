"""Storage for the membership lifecycle — reads members, payments and plans.

``Storage`` is the contract the scheduler depends on. ``SqlAlchemyStorage``
implements it over an async session factory and adds the write paths used
by payment ingestion (gateway sync and webhooks).
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymops.membership.exceptions import StorageError
from gymops.membership.records import MemberRecord, PaymentRecord, PlanRecord
from gymops.membership.status import PAID, normalize_payment_status
from gymops.models.payment import Payment
from gymops.models.plan import Plan
from gymops.models.user import User

logger = logging.getLogger(__name__)

# Raw stored values that count as paid (legacy rows may hold gateway casing)
_PAID_RAW_VALUES = ["paid", "success"]
_SYNCABLE_RAW_VALUES = ["initiated", "pending"]


class Storage(Protocol):
    """Read/write access the expiration scheduler needs."""

    async def list_users(
        self, account_status: str | None = None, payment_status: str | None = None
    ) -> list[MemberRecord]: ...

    async def list_payments(self, paid_only: bool = False) -> list[PaymentRecord]: ...

    async def list_plans(self) -> list[PlanRecord]: ...

    async def update_user_status(self, user_id: uuid.UUID, account_status: str) -> None: ...


def to_member_record(user: User) -> MemberRecord:
    return MemberRecord(
        id=user.id,
        email=user.email,
        account_status=user.account_status,
        payment_status=user.payment_status,
        plan_type=user.plan_type,
        end_date=user.end_date,
        name=user.name,
        created_at=user.created_at,
    )


def to_payment_record(payment: Payment) -> PaymentRecord:
    return PaymentRecord(
        order_id=payment.order_id,
        order_amount=payment.order_amount,
        payment_status=payment.payment_status,
        created_at=payment.created_at,
        customer_email=payment.customer_email,
        user_id=payment.user_id,
        plan_type=payment.plan_type,
        payment_completed_at=payment.payment_completed_at,
    )


def to_plan_record(plan: Plan) -> PlanRecord:
    return PlanRecord(plan_type=plan.plan_type, amount=plan.amount, duration=plan.duration)


class SqlAlchemyStorage:
    """Storage backed by the application database."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def list_users(
        self, account_status: str | None = None, payment_status: str | None = None
    ) -> list[MemberRecord]:
        query = select(User)
        if account_status is not None:
            query = query.where(User.account_status == account_status)
        if payment_status is not None:
            query = query.where(User.payment_status == payment_status)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query.order_by(User.created_at))
                return [to_member_record(u) for u in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageError("Failed to list users") from e

    async def get_user(self, user_id: uuid.UUID) -> MemberRecord | None:
        try:
            async with self._session_factory() as session:
                user = await session.get(User, user_id)
                return to_member_record(user) if user else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load user {user_id}") from e

    async def list_payments(self, paid_only: bool = False) -> list[PaymentRecord]:
        query = select(Payment)
        if paid_only:
            query = query.where(func.lower(Payment.payment_status).in_(_PAID_RAW_VALUES))
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [to_payment_record(p) for p in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageError("Failed to list payments") from e

    async def list_plans(self) -> list[PlanRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Plan).order_by(Plan.created_at))
                return [to_plan_record(p) for p in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageError("Failed to list plans") from e

    async def update_user_status(self, user_id: uuid.UUID, account_status: str) -> None:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise LookupError(f"User {user_id} not found")
            user.account_status = account_status
            await session.commit()
        logger.info("User %s account status set to %s", user_id, account_status)

    async def upsert_plan(self, plan_type: str, amount: Decimal, duration: int) -> PlanRecord:
        """Create the plan or update its amount and duration (matched case-insensitively)."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Plan).where(func.lower(Plan.plan_type) == plan_type.strip().lower())
            )
            plan = result.scalar_one_or_none()
            if plan is None:
                plan = Plan(plan_type=plan_type.strip(), amount=amount, duration=duration)
                session.add(plan)
            else:
                plan.amount = amount
                plan.duration = duration
            await session.commit()
            return to_plan_record(plan)

    async def list_syncable_payments(self, since: datetime) -> list[PaymentRecord]:
        """Payments still awaiting a final status, created on or after ``since``."""
        query = select(Payment).where(
            func.lower(Payment.payment_status).in_(_SYNCABLE_RAW_VALUES),
            Payment.created_at >= since,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query.order_by(Payment.created_at))
                return [to_payment_record(p) for p in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StorageError("Failed to list payments awaiting sync") from e

    async def apply_gateway_status(
        self, order_id: str, raw_status: str, payload: dict | None = None
    ) -> PaymentRecord | None:
        """Store a gateway-reported status for an order.

        The status is normalized before it is written. A newly paid order gets
        its completion time stamped and activates the linked member. Returns
        None when the order is unknown.
        """
        status = normalize_payment_status(raw_status)
        if status is None:
            raise ValueError(f"Unrecognized payment status: {raw_status!r}")
        try:
            return await self._apply_status(order_id, status, payload)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update payment {order_id}") from e

    async def _apply_status(self, order_id: str, status: str, payload: dict | None) -> PaymentRecord | None:
        async with self._session_factory() as session:
            result = await session.execute(select(Payment).where(Payment.order_id == order_id))
            payment = result.scalar_one_or_none()
            if payment is None:
                return None

            was_paid = normalize_payment_status(payment.payment_status) == PAID
            if was_paid and status != PAID:
                logger.warning(
                    "Ignoring %s for order %s: payment is already paid", status, order_id
                )
                return to_payment_record(payment)

            payment.payment_status = status
            if payload is not None:
                payment.gateway_data = payload

            if status == PAID and not was_paid:
                payment.payment_completed_at = datetime.utcnow()
                if payment.user_id is not None:
                    user = await session.get(User, payment.user_id)
                    if user is not None:
                        user.payment_status = PAID
                        user.account_status = "active"
                        if payment.plan_type:
                            user.plan_type = payment.plan_type
                        logger.info("Activated user %s after payment %s", user.id, order_id)

            await session.commit()
            logger.info("Payment %s status set to %s", order_id, status)
            return to_payment_record(payment)
