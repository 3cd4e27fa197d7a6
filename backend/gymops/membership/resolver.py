"""End-date resolution — derive a member's plan end date from payment history.

Payment records are inconsistent: some carry the plan type, some only an
amount that may be a single month's price or a multi-month prepayment.
Resolution is an ordered fallback and the first rule that succeeds wins:

1. an end date set directly on the member;
2. the member's latest paid payment (none → no end date);
3. the plan for that payment, by plan type, then by amount
   (single-month, exact total, tolerant total, nearest total);
4. start of the payment + the plan's duration in calendar months.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from gymops.membership.records import MemberRecord, MembershipWindow, PaymentRecord, PlanRecord
from gymops.membership.status import is_paid

logger = logging.getLogger(__name__)

GENERIC_PLAN_TYPES = frozenset({"", "no plan", "none"})

# Names of the resolution rules, reported on MembershipWindow.matched_by
RULE_OVERRIDE = "override"
RULE_PLAN_TYPE = "plan_type"
RULE_MONTHLY_AMOUNT = "monthly_amount"
RULE_TOTAL_AMOUNT = "total_amount"
RULE_TOLERANT_TOTAL = "tolerant_total"
RULE_NEAREST_TOTAL = "nearest_total"


@dataclass(frozen=True)
class MatchTolerance:
    """Bounds for amount-based plan inference."""

    tolerant_diff: Decimal = Decimal("5")
    nearest_max_diff: Decimal = Decimal("20")
    nearest_max_ratio: Decimal = Decimal("0.05")  # of the plan's total price

    @classmethod
    def from_settings(cls, settings) -> "MatchTolerance":
        return cls(
            tolerant_diff=_to_decimal(settings.plan_match_tolerance),
            nearest_max_diff=_to_decimal(settings.plan_nearest_max_diff),
            nearest_max_ratio=_to_decimal(settings.plan_nearest_max_ratio),
        )


DEFAULT_TOLERANCE = MatchTolerance()


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _normalize_plan_type(plan_type: str | None) -> str:
    """Lower-case, trim and drop a trailing " plan" ("Basic Plan" -> "basic")."""
    value = (plan_type or "").strip().lower()
    if value.endswith(" plan"):
        value = value[: -len(" plan")].rstrip()
    return value


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day (Jan 31 + 1 month -> Feb 28/29)."""
    return start + relativedelta(months=months)


def days_remaining(end_date: datetime | date, today: date | None = None) -> int:
    """Whole days from today until the end date, comparing dates only."""
    today = today or date.today()
    end_day = end_date.date() if isinstance(end_date, datetime) else end_date
    return (end_day - today).days


def belongs_to(payment: PaymentRecord, user: MemberRecord) -> bool:
    """Correlate a payment with a member.

    A payment linked to a user id is matched on the id only; unlinked
    payments fall back to case-insensitive email comparison.
    """
    if payment.user_id is not None:
        return payment.user_id == user.id
    email = _normalize_email(payment.customer_email)
    return bool(email) and email == _normalize_email(user.email)


def select_latest_payment(
    user: MemberRecord, payments: Iterable[PaymentRecord]
) -> PaymentRecord | None:
    """Latest paid payment for the user.

    Ties on ``created_at`` go to the larger amount, then to the greater order id.
    """
    qualifying = [p for p in payments if is_paid(p.payment_status) and belongs_to(p, user)]
    if not qualifying:
        return None
    return max(
        qualifying,
        key=lambda p: (p.created_at, _to_decimal(p.order_amount), p.order_id),
    )


def match_plan(
    plan_type: str | None,
    order_amount,
    plans: Sequence[PlanRecord],
    tolerance: MatchTolerance = DEFAULT_TOLERANCE,
) -> tuple[PlanRecord, str] | None:
    """Find the plan a payment bought. Returns ``(plan, rule)`` or None."""
    if not plans:
        return None

    wanted = _normalize_plan_type(plan_type)
    if wanted not in GENERIC_PLAN_TYPES:
        for plan in plans:
            if _normalize_plan_type(plan.plan_type) == wanted:
                return plan, RULE_PLAN_TYPE

    amount = _to_decimal(order_amount) if order_amount is not None else Decimal(0)
    if amount <= 0:
        return None

    for plan in plans:
        if _to_decimal(plan.amount) == amount:
            return plan, RULE_MONTHLY_AMOUNT

    for plan in plans:
        if _to_decimal(plan.total_price) == amount:
            return plan, RULE_TOTAL_AMOUNT

    for plan in plans:
        if abs(_to_decimal(plan.total_price) - amount) <= tolerance.tolerant_diff:
            return plan, RULE_TOLERANT_TOTAL

    nearest = min(plans, key=lambda p: abs(_to_decimal(p.total_price) - amount))
    total = _to_decimal(nearest.total_price)
    diff = abs(total - amount)
    # Either bound alone accepts the match; the 5% is of the plan total, not the
    # order amount, so 2100 against a 999 x 2 plan stays unmatched
    if diff <= tolerance.nearest_max_diff or diff <= total * tolerance.nearest_max_ratio:
        return nearest, RULE_NEAREST_TOTAL

    logger.debug(
        "No plan within tolerance for amount %s (nearest %s, diff %s)",
        amount,
        nearest.plan_type,
        diff,
    )
    return None


def resolve_membership_window(
    user: MemberRecord,
    payments: Iterable[PaymentRecord],
    plans: Sequence[PlanRecord],
    today: date | None = None,
    tolerance: MatchTolerance = DEFAULT_TOLERANCE,
) -> MembershipWindow | None:
    """Compute the member's current membership window, or None without a basis."""
    if user.end_date is not None:
        return MembershipWindow(
            start_date=None,
            end_date=user.end_date,
            days_remaining=days_remaining(user.end_date, today),
            plan_type=user.plan_type,
            matched_by=RULE_OVERRIDE,
        )

    payment = select_latest_payment(user, payments)
    if payment is None:
        return None

    plan_type = payment.plan_type
    if _normalize_plan_type(plan_type) in GENERIC_PLAN_TYPES:
        plan_type = user.plan_type

    matched = match_plan(plan_type, payment.order_amount, plans, tolerance)
    if matched is None:
        return None
    plan, rule = matched

    start = payment.payment_completed_at or payment.created_at
    end = add_months(start, plan.duration)
    return MembershipWindow(
        start_date=start,
        end_date=end,
        days_remaining=days_remaining(end, today),
        plan_type=plan.plan_type,
        matched_by=rule,
    )


def resolve_end_date(
    user: MemberRecord,
    payments: Iterable[PaymentRecord],
    plans: Sequence[PlanRecord],
    tolerance: MatchTolerance = DEFAULT_TOLERANCE,
) -> datetime | None:
    """The member's membership end date, or None when it cannot be derived."""
    window = resolve_membership_window(user, payments, plans, tolerance=tolerance)
    return window.end_date if window else None
