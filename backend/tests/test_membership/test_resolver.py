"""Tests for end-date resolution (pure, no I/O)."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from conftest import make_payment, make_plan, make_user

from gymops.membership.resolver import (
    RULE_MONTHLY_AMOUNT,
    RULE_NEAREST_TOTAL,
    RULE_OVERRIDE,
    RULE_PLAN_TYPE,
    RULE_TOLERANT_TOTAL,
    RULE_TOTAL_AMOUNT,
    MatchTolerance,
    add_months,
    days_remaining,
    match_plan,
    resolve_end_date,
    resolve_membership_window,
    select_latest_payment,
)


class TestLatestPaymentSelection:
    """The latest paid payment is the only one that counts."""

    def test_uses_latest_regardless_of_order(self, catalog):
        user = make_user(email="member@test.com")
        payments = [
            make_payment(datetime(2024, 1, 1), amount=999, email="member@test.com"),
            make_payment(datetime(2024, 3, 1), amount=5997, email="member@test.com"),
            make_payment(datetime(2024, 2, 1), amount=17988, email="member@test.com"),
        ]

        end = resolve_end_date(user, payments, catalog)

        # Mar 1 payment = standard total (1999 x 3)
        assert end == datetime(2024, 6, 1)

    def test_never_sums_durations(self, catalog):
        user = make_user(email="member@test.com")
        payments = [
            make_payment(datetime(2024, 1, 1), amount=999, email="member@test.com"),
            make_payment(datetime(2024, 2, 1), amount=999, email="member@test.com"),
        ]
        assert resolve_end_date(user, payments, catalog) == datetime(2024, 3, 1)

    def test_ignores_unpaid_payments(self, catalog):
        user = make_user(email="member@test.com")
        payments = [
            make_payment(datetime(2024, 1, 1), amount=999, email="member@test.com"),
            make_payment(datetime(2024, 5, 1), amount=5997, email="member@test.com", status="failed"),
            make_payment(datetime(2024, 6, 1), amount=5997, email="member@test.com", status="initiated"),
        ]
        assert resolve_end_date(user, payments, catalog) == datetime(2024, 2, 1)

    def test_gateway_success_status_counts_as_paid(self, catalog):
        user = make_user(email="member@test.com")
        payments = [make_payment(datetime(2024, 1, 10), amount=999, email="member@test.com", status="SUCCESS")]
        assert resolve_end_date(user, payments, catalog) == datetime(2024, 2, 10)

    def test_same_created_at_prefers_higher_amount(self, catalog):
        user = make_user(email="member@test.com")
        stamp = datetime(2024, 4, 1, 12, 0)
        payments = [
            make_payment(stamp, amount=999, email="member@test.com", order_id="order_b"),
            make_payment(stamp, amount=5997, email="member@test.com", order_id="order_a"),
        ]

        latest = select_latest_payment(user, payments)

        assert latest.order_id == "order_a"

    def test_same_created_at_and_amount_prefers_greater_order_id(self):
        user = make_user(email="member@test.com")
        stamp = datetime(2024, 4, 1)
        payments = [
            make_payment(stamp, amount=999, email="member@test.com", order_id="order_2"),
            make_payment(stamp, amount=999, email="member@test.com", order_id="order_10"),
        ]
        assert select_latest_payment(user, payments).order_id == "order_2"


class TestCorrelation:
    """Payments are linked to members by id first, email otherwise."""

    def test_case_insensitive_email(self, catalog):
        user = make_user(email="foo@bar.com")
        payments = [make_payment(datetime(2024, 1, 15), amount=999, email="Foo@Bar.com")]
        assert resolve_end_date(user, payments, catalog) == datetime(2024, 2, 15)

    def test_email_whitespace_is_ignored(self, catalog):
        user = make_user(email="foo@bar.com")
        payments = [make_payment(datetime(2024, 1, 15), amount=999, email="  foo@bar.com ")]
        assert resolve_end_date(user, payments, catalog) is not None

    def test_user_id_link_matches_without_email(self, catalog):
        user = make_user(email="member@test.com")
        payments = [make_payment(datetime(2024, 1, 15), amount=999, user_id=user.id)]
        assert resolve_end_date(user, payments, catalog) == datetime(2024, 2, 15)

    def test_user_id_link_takes_precedence_over_email(self, catalog):
        user = make_user(email="member@test.com")
        other_user_id = uuid.uuid4()
        payments = [
            make_payment(datetime(2024, 1, 15), amount=999, user_id=user.id),
            # Same email but linked to someone else: not this member's payment
            make_payment(datetime(2024, 3, 1), amount=5997, email="member@test.com", user_id=other_user_id),
        ]
        assert resolve_end_date(user, payments, catalog) == datetime(2024, 2, 15)

    def test_other_members_payments_ignored(self, catalog):
        user = make_user(email="member@test.com")
        payments = [make_payment(datetime(2024, 1, 15), amount=999, email="someone@test.com")]
        assert resolve_end_date(user, payments, catalog) is None


class TestNoBasis:
    """Missing data yields None, never an exception."""

    def test_no_paid_payments(self, catalog):
        user = make_user(email="member@test.com")
        payments = [make_payment(datetime(2024, 1, 1), email="member@test.com", status="failed")]
        assert resolve_end_date(user, payments, catalog) is None

    def test_no_payments_at_all(self, catalog):
        assert resolve_end_date(make_user(), [], catalog) is None

    def test_empty_catalog(self):
        user = make_user(email="member@test.com")
        payments = [make_payment(datetime(2024, 1, 1), amount=999, email="member@test.com", plan_type="basic")]
        assert resolve_end_date(user, payments, []) is None

    def test_zero_amount_without_plan_type(self, catalog):
        user = make_user(email="member@test.com")
        payments = [make_payment(datetime(2024, 1, 1), amount=0, email="member@test.com")]
        assert resolve_end_date(user, payments, catalog) is None

    def test_negative_amount_skips_amount_rules(self):
        assert match_plan(None, Decimal("-999"), [make_plan("basic", 999, 1)]) is None


class TestOverride:
    def test_end_date_on_user_wins(self, catalog):
        override = datetime(2030, 1, 1)
        user = make_user(email="member@test.com", end_date=override)
        payments = [make_payment(datetime(2024, 1, 1), amount=999, email="member@test.com")]

        window = resolve_membership_window(user, payments, catalog, today=date(2029, 12, 22))

        assert window.end_date == override
        assert window.matched_by == RULE_OVERRIDE
        assert window.days_remaining == 10

    def test_override_without_payments(self):
        override = datetime(2030, 1, 1)
        assert resolve_end_date(make_user(end_date=override), [], []) == override


class TestPlanMatching:
    """Plan inference rules and their order."""

    def test_plan_type_match_beats_amount(self):
        catalog = [make_plan("basic", 999, 1)]
        user = make_user(email="member@test.com")
        payments = [
            make_payment(datetime(2024, 5, 10), amount=1, email="member@test.com", plan_type="basic"),
        ]

        window = resolve_membership_window(user, payments, catalog, today=date(2024, 5, 10))

        assert window.matched_by == RULE_PLAN_TYPE
        assert window.end_date == datetime(2024, 6, 10)

    def test_plan_type_is_case_insensitive_and_ignores_plan_suffix(self, catalog):
        plan, rule = match_plan("Standard Plan", 1, catalog)
        assert plan.plan_type == "standard"
        assert rule == RULE_PLAN_TYPE

    def test_catalog_entry_with_plan_suffix(self):
        plan, _ = match_plan("premium", 1, [make_plan("Premium Plan", 2998, 6)])
        assert plan.duration == 6

    def test_falls_back_to_user_plan_type(self, catalog):
        user = make_user(email="member@test.com", plan_type="premium")
        payments = [make_payment(datetime(2024, 1, 1), amount=1, email="member@test.com")]

        window = resolve_membership_window(user, payments, catalog, today=date(2024, 1, 1))

        assert window.plan_type == "premium"
        assert window.end_date == datetime(2024, 7, 1)

    def test_generic_plan_type_is_not_a_match(self, catalog):
        _, rule = match_plan("no plan", 999, catalog)
        assert rule == RULE_MONTHLY_AMOUNT

    def test_monthly_amount(self, catalog):
        plan, rule = match_plan(None, 1999, catalog)
        assert (plan.plan_type, rule) == ("standard", RULE_MONTHLY_AMOUNT)

    def test_exact_total(self):
        plan, rule = match_plan(None, 1998, [make_plan("duo", 999, 2)])
        assert (plan.plan_type, rule) == ("duo", RULE_TOTAL_AMOUNT)

    def test_tolerant_total(self):
        plan, rule = match_plan(None, 2002, [make_plan("duo", 999, 2)])
        assert (plan.plan_type, rule) == ("duo", RULE_TOLERANT_TOTAL)

    def test_outside_every_bound_fails(self):
        assert match_plan(None, 2100, [make_plan("duo", 999, 2)]) is None

    def test_nearest_within_absolute_bound(self, catalog):
        plan, rule = match_plan(None, 1015, catalog)
        assert (plan.plan_type, rule) == ("basic", RULE_NEAREST_TOTAL)

    def test_nearest_within_percentage_bound(self, catalog):
        # premium total 17988; diff 500 > 20 but <= 5% (899.40)
        plan, rule = match_plan(None, 18488, catalog)
        assert (plan.plan_type, rule) == ("premium", RULE_NEAREST_TOTAL)

    def test_custom_tolerance(self):
        strict = MatchTolerance(
            tolerant_diff=Decimal("0"),
            nearest_max_diff=Decimal("0"),
            nearest_max_ratio=Decimal("0"),
        )
        assert match_plan(None, 2002, [make_plan("duo", 999, 2)], strict) is None


class TestDateArithmetic:
    def test_month_overflow_non_leap(self):
        assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)

    def test_month_overflow_leap(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)

    def test_resolver_uses_calendar_months(self):
        catalog = [make_plan("basic", 999, 1)]
        user = make_user(email="member@test.com")
        payments = [make_payment(datetime(2023, 1, 31, 18, 30), amount=999, email="member@test.com")]
        assert resolve_end_date(user, payments, catalog) == datetime(2023, 2, 28, 18, 30)

    def test_completed_at_preferred_over_created_at(self, catalog):
        user = make_user(email="member@test.com")
        payments = [
            make_payment(
                datetime(2024, 1, 1),
                amount=999,
                email="member@test.com",
                completed_at=datetime(2024, 1, 3),
            )
        ]

        window = resolve_membership_window(user, payments, catalog, today=date(2024, 1, 3))

        assert window.start_date == datetime(2024, 1, 3)
        assert window.end_date == datetime(2024, 2, 3)

    def test_days_remaining_ignores_time_of_day(self):
        assert days_remaining(datetime(2024, 3, 11, 23, 59), date(2024, 3, 1)) == 10
        assert days_remaining(datetime(2024, 3, 11, 0, 0), date(2024, 3, 1)) == 10

    def test_days_remaining_negative_when_past(self):
        assert days_remaining(datetime(2024, 2, 28), date(2024, 3, 1)) == -2
