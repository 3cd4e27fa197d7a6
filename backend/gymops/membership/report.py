"""Remaining-days report for active, paid members."""

from dataclasses import dataclass, field
from datetime import date, datetime

from gymops.membership.resolver import DEFAULT_TOLERANCE, MatchTolerance, resolve_membership_window
from gymops.membership.storage import Storage


@dataclass(frozen=True)
class MemberExpiry:
    user_id: str
    name: str | None
    email: str
    end_date: datetime | None
    days_remaining: int | None


@dataclass
class ExpiryReport:
    members: list[MemberExpiry] = field(default_factory=list)
    expired: int = 0
    expiring_10_days: int = 0
    expiring_30_days: int = 0
    no_end_date: int = 0

    @property
    def total(self) -> int:
        return len(self.members)


def _sort_key(member: MemberExpiry) -> tuple[bool, int]:
    # Members without an end date go last
    return (member.days_remaining is None, member.days_remaining or 0)


async def build_expiry_report(
    storage: Storage,
    today: date | None = None,
    tolerance: MatchTolerance = DEFAULT_TOLERANCE,
) -> ExpiryReport:
    """List active, paid members by days remaining, with bucket counts."""
    today = today or date.today()
    users = await storage.list_users(account_status="active", payment_status="paid")
    payments = await storage.list_payments(paid_only=True)
    plans = await storage.list_plans()

    report = ExpiryReport()
    for user in users:
        window = resolve_membership_window(user, payments, plans, today=today, tolerance=tolerance)
        entry = MemberExpiry(
            user_id=str(user.id),
            name=user.name,
            email=user.email,
            end_date=window.end_date if window else None,
            days_remaining=window.days_remaining if window else None,
        )
        report.members.append(entry)

        days = entry.days_remaining
        if days is None:
            report.no_end_date += 1
        elif days < 0:
            report.expired += 1
        elif days <= 10:
            report.expiring_10_days += 1
        elif days <= 30:
            report.expiring_30_days += 1

    report.members.sort(key=_sort_key)
    return report
