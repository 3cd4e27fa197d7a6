"""Print active paid members with their membership end date and days left.

    python -m gymops.scripts.check_remaining_days
"""

import asyncio

from gymops.config import settings
from gymops.database import async_session_factory, engine
from gymops.membership.report import ExpiryReport, build_expiry_report
from gymops.membership.resolver import MatchTolerance
from gymops.membership.storage import SqlAlchemyStorage


def _days_label(days: int | None) -> str:
    if days is None:
        return "N/A"
    if days < 0:
        return "Expired"
    return str(days)


def format_report(report: ExpiryReport) -> str:
    lines = [
        f"| {'Name':<25} | {'Email':<30} | {'End Date':<12} | {'Days Left':<9} |",
        "-" * 89,
    ]
    for m in report.members:
        end = m.end_date.strftime("%d %b %Y") if m.end_date else "N/A"
        lines.append(
            f"| {(m.name or '')[:25]:<25} | {m.email[:30]:<30} | {end:<12} | {_days_label(m.days_remaining):<9} |"
        )
    lines += [
        "-" * 89,
        f"Total members:          {report.total}",
        f"Expired:                {report.expired}",
        f"Expiring in <=10 days:  {report.expiring_10_days}",
        f"Expiring in 11-30 days: {report.expiring_30_days}",
        f"No end date:            {report.no_end_date}",
    ]
    return "\n".join(lines)


async def main() -> None:
    try:
        report = await build_expiry_report(
            SqlAlchemyStorage(async_session_factory),
            tolerance=MatchTolerance.from_settings(settings),
        )
        print(format_report(report))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
