"""Expiration scheduler — daily notices for expiring members, suspension for expired ones.

``ExpirationScheduler.run_cycle`` processes every active, paid member once.
``DailyTrigger`` runs the cycle once per calendar day and is started
explicitly by the application lifespan.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from gymops.membership.exceptions import CycleInProgressError, StorageError
from gymops.membership.notifier import Notifier
from gymops.membership.records import MemberRecord
from gymops.membership.resolver import DEFAULT_TOLERANCE, MatchTolerance, resolve_membership_window
from gymops.membership.storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = (10, 5, 1)

# Outcome reasons
NOTIFIED = "notified"
SUSPENDED = "suspended"
NO_END_DATE = "no_end_date"
NOT_DUE = "not_due"
ALREADY_NOTIFIED = "already_notified"
ALREADY_SUSPENDED = "already_suspended"
NOTIFY_FAILED = "notify_failed"
SUSPEND_FAILED = "suspend_failed"
RESOLVE_FAILED = "resolve_failed"


@dataclass(frozen=True)
class CycleEntry:
    """What happened to one member during a cycle."""

    user_id: str
    email: str
    reason: str
    days_remaining: int | None = None
    end_date: datetime | None = None


@dataclass
class CycleReport:
    """Outcome of one expiration cycle."""

    run_date: date
    notified: list[CycleEntry] = field(default_factory=list)
    suspended: list[CycleEntry] = field(default_factory=list)
    skipped: list[CycleEntry] = field(default_factory=list)
    failed: list[CycleEntry] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.notified) + len(self.suspended) + len(self.skipped) + len(self.failed)


class ExpirationScheduler:
    """Notify members nearing their end date and suspend expired ones."""

    def __init__(
        self,
        storage: Storage,
        notifier: Notifier,
        thresholds: Sequence[int] = DEFAULT_THRESHOLDS,
        notification_delay: float = 1.0,
        tolerance: MatchTolerance = DEFAULT_TOLERANCE,
    ):
        self.storage = storage
        self.notifier = notifier
        self.thresholds = frozenset(thresholds)
        self.notification_delay = notification_delay
        self.tolerance = tolerance
        # (user_id, threshold) pairs already notified, for _ledger_date only.
        # In memory only: after a restart, a manual run on the same day can
        # repeat a notice that was already delivered.
        self._ledger_date: date | None = None
        self._ledger: set[tuple[str, int]] = set()

    async def run_cycle(self, today: date | None = None) -> CycleReport:
        """Process every active, paid member once.

        Raises:
            StorageError: If users, payments or plans cannot be read. Nothing
                has been written at that point.
        """
        today = today or date.today()
        if self._ledger_date != today:
            self._ledger_date = today
            self._ledger = set()

        users = await self.storage.list_users(account_status="active", payment_status="paid")
        payments = await self.storage.list_payments(paid_only=True)
        plans = await self.storage.list_plans()
        logger.info(
            "Expiration cycle %s: %d users, %d paid payments, %d plans",
            today.isoformat(),
            len(users),
            len(payments),
            len(plans),
        )

        report = CycleReport(run_date=today)
        for user in users:
            await self._process_user(user, payments, plans, today, report)

        logger.info(
            "Expiration cycle %s done: %d notified, %d suspended, %d skipped, %d failed",
            today.isoformat(),
            len(report.notified),
            len(report.suspended),
            len(report.skipped),
            len(report.failed),
        )
        return report

    async def _process_user(self, user: MemberRecord, payments, plans, today: date, report: CycleReport) -> None:
        user_id = str(user.id)

        if user.account_status == "suspended":
            report.skipped.append(CycleEntry(user_id, user.email, ALREADY_SUSPENDED))
            return

        try:
            window = resolve_membership_window(user, payments, plans, today=today, tolerance=self.tolerance)
        except Exception:
            logger.exception("Could not resolve end date for user %s", user_id)
            report.failed.append(CycleEntry(user_id, user.email, RESOLVE_FAILED))
            return

        if window is None:
            report.skipped.append(CycleEntry(user_id, user.email, NO_END_DATE))
            return

        days = window.days_remaining
        if days < 0:
            await self._suspend(user, window.end_date, days, report)
            return

        if days not in self.thresholds:
            report.skipped.append(CycleEntry(user_id, user.email, NOT_DUE, days, window.end_date))
            return

        if (user_id, days) in self._ledger:
            report.skipped.append(CycleEntry(user_id, user.email, ALREADY_NOTIFIED, days, window.end_date))
            return

        if await self._notify(user.email, days):
            self._ledger.add((user_id, days))
            report.notified.append(CycleEntry(user_id, user.email, NOTIFIED, days, window.end_date))
        else:
            report.failed.append(CycleEntry(user_id, user.email, NOTIFY_FAILED, days, window.end_date))

    async def _suspend(self, user: MemberRecord, end_date: datetime, days: int, report: CycleReport) -> None:
        user_id = str(user.id)
        try:
            await self.storage.update_user_status(user.id, "suspended")
        except Exception:
            logger.exception("Failed to suspend user %s; will retry next cycle", user_id)
            report.failed.append(CycleEntry(user_id, user.email, SUSPEND_FAILED, days, end_date))
            return

        logger.info("Suspended user %s (membership ended %s)", user_id, end_date.date().isoformat())
        report.suspended.append(CycleEntry(user_id, user.email, SUSPENDED, days, end_date))
        if not await self._notify(user.email, None):
            report.failed.append(CycleEntry(user_id, user.email, NOTIFY_FAILED, days, end_date))

    async def _notify(self, email: str, days_remaining: int | None) -> bool:
        try:
            sent = await self.notifier.send_expiration_notice(email, days_remaining)
        except Exception:
            logger.exception("Notifier raised for %s", email)
            sent = False
        if not sent:
            logger.warning("Expiration notice to %s failed", email)
        if self.notification_delay > 0:
            await asyncio.sleep(self.notification_delay)
        return sent


class DailyTrigger:
    """Runs an expiration cycle once per calendar day, never two at once."""

    def __init__(self, scheduler: ExpirationScheduler, run_at: time = time(0, 0)):
        self.scheduler = scheduler
        self.run_at = run_at
        self.last_run_date: date | None = None
        self.last_report: CycleReport | None = None
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def seconds_until_next_run(self, now: datetime | None = None) -> float:
        now = now or datetime.now()
        next_run = datetime.combine(now.date(), self.run_at)
        if next_run <= now:
            next_run += timedelta(days=1)
        return (next_run - now).total_seconds()

    async def run_now(self, today: date | None = None) -> CycleReport:
        """Run a cycle immediately.

        Raises:
            CycleInProgressError: If a cycle is already running.
            StorageError: Propagated from the cycle's read phase.
        """
        if self._lock.locked():
            raise CycleInProgressError("An expiration cycle is already running")
        async with self._lock:
            report = await self.scheduler.run_cycle(today=today)
            self.last_run_date = report.run_date
            self.last_report = report
            return report

    async def fire(self, today: date | None = None) -> CycleReport | None:
        """Scheduled entry point. Skips when a cycle is in flight or already ran today."""
        today = today or date.today()
        if self.last_run_date == today:
            logger.info("Expiration cycle already ran for %s, skipping", today.isoformat())
            return None
        try:
            return await self.run_now(today=today)
        except CycleInProgressError:
            logger.warning("Expiration cycle still running, skipping this trigger")
        except StorageError:
            logger.exception("Expiration cycle aborted: storage unavailable")
        except Exception:
            logger.exception("Expiration cycle failed")
        return None

    async def _loop(self) -> None:
        while True:
            delay = self.seconds_until_next_run()
            logger.info("Next expiration cycle in %.0f seconds", delay)
            await asyncio.sleep(delay)
            await self.fire()

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop(), name="expiration-trigger")
        logger.info("Expiration trigger armed for %s daily", self.run_at.strftime("%H:%M"))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
