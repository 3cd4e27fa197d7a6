"""Membership API endpoints — membership windows, expiry report, on-demand expiration cycle."""

import logging
import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from gymops.api.deps import get_storage, get_trigger, verify_cron_secret
from gymops.config import settings
from gymops.membership.exceptions import CycleInProgressError, StorageError
from gymops.membership.report import build_expiry_report
from gymops.membership.resolver import MatchTolerance, resolve_membership_window
from gymops.membership.scheduler import CycleReport, DailyTrigger
from gymops.membership.storage import SqlAlchemyStorage
from gymops.schemas.membership import (
    CycleEntryResponse,
    CycleReportResponse,
    ExpiryReportResponse,
    MemberExpiryResponse,
    MembershipWindowResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/memberships", tags=["memberships"])


def _storage_unavailable(e: StorageError) -> HTTPException:
    logger.error("Storage failure: %s", e)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Membership data is temporarily unavailable",
    )


def _cycle_response(report: CycleReport) -> CycleReportResponse:
    return CycleReportResponse(
        run_date=report.run_date,
        notified=[CycleEntryResponse(**asdict(e)) for e in report.notified],
        suspended=[CycleEntryResponse(**asdict(e)) for e in report.suspended],
        skipped=[CycleEntryResponse(**asdict(e)) for e in report.skipped],
        failed=[CycleEntryResponse(**asdict(e)) for e in report.failed],
    )


@router.get("/report", response_model=ExpiryReportResponse)
async def expiry_report(
    storage: SqlAlchemyStorage = Depends(get_storage),
) -> ExpiryReportResponse:
    """Active paid members sorted by days remaining (no end date last)."""
    try:
        report = await build_expiry_report(storage, tolerance=MatchTolerance.from_settings(settings))
    except StorageError as e:
        raise _storage_unavailable(e) from e

    return ExpiryReportResponse(
        total=report.total,
        expired=report.expired,
        expiring_10_days=report.expiring_10_days,
        expiring_30_days=report.expiring_30_days,
        no_end_date=report.no_end_date,
        members=[MemberExpiryResponse(**asdict(m)) for m in report.members],
    )


@router.post(
    "/expiration-cycle",
    response_model=CycleReportResponse,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_expiration_cycle(
    trigger: DailyTrigger = Depends(get_trigger),
) -> CycleReportResponse:
    """Run an expiration cycle now (external cron or manual testing)."""
    try:
        report = await trigger.run_now()
    except CycleInProgressError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An expiration cycle is already running",
        ) from e
    except StorageError as e:
        raise _storage_unavailable(e) from e

    return _cycle_response(report)


@router.get("/{user_id}", response_model=MembershipWindowResponse)
async def get_membership(
    user_id: uuid.UUID,
    storage: SqlAlchemyStorage = Depends(get_storage),
) -> MembershipWindowResponse:
    """Current membership window for a member."""
    try:
        user = await storage.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        payments = await storage.list_payments(paid_only=True)
        plans = await storage.list_plans()
    except StorageError as e:
        raise _storage_unavailable(e) from e

    window = resolve_membership_window(
        user, payments, plans, tolerance=MatchTolerance.from_settings(settings)
    )
    if window is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No membership end date could be derived for this user",
        )

    return MembershipWindowResponse(
        user_id=str(user.id),
        email=user.email,
        start_date=window.start_date,
        end_date=window.end_date,
        days_remaining=window.days_remaining,
        plan_type=window.plan_type,
        matched_by=window.matched_by,
    )
