"""Pydantic v2 response schemas for membership endpoints."""

from datetime import date, datetime

from pydantic import BaseModel


class MembershipWindowResponse(BaseModel):
    """A member's current membership period."""

    user_id: str
    email: str
    start_date: datetime | None
    end_date: datetime
    days_remaining: int
    plan_type: str | None
    matched_by: str | None


class MemberExpiryResponse(BaseModel):
    user_id: str
    name: str | None
    email: str
    end_date: datetime | None
    days_remaining: int | None  # None = no end date could be derived


class ExpiryReportResponse(BaseModel):
    """Active paid members sorted by days remaining, with bucket counts."""

    total: int
    expired: int
    expiring_10_days: int
    expiring_30_days: int
    no_end_date: int
    members: list[MemberExpiryResponse]


class CycleEntryResponse(BaseModel):
    user_id: str
    email: str
    reason: str
    days_remaining: int | None = None
    end_date: datetime | None = None


class CycleReportResponse(BaseModel):
    """Outcome of an expiration cycle."""

    run_date: date
    notified: list[CycleEntryResponse]
    suspended: list[CycleEntryResponse]
    skipped: list[CycleEntryResponse]
    failed: list[CycleEntryResponse]
