"""Admin moderation endpoints: report review, trust adjustment, bans, dashboard."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from beacon.domain.identity.models import BanState, UserProfile
from beacon.moderation.api.deps import (
    get_dashboard_service_dep,
    get_dispatcher_dep,
    get_report_service_dep,
    get_staff_context,
    require_admin_context,
)
from beacon.moderation.domain import container
from beacon.moderation.domain.dashboard import DEFAULT_PAGE_SIZE, DashboardService
from beacon.moderation.domain.dispatcher import ModerationDispatcher
from beacon.moderation.domain.rbac import StaffContext
from beacon.moderation.domain.reports import Report, parse_status_filter
from beacon.moderation.domain.reports_service import ReportService

router = APIRouter(prefix="/admin", tags=["moderation-admin"])


class UserSummary(BaseModel):
    id: int
    email: Optional[str] = None
    display_name: Optional[str] = None
    trust_score: int
    banned: bool
    banned_at: Optional[datetime] = None
    ban_reason: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserSummary":
        return cls(
            id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            trust_score=profile.trust_score,
            banned=profile.banned,
            banned_at=profile.banned_at,
            ban_reason=profile.ban_reason,
        )


class ReportOut(BaseModel):
    id: int
    reporter_id: int
    reported_id: int
    reason: str
    severity: int
    status: str
    context_note: Optional[str] = None
    resolution_note: Optional[str] = None
    last_moderator_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    reporter: Optional[UserSummary] = None
    reported: Optional[UserSummary] = None


class StatusUpdateIn(BaseModel):
    status: str
    resolution_note: Optional[str] = Field(default=None, max_length=2000)


class TrustAdjustIn(BaseModel):
    delta: Optional[Union[int, float]] = None
    set_to: Optional[Union[int, float]] = None


class TrustScoreOut(BaseModel):
    user_id: int
    trust_score: int


class BanIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class BanStateOut(BaseModel):
    user_id: int
    banned: bool
    banned_at: Optional[datetime] = None
    ban_reason: Optional[str] = None

    @classmethod
    def from_state(cls, state: BanState) -> "BanStateOut":
        return cls(user_id=state.user_id, banned=state.banned, banned_at=state.banned_at, ban_reason=state.ban_reason)


class BannedUsersOut(BaseModel):
    users: list[UserSummary]
    total: int
    limit: int
    offset: int
    query: str


class DashboardMetricsOut(BaseModel):
    total_users: int
    banned_users: int
    bans_last_7_days: int
    open_reports: int
    under_review_reports: int
    resolved_last_7_days: int
    average_trust_score: Optional[float] = None
    generated_at: datetime


async def _report_out(report: Report) -> ReportOut:
    users = container.get_user_repository()
    reporter = await users.get(report.reporter_id)
    reported = await users.get(report.reported_id)
    return ReportOut(
        id=report.id,
        reporter_id=report.reporter_id,
        reported_id=report.reported_id,
        reason=report.reason,
        severity=report.severity,
        status=report.status.value,
        context_note=report.context_note,
        resolution_note=report.resolution_note,
        last_moderator_id=report.last_moderator_id,
        created_at=report.created_at,
        updated_at=report.updated_at,
        reporter=UserSummary.from_profile(reporter) if reporter else None,
        reported=UserSummary.from_profile(reported) if reported else None,
    )


@router.get("/reports", response_model=list[ReportOut])
async def list_reports(
    *,
    status: Optional[str] = Query(default=None),
    order: Literal["asc", "desc"] = Query(default="desc"),
    reporter_id: Optional[int] = Query(default=None, ge=1),
    reported_id: Optional[int] = Query(default=None, ge=1),
    _: StaffContext = Depends(require_admin_context),
    service: ReportService = Depends(get_report_service_dep),
) -> list[ReportOut]:
    reports = await service.list_reports(
        statuses=parse_status_filter(status),
        order=order,
        reporter_id=reporter_id,
        reported_id=reported_id,
    )
    return [await _report_out(report) for report in reports]


@router.get("/reports/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: int = Path(..., ge=1),
    _: StaffContext = Depends(require_admin_context),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportOut:
    return await _report_out(await service.get_report(report_id))


@router.patch("/reports/{report_id}/status", response_model=ReportOut)
async def update_report_status(
    payload: StatusUpdateIn,
    report_id: int = Path(..., ge=1),
    context: StaffContext = Depends(get_staff_context),
    dispatcher: ModerationDispatcher = Depends(get_dispatcher_dep),
) -> ReportOut:
    report = await dispatcher.update_report_status(
        report_id,
        payload.status,
        actor=context,
        resolution_note=payload.resolution_note,
    )
    return await _report_out(report)


@router.patch("/users/{user_id}/trust", response_model=TrustScoreOut)
async def adjust_trust(
    payload: TrustAdjustIn,
    user_id: int = Path(..., ge=1),
    context: StaffContext = Depends(get_staff_context),
    dispatcher: ModerationDispatcher = Depends(get_dispatcher_dep),
) -> TrustScoreOut:
    score = await dispatcher.adjust_trust(user_id, actor=context, delta=payload.delta, set_to=payload.set_to)
    return TrustScoreOut(user_id=user_id, trust_score=score)


@router.post("/users/{user_id}/ban", response_model=BanStateOut)
async def ban_user(
    payload: Optional[BanIn] = None,
    user_id: int = Path(..., ge=1),
    context: StaffContext = Depends(get_staff_context),
    dispatcher: ModerationDispatcher = Depends(get_dispatcher_dep),
) -> BanStateOut:
    state = await dispatcher.ban_user(user_id, actor=context, reason=payload.reason if payload else None)
    return BanStateOut.from_state(state)


@router.post("/users/{user_id}/unban", response_model=BanStateOut)
async def unban_user(
    user_id: int = Path(..., ge=1),
    context: StaffContext = Depends(get_staff_context),
    dispatcher: ModerationDispatcher = Depends(get_dispatcher_dep),
) -> BanStateOut:
    state = await dispatcher.unban_user(user_id, actor=context)
    return BanStateOut.from_state(state)


@router.get("/users/banned", response_model=BannedUsersOut)
async def list_banned_users(
    *,
    limit: Optional[int] = Query(default=DEFAULT_PAGE_SIZE),
    offset: Optional[int] = Query(default=0),
    q: Optional[str] = Query(default=None, max_length=200),
    _: StaffContext = Depends(require_admin_context),
    service: DashboardService = Depends(get_dashboard_service_dep),
) -> BannedUsersOut:
    page = await service.list_banned(limit=limit, offset=offset, query=q)
    return BannedUsersOut(
        users=[UserSummary.from_profile(profile) for profile in page.users],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        query=page.query,
    )


@router.get("/dashboard/metrics", response_model=DashboardMetricsOut)
async def dashboard_metrics(
    _: StaffContext = Depends(require_admin_context),
    service: DashboardService = Depends(get_dashboard_service_dep),
) -> DashboardMetricsOut:
    metrics = await service.metrics()
    return DashboardMetricsOut(
        total_users=metrics.total_users,
        banned_users=metrics.banned_users,
        bans_last_7_days=metrics.bans_last_7_days,
        open_reports=metrics.open_reports,
        under_review_reports=metrics.under_review_reports,
        resolved_last_7_days=metrics.resolved_last_7_days,
        average_trust_score=metrics.average_trust_score,
        generated_at=metrics.generated_at,
    )
