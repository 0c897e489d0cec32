"""Member-facing report submission and trust lookup."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field

from beacon.infra.auth import AuthenticatedUser, get_current_user
from beacon.infra.rate_limit import RateLimitExceeded, allow
from beacon.moderation.api.deps import get_report_service_dep, get_staff_context
from beacon.moderation.domain.rbac import StaffContext
from beacon.moderation.domain.reports_service import ReportService
from beacon.obs import metrics as obs_metrics
from beacon.settings import settings

router = APIRouter(prefix="/api", tags=["reports"])


class ReportIn(BaseModel):
    reported_id: int
    reason: str = Field(..., max_length=500)
    # Severity is normalised server side; strings and floats are accepted as submitted
    severity: Optional[Union[int, float, str]] = None
    context_note: Optional[str] = Field(default=None, max_length=10000)


class ReportCreated(BaseModel):
    report_id: int
    status: str
    severity: int
    deduction: int
    trust_score: int
    created_at: datetime


class TrustScoreOut(BaseModel):
    user_id: int
    trust_score: int


@router.post("/report", response_model=ReportCreated, status_code=status.HTTP_201_CREATED)
async def submit_report(
    payload: ReportIn,
    context: StaffContext = Depends(get_staff_context),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportCreated:
    if context.is_admin:
        obs_metrics.inc_report_reject("admin_reporter")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admins_cannot_report")
    allowed = await allow(
        "report",
        str(context.actor_id),
        limit=settings.report_rate_limit,
        window_seconds=settings.report_rate_window_seconds,
    )
    if not allowed:
        obs_metrics.inc_report_reject("rate_limited")
        raise RateLimitExceeded()
    submission = await service.submit_report(
        context.actor_id,
        payload.reported_id,
        payload.reason,
        payload.severity,
        payload.context_note,
    )
    report = submission.report
    return ReportCreated(
        report_id=report.id,
        status=report.status.value,
        severity=report.severity,
        deduction=submission.deduction,
        trust_score=submission.next_trust_score,
        created_at=report.created_at,
    )


@router.get("/users/{user_id}/trust", response_model=TrustScoreOut)
async def get_trust_score(
    user_id: int = Path(..., ge=1),
    _: AuthenticatedUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service_dep),
) -> TrustScoreOut:
    score = await service.get_trust_score(user_id)
    return TrustScoreOut(user_id=user_id, trust_score=score)
