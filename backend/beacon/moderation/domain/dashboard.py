"""Read-side queries behind the admin dashboard."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from beacon.domain.identity.models import UserProfile
from beacon.domain.identity.repository import UserRepository
from beacon.moderation.domain.reports import RESOLVED_STATUSES, ReportStatus
from beacon.moderation.domain.repository import ReportRepository

MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 50
RECENT_WINDOW = timedelta(days=7)


@dataclass(frozen=True, slots=True)
class BannedPage:
    users: Sequence[UserProfile]
    total: int
    limit: int
    offset: int
    query: str


@dataclass(frozen=True, slots=True)
class DashboardMetrics:
    total_users: int
    banned_users: int
    bans_last_7_days: int
    open_reports: int
    under_review_reports: int
    resolved_last_7_days: int
    average_trust_score: Optional[float]
    generated_at: datetime


def clamp_page(limit: Optional[int], offset: Optional[int]) -> tuple[int, int]:
    safe_limit = DEFAULT_PAGE_SIZE if limit is None else max(1, min(MAX_PAGE_SIZE, int(limit)))
    safe_offset = 0 if offset is None else max(0, int(offset))
    return safe_limit, safe_offset


@dataclass
class DashboardService:
    users: UserRepository
    reports: ReportRepository

    async def list_banned(
        self,
        *,
        limit: Optional[int] = DEFAULT_PAGE_SIZE,
        offset: Optional[int] = 0,
        query: Optional[str] = "",
    ) -> BannedPage:
        safe_limit, safe_offset = clamp_page(limit, offset)
        needle = (query or "").strip()
        users, total = await self.users.list_banned(limit=safe_limit, offset=safe_offset, query=needle)
        return BannedPage(users=list(users), total=total, limit=safe_limit, offset=safe_offset, query=needle)

    async def metrics(self, now: Optional[datetime] = None) -> DashboardMetrics:
        now = now or datetime.now(timezone.utc)
        since = now - RECENT_WINDOW
        average = await self.users.average_trust()
        return DashboardMetrics(
            total_users=await self.users.count(),
            banned_users=await self.users.count(banned=True),
            bans_last_7_days=await self.users.count(banned=True, banned_since=since),
            open_reports=await self.reports.count(statuses=(ReportStatus.NEEDS_REVIEW,)),
            under_review_reports=await self.reports.count(statuses=(ReportStatus.UNDER_REVIEW,)),
            resolved_last_7_days=await self.reports.count(statuses=RESOLVED_STATUSES, updated_since=since),
            average_trust_score=round(average, 2) if average is not None else None,
            generated_at=now,
        )
