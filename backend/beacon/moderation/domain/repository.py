"""Storage contracts for reports and the moderation audit trail."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Literal, Mapping, Optional, Protocol, Sequence

from beacon.domain.identity.models import UserProfile
from beacon.domain.identity.repository import ProfileMutator, UserRepository
from beacon.infra.locks import KeyedLock
from beacon.moderation.domain.errors import NotFoundError
from beacon.moderation.domain.reports import Report, ReportDraft, ReportStatus

ReportMutator = Callable[[Report], Report]
SortOrder = Literal["asc", "desc"]


@dataclass(slots=True)
class AuditEntry:
    actor_id: Optional[int]
    action: str
    target_type: str
    target_id: int
    created_at: datetime
    meta: Mapping[str, Any] = field(default_factory=dict)


class ReportRepository(Protocol):
    """Storage layer contract for reports.

    ``mutate`` must serialize concurrent writers on the same report.
    """

    async def create_with_user_update(
        self,
        draft: ReportDraft,
        mutator: ProfileMutator,
        *,
        now: datetime,
        users: UserRepository,
    ) -> tuple[Report, UserProfile]:
        """Store ``draft`` and apply ``mutator`` to the reported user as one unit.

        When the user write fails nothing is stored.
        """
        ...

    async def get(self, report_id: int) -> Report | None:
        ...

    async def mutate(self, report_id: int, mutator: ReportMutator) -> Report:
        ...

    async def list(
        self,
        *,
        statuses: Optional[Sequence[ReportStatus]] = None,
        order: SortOrder = "desc",
        reporter_id: Optional[int] = None,
        reported_id: Optional[int] = None,
    ) -> Sequence[Report]:
        ...

    async def count(
        self,
        *,
        statuses: Optional[Sequence[ReportStatus]] = None,
        updated_since: Optional[datetime] = None,
    ) -> int:
        ...


class AuditRepository(Protocol):
    async def record(self, entry: AuditEntry) -> None:
        ...


class InMemoryReportRepository(ReportRepository):
    """Reference repository used in tests and developer environments."""

    def __init__(self) -> None:
        self.reports: dict[int, Report] = {}
        self._ids = itertools.count(1)
        self._locks = KeyedLock()

    def _store(self, draft: ReportDraft, now: datetime) -> Report:
        report = Report(
            id=next(self._ids),
            reporter_id=draft.reporter_id,
            reported_id=draft.reported_id,
            reason=draft.reason,
            severity=draft.severity,
            status=ReportStatus.NEEDS_REVIEW,
            created_at=now,
            updated_at=now,
            context_note=draft.context_note,
        )
        self.reports[report.id] = report
        return report

    async def create_with_user_update(
        self,
        draft: ReportDraft,
        mutator: ProfileMutator,
        *,
        now: datetime,
        users: UserRepository,
    ) -> tuple[Report, UserProfile]:
        # _store cannot fail, so writing the user first is enough
        profile = await users.mutate(draft.reported_id, mutator)
        report = self._store(draft, now)
        return report, profile

    async def get(self, report_id: int) -> Report | None:
        return self.reports.get(report_id)

    async def mutate(self, report_id: int, mutator: ReportMutator) -> Report:
        async with self._locks.hold(report_id):
            current = self.reports.get(report_id)
            if current is None:
                raise NotFoundError("report_not_found")
            updated = mutator(current)
            self.reports[report_id] = updated
            return updated

    async def list(
        self,
        *,
        statuses: Optional[Sequence[ReportStatus]] = None,
        order: SortOrder = "desc",
        reporter_id: Optional[int] = None,
        reported_id: Optional[int] = None,
    ) -> Sequence[Report]:
        items = [
            report
            for report in self.reports.values()
            if (not statuses or report.status in statuses)
            and (reporter_id is None or report.reporter_id == reporter_id)
            and (reported_id is None or report.reported_id == reported_id)
        ]
        items.sort(key=lambda r: (r.created_at, r.id), reverse=order == "desc")
        return items

    async def count(
        self,
        *,
        statuses: Optional[Sequence[ReportStatus]] = None,
        updated_since: Optional[datetime] = None,
    ) -> int:
        return sum(
            1
            for report in self.reports.values()
            if (not statuses or report.status in statuses)
            and (updated_since is None or report.updated_at >= updated_since)
        )


class InMemoryAuditRepository(AuditRepository):
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)
