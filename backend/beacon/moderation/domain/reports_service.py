"""Report submission workflow plus read helpers for reports and trust."""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from redis.exceptions import RedisError

from beacon.domain.identity.models import UserProfile
from beacon.domain.identity.repository import UserRepository
from beacon.infra.redis import RedisProxy
from beacon.moderation.domain.errors import NotFoundError, SelfReportError, ValidationError
from beacon.moderation.domain.reports import Report, ReportDraft, ReportStatus
from beacon.moderation.domain.repository import AuditEntry, AuditRepository, ReportRepository, SortOrder
from beacon.moderation.domain.trust import (
    TrustAdjustment,
    TrustDeduction,
    apply_trust_score_deduction,
    normalize_severity,
)
from beacon.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReportSubmission:
    report: Report
    deduction: int
    next_trust_score: int


def _require_user_id(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"invalid_{field}")
    return value


def _clean_context_note(note: Optional[str], max_length: int) -> Optional[str]:
    if note is None:
        return None
    trimmed = note.strip()[:max_length]
    return trimmed or None


@dataclass
class ReportService:
    """Files reports against users and applies the trust deduction they carry.

    The report row is written first, then the deduction runs through the user
    repository's serialized ``mutate`` so concurrent reports against the same user
    each take their full deduction.
    """

    users: UserRepository
    reports: ReportRepository
    audit: AuditRepository
    redis: RedisProxy
    report_stream: str = "mod:reports"
    context_note_max_length: int = 1000

    async def submit_report(
        self,
        reporter_id: Any,
        reported_id: Any,
        reason: Any,
        severity: Any = None,
        context_note: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> ReportSubmission:
        reporter = _require_user_id(reporter_id, "reporter_id")
        reported = _require_user_id(reported_id, "reported_id")
        clean_reason = reason.strip() if isinstance(reason, str) else ""
        if not clean_reason:
            obs_metrics.inc_report_reject("reason_required")
            raise ValidationError("reason_required")
        if reporter == reported:
            obs_metrics.inc_report_reject("self_report")
            raise SelfReportError("cannot_report_self")
        if await self.users.get(reporter) is None:
            obs_metrics.inc_report_reject("reporter_missing")
            raise NotFoundError("reporter_not_found")
        if await self.users.get(reported) is None:
            obs_metrics.inc_report_reject("reported_missing")
            raise NotFoundError("reported_user_not_found")

        now = now or datetime.now(timezone.utc)
        start = time.perf_counter()
        draft = ReportDraft(
            reporter_id=reporter,
            reported_id=reported,
            reason=clean_reason,
            severity=normalize_severity(severity),
            context_note=_clean_context_note(context_note, self.context_note_max_length),
        )
        outcome: dict[str, Any] = {}

        def _deduct(profile: UserProfile) -> UserProfile:
            result = apply_trust_score_deduction(profile.trust_score, draft.severity)
            outcome["previous"] = profile.trust_score
            outcome["result"] = result
            return dataclasses.replace(profile, trust_score=result.next_score)

        # The report row and the deduction commit together or not at all
        report, _ = await self.reports.create_with_user_update(draft, _deduct, now=now, users=self.users)
        result: TrustDeduction = outcome["result"]
        adjustment = TrustAdjustment(
            user_id=reported,
            previous=outcome["previous"],
            next=result.next_score,
            source="report",
            actor_id=reporter,
            created_at=now,
            report_id=report.id,
        )

        await self._audit(
            reporter,
            "report.create",
            "report",
            report.id,
            {"reported_id": reported, "reason": clean_reason, "severity": draft.severity},
            now,
        )
        await self._audit(
            reporter,
            "trust.deduct",
            "user",
            reported,
            {
                "report_id": report.id,
                "previous": adjustment.previous,
                "next": adjustment.next,
                "delta": adjustment.delta,
            },
            now,
        )
        await self._publish(report)
        obs_metrics.inc_report_submitted(result.deduction)
        logger.info(
            "report_submitted",
            extra={
                "report_id": report.id,
                "reported_id": reported,
                "severity": draft.severity,
                "deduction": result.deduction,
                "next_trust_score": result.next_score,
                "elapsed_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return ReportSubmission(report=report, deduction=result.deduction, next_trust_score=result.next_score)

    async def get_report(self, report_id: int) -> Report:
        report = await self.reports.get(report_id)
        if report is None:
            raise NotFoundError("report_not_found")
        return report

    async def list_reports(
        self,
        *,
        statuses: Optional[Sequence[ReportStatus]] = None,
        order: SortOrder = "desc",
        reporter_id: Optional[int] = None,
        reported_id: Optional[int] = None,
    ) -> Sequence[Report]:
        if order not in ("asc", "desc"):
            raise ValidationError("invalid_order")
        return await self.reports.list(
            statuses=statuses,
            order=order,
            reporter_id=reporter_id,
            reported_id=reported_id,
        )

    async def get_trust_score(self, user_id: int) -> int:
        profile = await self.users.get(user_id)
        if profile is None:
            raise NotFoundError("user_not_found")
        return profile.trust_score

    async def _publish(self, report: Report) -> None:
        try:
            await self.redis.xadd(
                self.report_stream,
                {
                    "report_id": report.id,
                    "reporter_id": report.reporter_id,
                    "reported_id": report.reported_id,
                    "severity": report.severity,
                    "status": report.status.value,
                },
            )
        except RedisError:
            # The report and deduction are already committed; the stream is advisory
            logger.exception("report_stream_publish_failed", extra={"report_id": report.id})

    async def _audit(
        self,
        actor_id: Optional[int],
        action: str,
        target_type: str,
        target_id: int,
        meta: Mapping[str, Any],
        now: datetime,
    ) -> None:
        await self.audit.record(
            AuditEntry(
                actor_id=actor_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                created_at=now,
                meta=dict(meta),
            )
        )
