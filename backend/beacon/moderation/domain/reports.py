"""Report records and their status lifecycle."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from beacon.moderation.domain.errors import ValidationError


class ReportStatus(str, Enum):
    NEEDS_REVIEW = "NEEDS_REVIEW"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED_ACTION = "RESOLVED_ACTION"
    RESOLVED_NO_ACTION = "RESOLVED_NO_ACTION"

    @property
    def is_resolved(self) -> bool:
        return self in (ReportStatus.RESOLVED_ACTION, ReportStatus.RESOLVED_NO_ACTION)


OPEN_STATUSES = (ReportStatus.NEEDS_REVIEW, ReportStatus.UNDER_REVIEW)
RESOLVED_STATUSES = (ReportStatus.RESOLVED_ACTION, ReportStatus.RESOLVED_NO_ACTION)


@dataclass(slots=True)
class ReportDraft:
    """Validated input for a new report; the repository assigns id and timestamps."""

    reporter_id: int
    reported_id: int
    reason: str
    severity: int
    context_note: Optional[str] = None


@dataclass(slots=True)
class Report:
    id: int
    reporter_id: int
    reported_id: int
    reason: str
    severity: int
    status: ReportStatus
    created_at: datetime
    updated_at: datetime
    context_note: Optional[str] = None
    resolution_note: Optional[str] = None
    last_moderator_id: Optional[int] = None
    version: int = 0


def parse_status(raw: Any) -> ReportStatus:
    """Accept a ReportStatus or its name in any case; reject everything else."""

    if isinstance(raw, ReportStatus):
        return raw
    if isinstance(raw, str):
        candidate = raw.strip().upper()
        try:
            return ReportStatus(candidate)
        except ValueError:
            pass
    raise ValidationError("invalid_status")


def parse_status_filter(raw: Any) -> Optional[tuple[ReportStatus, ...]]:
    """Lenient parser for list filters: comma strings or sequences, unknown values dropped."""

    if not raw:
        return None
    values: Iterable[Any] = raw.split(",") if isinstance(raw, str) else raw
    parsed: list[ReportStatus] = []
    for value in values:
        try:
            status = parse_status(value)
        except ValidationError:
            continue
        if status not in parsed:
            parsed.append(status)
    return tuple(parsed) or None


def _clean_note(note: str) -> Optional[str]:
    trimmed = note.strip()
    return trimmed or None


def transition(
    report: Report,
    status: Any,
    *,
    moderator_id: Optional[int],
    resolution_note: Optional[str] = None,
    now: datetime,
) -> Report:
    """Move a report to ``status``.

    Any status may follow any other, including reopening resolved reports.
    A ``None`` note keeps the current one; a string replaces it and a blank string clears it.
    """

    target = parse_status(status)
    note = report.resolution_note if resolution_note is None else _clean_note(resolution_note)
    return dataclasses.replace(
        report,
        status=target,
        resolution_note=note,
        last_moderator_id=moderator_id,
        updated_at=now,
        version=report.version + 1,
    )
