"""Trust score policy: severity normalisation, report deductions and manual adjustments.

All functions here are total. Bad input falls back to documented defaults so UI and
service code can call them without guarding.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional

from beacon.domain.identity.models import MAX_TRUST_SCORE, MIN_TRUST_SCORE

MIN_SEVERITY = 1
MAX_SEVERITY = 99
DEDUCTION_MULTIPLIER = 2


@dataclass(frozen=True, slots=True)
class TrustDeduction:
    deduction: int
    next_score: int


@dataclass(frozen=True, slots=True)
class TrustAdjustment:
    """A single change to a user's trust score, kept for the audit trail."""

    user_id: int
    previous: int
    next: int
    source: Literal["report", "manual"]
    actor_id: Optional[int]
    created_at: datetime
    report_id: Optional[int] = None

    @property
    def delta(self) -> int:
        return self.next - self.previous


def _to_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str):
        text = value.strip()
        # Blank strings coerce to zero, matching how browsers submit empty fields
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return None
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return None


def normalize_severity(value: Any, fallback: int = MIN_SEVERITY) -> int:
    """Coerce ``value`` to an integer severity in [1, 99], or return ``fallback``."""

    numeric = _to_number(value)
    if numeric is None or not math.isfinite(numeric):
        return fallback
    return min(MAX_SEVERITY, max(MIN_SEVERITY, math.floor(numeric)))


def apply_trust_score_deduction(current_score: Any, severity: Any) -> TrustDeduction:
    """Deduct twice the normalised severity; scores never go below zero.

    A missing or corrupt current score counts as zero.
    """

    numeric = _to_number(current_score)
    safe_current = max(0, math.floor(numeric)) if numeric is not None and math.isfinite(numeric) else 0
    deduction = normalize_severity(severity) * DEDUCTION_MULTIPLIER
    return TrustDeduction(deduction=deduction, next_score=max(0, safe_current - deduction))


def clamp_trust(value: float) -> int:
    """Round half up and clamp into the legal trust range."""

    if math.isnan(value):
        return MIN_TRUST_SCORE
    if math.isinf(value):
        return MAX_TRUST_SCORE if value > 0 else MIN_TRUST_SCORE
    return max(MIN_TRUST_SCORE, min(MAX_TRUST_SCORE, math.floor(value + 0.5)))


def resolve_manual_score(current: Any, *, delta: Optional[float] = None, set_to: Optional[float] = None) -> int:
    """Resulting score for an admin adjustment; ``set_to`` wins over ``delta``."""

    numeric = _to_number(current)
    base = numeric if numeric is not None and math.isfinite(numeric) else 0.0
    if set_to is not None:
        return clamp_trust(float(set_to))
    if delta is not None:
        return clamp_trust(base + float(delta))
    return clamp_trust(base)
