"""Admin-only moderation actions: report status, trust adjustments, bans."""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from beacon.domain.identity.models import BanState, UserProfile
from beacon.domain.identity.repository import UserRepository
from beacon.moderation.domain.errors import ValidationError
from beacon.moderation.domain.rbac import StaffContext, ensure_admin
from beacon.moderation.domain.reports import Report, parse_status, transition
from beacon.moderation.domain.repository import AuditEntry, AuditRepository, ReportRepository
from beacon.moderation.domain.trust import TrustAdjustment, resolve_manual_score
from beacon.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _finite_or_none(value: Any, field: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"invalid_{field}")
    try:
        numeric = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError(f"invalid_{field}") from exc
    if not math.isfinite(numeric):
        raise ValidationError(f"invalid_{field}")
    return numeric


def _clean_reason(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    trimmed = reason.strip()
    return trimmed or None


@dataclass
class ModerationDispatcher:
    """Single entry point for admin actions.

    Every call checks the caller first, then routes the write through the owning
    repository's serialized ``mutate`` and records an audit entry.
    """

    users: UserRepository
    reports: ReportRepository
    audit: AuditRepository

    async def update_report_status(
        self,
        report_id: int,
        status: Any,
        *,
        actor: StaffContext,
        resolution_note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Report:
        ensure_admin(actor)
        target = parse_status(status)
        now = now or datetime.now(timezone.utc)
        previous: dict[str, Any] = {}

        def _apply(report: Report) -> Report:
            previous["status"] = report.status
            return transition(
                report,
                target,
                moderator_id=actor.actor_id,
                resolution_note=resolution_note,
                now=now,
            )

        updated = await self.reports.mutate(report_id, _apply)
        await self._audit(
            actor,
            "report.status",
            "report",
            report_id,
            {"from": previous["status"].value, "to": updated.status.value},
            now,
        )
        obs_metrics.inc_transition(updated.status.value)
        obs_metrics.inc_mod_action("report_status")
        logger.info(
            "report_status_updated",
            extra={"report_id": report_id, "from": previous["status"].value, "to": updated.status.value},
        )
        return updated

    async def adjust_trust(
        self,
        user_id: int,
        *,
        actor: StaffContext,
        delta: Any = None,
        set_to: Any = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Apply a manual trust change and return the new score.

        ``set_to`` wins when both are given. The result is rounded and clamped to
        [0, 100]. Linked reports are left alone.
        """
        ensure_admin(actor)
        delta_value = _finite_or_none(delta, "delta")
        set_value = _finite_or_none(set_to, "set_to")
        if delta_value is None and set_value is None:
            raise ValidationError("trust_adjustment_required")
        now = now or datetime.now(timezone.utc)
        previous: dict[str, int] = {}

        def _apply(profile: UserProfile) -> UserProfile:
            previous["score"] = profile.trust_score
            next_score = resolve_manual_score(profile.trust_score, delta=delta_value, set_to=set_value)
            if next_score == profile.trust_score:
                return profile
            return dataclasses.replace(profile, trust_score=next_score)

        updated = await self.users.mutate(user_id, _apply)
        adjustment = TrustAdjustment(
            user_id=user_id,
            previous=previous["score"],
            next=updated.trust_score,
            source="manual",
            actor_id=actor.actor_id,
            created_at=now,
        )
        if adjustment.delta:
            await self._audit(
                actor,
                "trust.adjust",
                "user",
                user_id,
                {"previous": adjustment.previous, "next": adjustment.next, "delta": adjustment.delta},
                now,
            )
            obs_metrics.inc_mod_action("trust_adjust")
        else:
            obs_metrics.inc_mod_action("trust_adjust", outcome="noop")
        return updated.trust_score

    async def ban_user(
        self,
        user_id: int,
        *,
        actor: StaffContext,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BanState:
        """Ban a user. Re-banning keeps the original ``banned_at``."""
        ensure_admin(actor)
        clean = _clean_reason(reason)
        now = now or datetime.now(timezone.utc)
        changed: dict[str, bool] = {"value": False}

        def _apply(profile: UserProfile) -> UserProfile:
            if profile.banned:
                if clean is None or clean == profile.ban_reason:
                    return profile
                changed["value"] = True
                return dataclasses.replace(profile, ban_reason=clean)
            changed["value"] = True
            return dataclasses.replace(
                profile,
                banned=True,
                banned_at=now,
                ban_reason=clean,
                banned_by=actor.actor_id,
            )

        updated = await self.users.mutate(user_id, _apply)
        if changed["value"]:
            await self._audit(actor, "user.ban", "user", user_id, {"reason": updated.ban_reason or ""}, now)
            obs_metrics.inc_mod_action("ban")
            logger.info("user_banned", extra={"target_user_id": user_id})
        else:
            obs_metrics.inc_mod_action("ban", outcome="noop")
        return BanState.from_profile(updated)

    async def unban_user(
        self,
        user_id: int,
        *,
        actor: StaffContext,
        now: Optional[datetime] = None,
    ) -> BanState:
        ensure_admin(actor)
        now = now or datetime.now(timezone.utc)
        changed: dict[str, bool] = {"value": False}

        def _apply(profile: UserProfile) -> UserProfile:
            if not profile.banned:
                return profile
            changed["value"] = True
            return dataclasses.replace(profile, banned=False, banned_at=None, ban_reason=None, banned_by=None)

        updated = await self.users.mutate(user_id, _apply)
        if changed["value"]:
            await self._audit(actor, "user.unban", "user", user_id, {}, now)
            obs_metrics.inc_mod_action("unban")
            logger.info("user_unbanned", extra={"target_user_id": user_id})
        else:
            obs_metrics.inc_mod_action("unban", outcome="noop")
        return BanState.from_profile(updated)

    async def _audit(
        self,
        actor: StaffContext,
        action: str,
        target_type: str,
        target_id: int,
        meta: Mapping[str, Any],
        now: datetime,
    ) -> None:
        await self.audit.record(
            AuditEntry(
                actor_id=actor.actor_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                created_at=now,
                meta=dict(meta),
            )
        )
