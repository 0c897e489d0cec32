"""PostgreSQL-backed repositories for users, blocks, reports and the audit trail."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

import asyncpg

from beacon.domain.identity.models import Coordinates, UserProfile
from beacon.domain.identity.repository import BlockRepository, ProfileMutator, UserRepository
from beacon.moderation.domain.errors import ConflictError, NotFoundError
from beacon.moderation.domain.reports import Report, ReportDraft, ReportStatus
from beacon.moderation.domain.repository import (
    AuditEntry,
    AuditRepository,
    ReportMutator,
    ReportRepository,
    SortOrder,
)
from beacon.obs import metrics as obs_metrics

_USER_COLUMNS = """
    id, email, display_name, interest_tags, lat, lon, trust_score, visible,
    banned, banned_at, ban_reason, banned_by, is_admin, version, created_at
"""

_REPORT_COLUMNS = """
    id, reporter_id, reported_id, reason, severity, status, context_note,
    resolution_note, last_moderator_id, version, created_at, updated_at
"""


def _user_from_record(record: Mapping[str, Any]) -> UserProfile:
    coords = None
    if record["lat"] is not None and record["lon"] is not None:
        coords = Coordinates(latitude=float(record["lat"]), longitude=float(record["lon"]))
    return UserProfile(
        id=int(record["id"]),
        email=record["email"],
        display_name=record["display_name"],
        interest_tags=tuple(record["interest_tags"] or ()),
        coords=coords,
        trust_score=int(record["trust_score"]),
        visible=bool(record["visible"]),
        banned=bool(record["banned"]),
        banned_at=record["banned_at"],
        ban_reason=record["ban_reason"],
        banned_by=record["banned_by"],
        is_admin=bool(record["is_admin"]),
        version=int(record["version"]),
        created_at=record["created_at"],
    )


def _report_from_record(record: Mapping[str, Any]) -> Report:
    return Report(
        id=int(record["id"]),
        reporter_id=int(record["reporter_id"]),
        reported_id=int(record["reported_id"]),
        reason=record["reason"],
        severity=int(record["severity"]),
        status=ReportStatus(record["status"]),
        created_at=record["created_at"],
        updated_at=record["updated_at"],
        context_note=record["context_note"],
        resolution_note=record["resolution_note"],
        last_moderator_id=record["last_moderator_id"],
        version=int(record["version"]),
    )


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _status_values(statuses: Optional[Sequence[ReportStatus]]) -> Optional[list[str]]:
    if not statuses:
        return None
    return [ReportStatus(status).value for status in statuses]


async def _set_lock_timeout(conn: asyncpg.Connection, lock_timeout_ms: int) -> None:
    # Scoped to the current transaction
    await conn.execute("SELECT set_config('lock_timeout', $1, true)", f"{int(lock_timeout_ms)}ms")


async def _lock_user(conn: asyncpg.Connection, user_id: int) -> UserProfile:
    record = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1 FOR UPDATE", user_id)
    if record is None:
        raise NotFoundError("user_not_found")
    return _user_from_record(record)


async def _write_user(conn: asyncpg.Connection, current: UserProfile, updated: UserProfile) -> UserProfile:
    result = await conn.fetchrow(
        f"""
        UPDATE users
        SET trust_score = $3,
            visible = $4,
            banned = $5,
            banned_at = $6,
            ban_reason = $7,
            banned_by = $8,
            interest_tags = $9::text[],
            version = version + 1
        WHERE id = $1 AND version = $2
        RETURNING {_USER_COLUMNS}
        """,
        current.id,
        current.version,
        updated.trust_score,
        updated.visible,
        updated.banned,
        updated.banned_at,
        updated.ban_reason,
        updated.banned_by,
        list(updated.interest_tags),
    )
    if result is None:
        obs_metrics.inc_conflict("user")
        raise ConflictError("user_version_conflict")
    return _user_from_record(result)


class PostgresUserRepository(UserRepository):
    """Row-locked read-modify-write with a version check on every mutation."""

    def __init__(self, pool: asyncpg.Pool, *, lock_timeout_ms: int = 2000) -> None:
        self.pool = pool
        self.lock_timeout_ms = lock_timeout_ms

    async def get(self, user_id: int) -> UserProfile | None:
        record = await self.pool.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
        return _user_from_record(record) if record else None

    async def add(self, profile: UserProfile) -> UserProfile:
        coords = profile.coords
        record = await self.pool.fetchrow(
            f"""
            INSERT INTO users (id, email, display_name, interest_tags, lat, lon, trust_score, visible, is_admin)
            VALUES ($1, $2, $3, $4::text[], $5, $6, $7, $8, $9)
            RETURNING {_USER_COLUMNS}
            """,
            profile.id,
            profile.email,
            profile.display_name,
            list(profile.interest_tags),
            coords.latitude if coords else None,
            coords.longitude if coords else None,
            profile.trust_score,
            profile.visible,
            profile.is_admin,
        )
        if record is None:
            raise ConflictError("user_insert_failed")
        return _user_from_record(record)

    async def mutate(self, user_id: int, mutator: ProfileMutator) -> UserProfile:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await _set_lock_timeout(conn, self.lock_timeout_ms)
                    current = await _lock_user(conn, user_id)
                    updated = mutator(current)
                    if updated is current:
                        return current
                    return await _write_user(conn, current, updated)
        except asyncpg.exceptions.LockNotAvailableError as exc:
            obs_metrics.inc_conflict("user")
            raise ConflictError("user_locked") from exc

    async def list_discoverable(self) -> Sequence[UserProfile]:
        records = await self.pool.fetch(
            f"SELECT {_USER_COLUMNS} FROM users WHERE visible AND NOT banned ORDER BY id ASC"
        )
        return [_user_from_record(record) for record in records]

    async def list_banned(self, *, limit: int, offset: int, query: str = "") -> tuple[Sequence[UserProfile], int]:
        pattern = _like_pattern(query) if query else None
        where = "banned AND ($1::text IS NULL OR email ILIKE $1 OR display_name ILIKE $1)"
        records = await self.pool.fetch(
            f"""
            SELECT {_USER_COLUMNS}
            FROM users
            WHERE {where}
            ORDER BY banned_at DESC NULLS LAST, id ASC
            LIMIT $2 OFFSET $3
            """,
            pattern,
            limit,
            offset,
        )
        total = await self.pool.fetchval(f"SELECT COUNT(*) FROM users WHERE {where}", pattern)
        return [_user_from_record(record) for record in records], int(total or 0)

    async def count(self, *, banned: Optional[bool] = None, banned_since: Optional[datetime] = None) -> int:
        value = await self.pool.fetchval(
            """
            SELECT COUNT(*) FROM users
            WHERE ($1::boolean IS NULL OR banned = $1)
              AND ($2::timestamptz IS NULL OR banned_at >= $2)
            """,
            banned,
            banned_since,
        )
        return int(value or 0)

    async def average_trust(self) -> float | None:
        value = await self.pool.fetchval("SELECT AVG(trust_score)::float8 FROM users")
        return float(value) if value is not None else None


class PostgresBlockRepository(BlockRepository):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def add(self, blocker_id: int, blocked_id: int) -> bool:
        record = await self.pool.fetchrow(
            """
            INSERT INTO user_blocks (blocker_id, blocked_id)
            VALUES ($1, $2)
            ON CONFLICT (blocker_id, blocked_id) DO NOTHING
            RETURNING blocker_id
            """,
            blocker_id,
            blocked_id,
        )
        return record is not None

    async def remove(self, blocker_id: int, blocked_id: int) -> bool:
        record = await self.pool.fetchrow(
            "DELETE FROM user_blocks WHERE blocker_id = $1 AND blocked_id = $2 RETURNING blocker_id",
            blocker_id,
            blocked_id,
        )
        return record is not None

    async def related_ids(self, user_id: int) -> set[int]:
        records = await self.pool.fetch(
            """
            SELECT blocked_id AS other_id FROM user_blocks WHERE blocker_id = $1
            UNION
            SELECT blocker_id AS other_id FROM user_blocks WHERE blocked_id = $1
            """,
            user_id,
        )
        return {int(record["other_id"]) for record in records}


class PostgresReportRepository(ReportRepository):
    def __init__(self, pool: asyncpg.Pool, *, lock_timeout_ms: int = 2000) -> None:
        self.pool = pool
        self.lock_timeout_ms = lock_timeout_ms

    async def create_with_user_update(
        self,
        draft: ReportDraft,
        mutator: ProfileMutator,
        *,
        now: datetime,
        users: UserRepository,
    ) -> tuple[Report, UserProfile]:
        # Both rows go through this connection so a failed deduction rolls back the insert
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await _set_lock_timeout(conn, self.lock_timeout_ms)
                    current = await _lock_user(conn, draft.reported_id)
                    updated = mutator(current)
                    profile = current if updated is current else await _write_user(conn, current, updated)
                    report = await self._insert(conn, draft, now)
                    return report, profile
        except asyncpg.exceptions.LockNotAvailableError as exc:
            obs_metrics.inc_conflict("user")
            raise ConflictError("user_locked") from exc

    async def _insert(self, conn: asyncpg.Connection, draft: ReportDraft, now: datetime) -> Report:
        record = await conn.fetchrow(
            f"""
            INSERT INTO reports (reporter_id, reported_id, reason, severity, status, context_note, created_at, updated_at)
            VALUES ($1, $2, $3, $4, 'NEEDS_REVIEW', $5, $6, $6)
            RETURNING {_REPORT_COLUMNS}
            """,
            draft.reporter_id,
            draft.reported_id,
            draft.reason,
            draft.severity,
            draft.context_note,
            now,
        )
        if record is None:
            raise ConflictError("report_insert_failed")
        return _report_from_record(record)

    async def get(self, report_id: int) -> Report | None:
        record = await self.pool.fetchrow(f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = $1", report_id)
        return _report_from_record(record) if record else None

    async def mutate(self, report_id: int, mutator: ReportMutator) -> Report:
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await _set_lock_timeout(conn, self.lock_timeout_ms)
                    record = await conn.fetchrow(
                        f"SELECT {_REPORT_COLUMNS} FROM reports WHERE id = $1 FOR UPDATE",
                        report_id,
                    )
                    if record is None:
                        raise NotFoundError("report_not_found")
                    current = _report_from_record(record)
                    updated = mutator(current)
                    result = await conn.fetchrow(
                        f"""
                        UPDATE reports
                        SET status = $3::report_status,
                            resolution_note = $4,
                            last_moderator_id = $5,
                            updated_at = $6,
                            version = version + 1
                        WHERE id = $1 AND version = $2
                        RETURNING {_REPORT_COLUMNS}
                        """,
                        report_id,
                        current.version,
                        updated.status.value,
                        updated.resolution_note,
                        updated.last_moderator_id,
                        updated.updated_at,
                    )
                    if result is None:
                        obs_metrics.inc_conflict("report")
                        raise ConflictError("report_version_conflict")
                    return _report_from_record(result)
        except asyncpg.exceptions.LockNotAvailableError as exc:
            obs_metrics.inc_conflict("report")
            raise ConflictError("report_locked") from exc

    async def list(
        self,
        *,
        statuses: Optional[Sequence[ReportStatus]] = None,
        order: SortOrder = "desc",
        reporter_id: Optional[int] = None,
        reported_id: Optional[int] = None,
    ) -> Sequence[Report]:
        direction = "ASC" if order == "asc" else "DESC"
        records = await self.pool.fetch(
            f"""
            SELECT {_REPORT_COLUMNS}
            FROM reports
            WHERE ($1::text[] IS NULL OR status::text = ANY($1::text[]))
              AND ($2::bigint IS NULL OR reporter_id = $2)
              AND ($3::bigint IS NULL OR reported_id = $3)
            ORDER BY created_at {direction}, id {direction}
            """,
            _status_values(statuses),
            reporter_id,
            reported_id,
        )
        return [_report_from_record(record) for record in records]

    async def count(
        self,
        *,
        statuses: Optional[Sequence[ReportStatus]] = None,
        updated_since: Optional[datetime] = None,
    ) -> int:
        value = await self.pool.fetchval(
            """
            SELECT COUNT(*) FROM reports
            WHERE ($1::text[] IS NULL OR status::text = ANY($1::text[]))
              AND ($2::timestamptz IS NULL OR updated_at >= $2)
            """,
            _status_values(statuses),
            updated_since,
        )
        return int(value or 0)


class PostgresAuditRepository(AuditRepository):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def record(self, entry: AuditEntry) -> None:
        await self.pool.execute(
            """
            INSERT INTO mod_audit (actor_id, action, target_type, target_id, meta, created_at)
            VALUES ($1, $2, $3, $4, $5::jsonb, $6)
            """,
            entry.actor_id,
            entry.action,
            entry.target_type,
            entry.target_id,
            json.dumps(dict(entry.meta), default=str),
            entry.created_at,
        )

