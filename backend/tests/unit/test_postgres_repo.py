from dataclasses import replace
from datetime import datetime, timezone

import asyncpg
import pytest

from beacon.moderation.domain.errors import ConflictError
from beacon.moderation.domain.reports import ReportDraft, ReportStatus
from beacon.moderation.infra.postgres_repo import PostgresReportRepository, PostgresUserRepository

NOW = datetime(2025, 12, 12, 12, 0, tzinfo=timezone.utc)


def _user_row(trust_score: int = 99, version: int = 1) -> dict:
    return {
        "id": 2,
        "email": "user2@example.edu",
        "display_name": "User 2",
        "interest_tags": ["chess"],
        "lat": 36.885,
        "lon": -76.305,
        "trust_score": trust_score,
        "visible": True,
        "banned": False,
        "banned_at": None,
        "ban_reason": None,
        "banned_by": None,
        "is_admin": False,
        "version": version,
        "created_at": NOW,
    }


_REPORT_ROW = {
    "id": 11,
    "reporter_id": 1,
    "reported_id": 2,
    "reason": "spam",
    "severity": 5,
    "status": "NEEDS_REVIEW",
    "context_note": None,
    "resolution_note": None,
    "last_moderator_id": None,
    "version": 1,
    "created_at": NOW,
    "updated_at": NOW,
}


class _Transaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.events.append("begin")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.conn.events.append("rollback" if exc_type else "commit")
        return False


class _Connection:
    """Records statements in order; rows are canned per statement kind."""

    def __init__(self, *, user_row=None, update_row=None, lock_error=None):
        self.user_row = user_row
        self.update_row = update_row
        self.lock_error = lock_error
        self.events: list[str] = []

    def transaction(self):
        return _Transaction(self)

    async def execute(self, query, *args):
        self.events.append("lock_timeout")

    async def fetchrow(self, query, *args):
        sql = " ".join(query.split())
        if sql.startswith("SELECT") and sql.endswith("FOR UPDATE"):
            self.events.append("lock_user")
            if self.lock_error is not None:
                raise self.lock_error
            return self.user_row
        if sql.startswith("UPDATE users"):
            self.events.append("update_user")
            return self.update_row
        if sql.startswith("INSERT INTO reports"):
            self.events.append("insert_report")
            return _REPORT_ROW
        raise AssertionError(f"unexpected statement: {sql}")


class _Pool:
    def __init__(self, conn):
        self.conn = conn

    def acquire(self):
        return self

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


def _draft() -> ReportDraft:
    return ReportDraft(reporter_id=1, reported_id=2, reason="spam", severity=5)


def _deduct(profile):
    return replace(profile, trust_score=profile.trust_score - 10)


@pytest.mark.asyncio
async def test_report_and_deduction_share_one_transaction():
    conn = _Connection(user_row=_user_row(), update_row=_user_row(trust_score=89, version=2))
    pool = _Pool(conn)
    repo = PostgresReportRepository(pool)

    report, profile = await repo.create_with_user_update(
        _draft(), _deduct, now=NOW, users=PostgresUserRepository(pool)
    )

    assert conn.events == ["begin", "lock_timeout", "lock_user", "update_user", "insert_report", "commit"]
    assert report.id == 11
    assert report.status is ReportStatus.NEEDS_REVIEW
    assert profile.trust_score == 89


@pytest.mark.asyncio
async def test_lost_version_race_rolls_back_before_insert():
    conn = _Connection(user_row=_user_row(), update_row=None)
    pool = _Pool(conn)
    repo = PostgresReportRepository(pool)

    with pytest.raises(ConflictError) as excinfo:
        await repo.create_with_user_update(_draft(), _deduct, now=NOW, users=PostgresUserRepository(pool))

    assert excinfo.value.code == "user_version_conflict"
    assert "insert_report" not in conn.events
    assert conn.events[-1] == "rollback"


@pytest.mark.asyncio
async def test_lock_timeout_maps_to_conflict():
    conn = _Connection(lock_error=asyncpg.exceptions.LockNotAvailableError("canceling statement due to lock timeout"))
    pool = _Pool(conn)
    repo = PostgresReportRepository(pool)

    with pytest.raises(ConflictError) as excinfo:
        await repo.create_with_user_update(_draft(), _deduct, now=NOW, users=PostgresUserRepository(pool))

    assert excinfo.value.code == "user_locked"
    assert conn.events == ["begin", "lock_timeout", "lock_user", "rollback"]
