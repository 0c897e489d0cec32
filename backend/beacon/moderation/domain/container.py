"""Lightweight service container shared by discovery and moderation modules."""

from __future__ import annotations

from typing import Optional

import asyncpg
from redis.asyncio import Redis

from beacon.domain.identity.blocks import BlockService
from beacon.domain.identity.repository import (
    BlockRepository,
    InMemoryBlockRepository,
    InMemoryUserRepository,
    UserRepository,
)
from beacon.infra.redis import RedisProxy, redis_client
from beacon.moderation.domain.dashboard import DashboardService
from beacon.moderation.domain.dispatcher import ModerationDispatcher
from beacon.moderation.domain.reports_service import ReportService
from beacon.moderation.domain.repository import (
    AuditRepository,
    InMemoryAuditRepository,
    InMemoryReportRepository,
    ReportRepository,
)
from beacon.moderation.infra.postgres_repo import (
    PostgresAuditRepository,
    PostgresBlockRepository,
    PostgresReportRepository,
    PostgresUserRepository,
)
from beacon.settings import settings

_user_repository: UserRepository = InMemoryUserRepository()
_block_repository: BlockRepository = InMemoryBlockRepository()
_report_repository: ReportRepository = InMemoryReportRepository()
_audit_repository: AuditRepository = InMemoryAuditRepository()
_redis_proxy: RedisProxy = redis_client


def _build_report_service() -> ReportService:
    return ReportService(
        users=_user_repository,
        reports=_report_repository,
        audit=_audit_repository,
        redis=_redis_proxy,
        report_stream=settings.report_stream,
        context_note_max_length=settings.context_note_max_length,
    )


_block_service = BlockService(_user_repository, _block_repository)
_report_service = _build_report_service()
_dispatcher = ModerationDispatcher(users=_user_repository, reports=_report_repository, audit=_audit_repository)
_dashboard_service = DashboardService(users=_user_repository, reports=_report_repository)


def configure(
    *,
    user_repository: Optional[UserRepository] = None,
    block_repository: Optional[BlockRepository] = None,
    report_repository: Optional[ReportRepository] = None,
    audit_repository: Optional[AuditRepository] = None,
    redis_proxy: Optional[RedisProxy] = None,
) -> None:
    global _user_repository, _block_repository, _report_repository, _audit_repository, _redis_proxy
    global _block_service, _report_service, _dispatcher, _dashboard_service
    if user_repository is not None:
        _user_repository = user_repository
    if block_repository is not None:
        _block_repository = block_repository
    if report_repository is not None:
        _report_repository = report_repository
    if audit_repository is not None:
        _audit_repository = audit_repository
    _redis_proxy = redis_proxy or _redis_proxy
    _block_service = BlockService(_user_repository, _block_repository)
    _report_service = _build_report_service()
    _dispatcher = ModerationDispatcher(users=_user_repository, reports=_report_repository, audit=_audit_repository)
    _dashboard_service = DashboardService(users=_user_repository, reports=_report_repository)


def configure_memory() -> None:
    """Swap in fresh in-memory repositories (tests, local development)."""
    configure(
        user_repository=InMemoryUserRepository(),
        block_repository=InMemoryBlockRepository(),
        report_repository=InMemoryReportRepository(),
        audit_repository=InMemoryAuditRepository(),
    )


def configure_postgres(pool: asyncpg.Pool, redis_conn: Redis | RedisProxy) -> None:
    proxy = redis_conn if isinstance(redis_conn, RedisProxy) else RedisProxy(redis_conn)
    lock_timeout_ms = settings.pg_lock_timeout_ms
    configure(
        user_repository=PostgresUserRepository(pool, lock_timeout_ms=lock_timeout_ms),
        block_repository=PostgresBlockRepository(pool),
        report_repository=PostgresReportRepository(pool, lock_timeout_ms=lock_timeout_ms),
        audit_repository=PostgresAuditRepository(pool),
        redis_proxy=proxy,
    )


def get_user_repository() -> UserRepository:
    return _user_repository


def get_block_repository() -> BlockRepository:
    return _block_repository


def get_report_repository() -> ReportRepository:
    return _report_repository


def get_audit_repository() -> AuditRepository:
    return _audit_repository


def get_block_service() -> BlockService:
    return _block_service


def get_report_service() -> ReportService:
    return _report_service


def get_dispatcher() -> ModerationDispatcher:
    return _dispatcher


def get_dashboard_service() -> DashboardService:
    return _dashboard_service
