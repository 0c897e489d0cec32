"""Shared FastAPI dependencies for the moderation routers."""

from __future__ import annotations

from fastapi import Depends

from beacon.infra.auth import AuthenticatedUser, get_current_user
from beacon.moderation.domain import container
from beacon.moderation.domain.dashboard import DashboardService
from beacon.moderation.domain.dispatcher import ModerationDispatcher
from beacon.moderation.domain.rbac import StaffContext, ensure_admin, resolve_staff_context
from beacon.moderation.domain.reports_service import ReportService


async def get_staff_context(user: AuthenticatedUser = Depends(get_current_user)) -> StaffContext:
    profile = await container.get_user_repository().get(user.id)
    return resolve_staff_context(user, profile)


async def require_admin_context(context: StaffContext = Depends(get_staff_context)) -> StaffContext:
    ensure_admin(context)
    return context


def get_report_service_dep() -> ReportService:
    return container.get_report_service()


def get_dispatcher_dep() -> ModerationDispatcher:
    return container.get_dispatcher()


def get_dashboard_service_dep() -> DashboardService:
    return container.get_dashboard_service()
