"""Moderation API routers."""

from fastapi import APIRouter

from . import admin, reports

router = APIRouter()
router.include_router(reports.router)
router.include_router(admin.router)

__all__ = ["router"]
