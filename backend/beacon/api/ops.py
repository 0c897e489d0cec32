"""Operations endpoints providing health checks and metrics."""

from __future__ import annotations

import logging

import asyncpg
from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError

from beacon.infra.postgres import get_pool
from beacon.infra.redis import redis_client
from beacon.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ops"])


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return {"status": "ok", "service": settings.service_name}


@router.get("/health/ready")
async def health_ready() -> Response:
	checks: dict[str, str] = {}
	try:
		await redis_client.ping()
		checks["redis"] = "ok"
	except (RedisError, OSError):
		logger.warning("readiness_redis_failed")
		checks["redis"] = "error"
	if settings.uses_postgres():
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				await conn.execute("SELECT 1")
			checks["postgres"] = "ok"
		except (asyncpg.PostgresError, OSError):
			logger.warning("readiness_postgres_failed")
			checks["postgres"] = "error"
	healthy = all(value == "ok" for value in checks.values())
	code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
	return JSONResponse(content={"status": "ok" if healthy else "degraded", "checks": checks}, status_code=code)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	payload = generate_latest()
	return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
