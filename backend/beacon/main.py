"""FastAPI application entrypoint for the Beacon discovery and moderation API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from beacon.api import blocks, discovery, ops
from beacon.api.errors import install_error_handlers
from beacon.infra import postgres
from beacon.infra.redis import redis_client
from beacon.moderation.api import router as moderation_router
from beacon.moderation.domain.container import configure_postgres
from beacon.obs import init as obs_init
from beacon.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.uses_postgres():
		pool = await postgres.init_pool()
		configure_postgres(pool, redis_client)
		logger.info("repositories_configured", extra={"backend": "postgres"})
	else:
		logger.info("repositories_configured", extra={"backend": "memory"})
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="Beacon Discovery & Moderation", lifespan=lifespan)
install_error_handlers(app)

allow_origins = ["http://localhost:8081", "http://localhost:19006"] if settings.is_dev() else []
if allow_origins:
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

obs_init(app)

app.include_router(ops.router, tags=["ops"])
app.include_router(discovery.router, tags=["discovery"])
app.include_router(blocks.router, tags=["blocks"])
app.include_router(moderation_router)
