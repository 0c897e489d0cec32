"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from beacon.api.request_id import get_request_id
from beacon.infra.rate_limit import RateLimitExceeded
from beacon.moderation.domain.errors import ModerationError

logger = logging.getLogger(__name__)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.detail, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": "validation_error", "errors": jsonable_encoder(exc.errors()), "request_id": rid}
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(ModerationError)
    async def moderation_exc_handler(request: Request, exc: ModerationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.code, "request_id": rid}
        if exc.retryable:
            payload["retryable"] = True
        logger.info("request_rejected", extra={"code": exc.code, "status": exc.status_code})
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exc_handler(request: Request, exc: RateLimitExceeded):  # type: ignore[override]
        rid = get_request_id(request)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.code, "request_id": rid})
