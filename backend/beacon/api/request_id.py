"""Request ID helper for endpoints.

Relies on observability middleware binding the request id into the logging
context and onto ``request.state``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from beacon.obs import logging as obs_logging


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
    """Return the current request id if bound, else a default."""
    if request is not None:
        rid = getattr(request.state, "request_id", None)
        if rid:
            return str(rid)
        header = request.headers.get("X-Request-Id")
        if header:
            return header
    return obs_logging.current_request_id() or default
