"""Structured JSON logging with per-request context and privacy redaction."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from beacon.settings import settings

_LOGGER_NAME = "beacon"

# Order here is the order the fields appear in each line
_CONTEXT: Dict[str, ContextVar[Optional[str]]] = {
	name: ContextVar(f"obs_{name}", default=None) for name in ("request_id", "route", "user_id")
}

# Matched against the whole key or its last ``_`` segment: ``center_lat``, ``resolution_note``
_REDACTED_KEYS = frozenset(
	{
		"authorization",
		"email",
		"display_name",
		"latitude",
		"longitude",
		"lat",
		"lon",
		"coords",
		"note",
	}
)

# Moderation decisions are never sampled away
_UNSAMPLED_PREFIXES = ("beacon.moderation",)

_MAX_STRING_LENGTH = 256
_MAX_COLLECTION_ITEMS = 10

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "taskName"}


def bind_context(**fields: Optional[str]) -> Dict[str, Token]:
	"""Bind request fields (``request_id``, ``route``, ``user_id``); returns reset tokens."""
	return {name: _CONTEXT[name].set(value) for name, value in fields.items() if value is not None}


def reset_context(tokens: Dict[str, Token]) -> None:
	for name, token in tokens.items():
		_CONTEXT[name].reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT["request_id"].get()


def _is_redacted(key: str) -> bool:
	lowered = key.lower()
	return lowered in _REDACTED_KEYS or lowered.rsplit("_", 1)[-1] in _REDACTED_KEYS


def _clip(value: Any) -> Any:
	if isinstance(value, str):
		return value if len(value) <= _MAX_STRING_LENGTH else f"{value[:_MAX_STRING_LENGTH]}…"
	if isinstance(value, dict):
		clipped = {str(key): _field(str(key), nested) for key, nested in list(value.items())[:_MAX_COLLECTION_ITEMS]}
		if len(value) > _MAX_COLLECTION_ITEMS:
			clipped["…"] = f"+{len(value) - _MAX_COLLECTION_ITEMS} keys"
		return clipped
	if isinstance(value, (list, tuple, set, frozenset)):
		items = [_clip(item) for item in list(value)[:_MAX_COLLECTION_ITEMS]]
		if len(value) > _MAX_COLLECTION_ITEMS:
			items.append("…")
		return items
	return value


def _field(key: str, value: Any) -> Any:
	return "[redacted]" if _is_redacted(key) else _clip(value)


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: service identity, request context, then ``extra`` fields."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, object] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		for name, var in _CONTEXT.items():
			value = var.get()
			if value:
				payload[name] = value
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key not in _RECORD_ATTRS and key not in payload:
				payload[key] = _field(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Sample info lines from feed and HTTP traffic at ``LOG_SAMPLING_RATE_INFO``."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or record.name.startswith(_UNSAMPLED_PREFIXES):
			return True
		rate = max(0.0, min(1.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
