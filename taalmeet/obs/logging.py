"""JSON log lines with per-request context and location redaction.

Request-scoped fields live in one context variable holding a small mapping, so
a request binds them in one step and restores the previous mapping when done.
"""

from __future__ import annotations

import json
import logging
import logging.config
import random
import re
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from taalmeet.settings import settings

_LOGGER_NAME = "taalmeet"
_CONTEXT_KEYS = ("request_id", "route", "user_id")
_context: ContextVar[Mapping[str, str]] = ContextVar("taalmeet_log_context", default={})

# Whole-key match for short coordinate names, substring match for the rest.
_REDACT = re.compile(
	r"^(lat|lng|lon|coords|position)$|token|secret|authorization|api_?key|password|email|latitude|longitude",
	re.IGNORECASE,
)
_REDACTED = "[redacted]"
_MAX_STR = 256
_MAX_ITEMS = 10

# Attributes every LogRecord carries; anything else came in through ``extra``.
_BUILTIN_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}


def bind_context(**fields: Optional[str]) -> Token:
	"""Merge non-empty request fields into the log context; returns a reset token."""
	unknown = set(fields) - set(_CONTEXT_KEYS)
	if unknown:
		raise TypeError(f"unknown log context fields: {sorted(unknown)}")
	merged = dict(_context.get())
	merged.update({key: value for key, value in fields.items() if value})
	return _context.set(merged)


def reset_context(token: Token) -> None:
	_context.reset(token)


def current_request_id(default: str = "unknown") -> str:
	return _context.get().get("request_id") or default


def sanitize_field(key: str, value: Any) -> Any:
	if _REDACT.search(key):
		return _REDACTED
	if isinstance(value, str) and len(value) > _MAX_STR:
		return value[:_MAX_STR] + "…"
	if isinstance(value, Mapping):
		items = list(value.items())
		out = {str(k): sanitize_field(str(k), v) for k, v in items[:_MAX_ITEMS]}
		if len(items) > _MAX_ITEMS:
			out["…"] = f"+{len(items) - _MAX_ITEMS} keys"
		return out
	if isinstance(value, (list, tuple, set, frozenset)):
		seq = [sanitize_field("", item) for item in value]
		return seq[:_MAX_ITEMS] + ["…"] if len(seq) > _MAX_ITEMS else seq
	return value


class JSONLogFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		line: dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
			**_context.get(),
		}
		if record.exc_info:
			line["exc_info"] = self.formatException(record.exc_info)
		for key, value in vars(record).items():
			if key not in _BUILTIN_ATTRS and key not in line:
				line[key] = sanitize_field(key, value)
		return json.dumps(line, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Drop a share of INFO records; other levels always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = settings.obs_log_sampling_rate_info
		return rate >= 1.0 or random.random() < max(rate, 0.0)


def configure_logging() -> logging.Logger:
	logging.config.dictConfig(
		{
			"version": 1,
			"disable_existing_loggers": False,
			"formatters": {"json": {"()": JSONLogFormatter}},
			"filters": {"sample_info": {"()": InfoSamplingFilter}},
			"handlers": {
				"stream": {
					"class": "logging.StreamHandler",
					"formatter": "json",
					"filters": ["sample_info"],
				}
			},
			"root": {"level": settings.obs_log_level, "handlers": ["stream"]},
		}
	)
	return get_logger()


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
