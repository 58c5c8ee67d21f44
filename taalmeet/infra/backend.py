"""Thin async HTTP client for the remote backend.

All service calls go through :func:`get_json` / :func:`post_json`, which attach the
session's auth headers, translate httpx failures into :mod:`taalmeet.infra.errors`
and count the outcome. Retry policy lives one level up in the request cache.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from taalmeet.infra.auth import Session
from taalmeet.infra.errors import BackendError, from_http_error
from taalmeet.obs import metrics as obs_metrics
from taalmeet.settings import settings

logger = logging.getLogger(__name__)

_http: Optional[httpx.AsyncClient] = None


def get_http() -> httpx.AsyncClient:
	global _http
	if _http is None:
		_http = httpx.AsyncClient(
			base_url=settings.backend_url,
			timeout=settings.backend_timeout_seconds,
			headers={"Accept": "application/json"},
		)
	return _http


def set_http_client(client: Optional[httpx.AsyncClient]) -> None:
	"""Swap the shared client (tests install one backed by ``httpx.MockTransport``)."""
	global _http
	_http = client


async def close() -> None:
	global _http
	if _http is not None:
		await _http.aclose()
		_http = None


async def _send(
	method: str,
	path: str,
	*,
	session: Session,
	operation: str,
	params: Optional[Mapping[str, Any]] = None,
	json: Any = None,
) -> Any:
	http = get_http()
	try:
		response = await http.request(method, path, params=params, json=json, headers=session.auth_headers())
		response.raise_for_status()
	except httpx.HTTPError as exc:
		error = from_http_error(exc, operation)
		obs_metrics.inc_backend_call(operation, error.code.lower())
		logger.warning("backend %s failed: %s", operation, error.message)
		raise error from exc
	obs_metrics.inc_backend_call(operation, "ok")
	if response.status_code == 204 or not response.content:
		return None
	try:
		return response.json()
	except ValueError as exc:
		raise BackendError(f"{operation}: response was not JSON") from exc


async def get_json(
	path: str,
	*,
	session: Session,
	operation: str,
	params: Optional[Mapping[str, Any]] = None,
) -> Any:
	return await _send("GET", path, session=session, operation=operation, params=params)


async def post_json(path: str, *, session: Session, operation: str, json: Any) -> Any:
	return await _send("POST", path, session=session, operation=operation, json=json)
