"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taalmeet.infra.errors import AppError, user_friendly_message
from taalmeet.obs import logging as obs_logging
from taalmeet.settings import settings

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
	rid = getattr(request.state, "request_id", None)
	return rid or obs_logging.current_request_id()


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": _request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {"detail": "validation_error", "request_id": _request_id(request)}
		# Production responses omit field-level detail.
		if not settings.is_prod():
			payload["errors"] = jsonable_encoder(exc.errors())
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(AppError)
	async def app_exc_handler(request: Request, exc: AppError):  # type: ignore[override]
		if exc.status_code >= 500:
			logger.warning("request failed: %s (%s)", exc.message, exc.code)
		payload = {
			"detail": exc.code.lower(),
			"message": user_friendly_message(exc),
			"request_id": _request_id(request),
		}
		return JSONResponse(status_code=exc.status_code, content=payload)
