"""Error taxonomy shared by the service calls, the request cache and the views.

Every failure that leaves a service call is one of these, so callers can tell
a retryable network blip from a hard backend error or a bad input.
"""

from __future__ import annotations

import httpx

_RETRYABLE_STATUS = frozenset({502, 503, 504})


class AppError(Exception):
	"""Base application error carrying a machine code and an HTTP-ish status."""

	code = "APP_ERROR"
	status_code = 500

	def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None) -> None:
		super().__init__(message)
		self.message = message
		if code is not None:
			self.code = code
		if status_code is not None:
			self.status_code = status_code


class TransientNetworkError(AppError):
	"""Timeouts, dropped connections and gateway errors. Safe to retry."""

	code = "NETWORK_ERROR"
	status_code = 503


class BackendError(AppError):
	"""The backend answered with a status that retrying will not fix."""

	code = "BACKEND_ERROR"
	status_code = 502


class ValidationError(AppError):
	code = "VALIDATION_ERROR"
	status_code = 400


class AuthError(AppError):
	code = "AUTH_ERROR"
	status_code = 401


class LocationPermissionError(AppError):
	"""The device refused access to its position."""

	code = "LOCATION_PERMISSION_DENIED"
	status_code = 403


class LocationUnavailableError(AppError):
	"""No fix could be obtained (no signal, timeout on the device)."""

	code = "LOCATION_UNAVAILABLE"
	status_code = 503


def is_network_error(exc: BaseException) -> bool:
	if isinstance(exc, TransientNetworkError):
		return True
	if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
		return True
	if isinstance(exc, httpx.HTTPStatusError):
		return exc.response.status_code in _RETRYABLE_STATUS
	return False


def from_http_error(exc: httpx.HTTPError, operation: str) -> AppError:
	"""Translate an httpx failure into the taxonomy above."""
	if isinstance(exc, httpx.HTTPStatusError):
		status = exc.response.status_code
		if status in _RETRYABLE_STATUS:
			return TransientNetworkError(f"{operation}: backend unavailable ({status})")
		if status in (401, 403):
			return AuthError(f"{operation}: not authorised ({status})", status_code=status)
		return BackendError(f"{operation}: backend returned {status}", status_code=status)
	return TransientNetworkError(f"{operation}: {exc.__class__.__name__}")


def user_friendly_message(exc: BaseException, *, context: str = "nearby partners") -> str:
	if is_network_error(exc):
		return f"Unable to load {context}. Check your connection and try again."
	if isinstance(exc, LocationPermissionError):
		return "Location access is turned off. Showing partners around a default location."
	if isinstance(exc, AuthError):
		return "Your session has expired. Please sign in again."
	if isinstance(exc, ValidationError):
		return exc.message
	return "Something went wrong. Please try again."
