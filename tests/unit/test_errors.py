import httpx

from taalmeet.infra.errors import (
	AuthError,
	BackendError,
	LocationPermissionError,
	TransientNetworkError,
	ValidationError,
	from_http_error,
	is_network_error,
	user_friendly_message,
)


def _status_error(code: int) -> httpx.HTTPStatusError:
	request = httpx.Request("GET", "http://backend.test/partners/nearby")
	response = httpx.Response(code, request=request)
	return httpx.HTTPStatusError(f"status {code}", request=request, response=response)


def test_gateway_statuses_are_transient():
	for code in (502, 503, 504):
		assert isinstance(from_http_error(_status_error(code), "fetch_nearby"), TransientNetworkError)
		assert is_network_error(_status_error(code))


def test_auth_and_client_statuses():
	auth = from_http_error(_status_error(401), "fetch_nearby")
	assert isinstance(auth, AuthError)
	assert auth.status_code == 401

	bad = from_http_error(_status_error(422), "fetch_nearby")
	assert isinstance(bad, BackendError)
	assert bad.status_code == 422
	assert not is_network_error(bad)


def test_transport_errors_are_transient():
	exc = httpx.ConnectError("refused")
	assert is_network_error(exc)
	mapped = from_http_error(exc, "update_location")
	assert isinstance(mapped, TransientNetworkError)
	assert mapped.code == "NETWORK_ERROR"


def test_user_friendly_messages():
	assert user_friendly_message(TransientNetworkError("x")).startswith("Unable to load nearby partners")
	assert "discover feed" in user_friendly_message(httpx.ReadTimeout("slow"), context="discover feed")
	assert "Location access" in user_friendly_message(LocationPermissionError("denied"))
	assert user_friendly_message(ValidationError("Invalid latitude.")) == "Invalid latitude."
	assert user_friendly_message(RuntimeError("boom")) == "Something went wrong. Please try again."
