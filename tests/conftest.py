from __future__ import annotations

from typing import Any

import httpx
import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from taalmeet.infra import backend
from taalmeet.infra.auth import Session
from taalmeet.main import app
from taalmeet.settings import settings

BACKEND_BASE_URL = "http://backend.test"


class FakeBackend:
	"""Scripted stand-in for the remote backend behind ``httpx.MockTransport``.

	Each route holds a queue of outcomes consumed one per request; the last one
	repeats. An outcome is a JSON body (200), a bare status code, or an httpx
	transport error class to raise.
	"""

	def __init__(self) -> None:
		self._routes: dict[tuple[str, str], list[Any]] = {}
		self.requests: list[httpx.Request] = []

	def queue(self, method: str, path: str, *outcomes: Any) -> None:
		self._routes.setdefault((method.upper(), path), []).extend(outcomes)

	def calls(self, method: str, path: str) -> list[httpx.Request]:
		return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

	def handler(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		outcomes = self._routes.get((request.method, request.url.path))
		if not outcomes:
			return httpx.Response(404, json={"detail": "not_found"})
		outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
		if isinstance(outcome, type) and issubclass(outcome, httpx.TransportError):
			raise outcome("simulated failure", request=request)
		if isinstance(outcome, int):
			return httpx.Response(outcome)
		return httpx.Response(200, json=outcome)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from taalmeet.infra.redis import redis_client, set_redis_client

	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Dev mode so X-User-Id alone authenticates; no real backoff sleeps."""
	original_env = settings.environment
	original_delay = settings.retry_base_delay_seconds
	settings.environment = "dev"
	settings.retry_base_delay_seconds = 0.0
	try:
		yield
	finally:
		settings.environment = original_env
		settings.retry_base_delay_seconds = original_delay


@pytest_asyncio.fixture
async def fake_backend():
	fake = FakeBackend()
	client = httpx.AsyncClient(base_url=BACKEND_BASE_URL, transport=httpx.MockTransport(fake.handler))
	backend.set_http_client(client)
	try:
		yield fake
	finally:
		backend.set_http_client(None)
		await client.aclose()


@pytest.fixture
def session() -> Session:
	return Session(user_id="u1", access_token="token-u1")


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
