import asyncio
import json

import pytest

from taalmeet.domain.location.reporter import FixedLocator, LocationReporter
from taalmeet.domain.location.service import update_my_location
from taalmeet.infra.errors import BackendError, TransientNetworkError, ValidationError
from taalmeet.infra.query_cache import cache_key


@pytest.mark.asyncio
async def test_rejects_out_of_range_coordinates(fake_backend, session):
	with pytest.raises(ValidationError):
		await update_my_location(session, 91.0, 0.0)
	with pytest.raises(ValidationError):
		await update_my_location(session, 0.0, -180.5)
	assert fake_backend.requests == []


@pytest.mark.asyncio
async def test_posts_coordinates_and_invalidates_own_cache(fake_backend, fake_redis, session):
	fake_backend.queue("POST", "/location", 204)
	await fake_redis.set(cache_key("nearby", "u1|d=50|l=|a=all"), "[]")
	await fake_redis.set(cache_key("discover_feed", "u1|lang=|avail=0|n=50"), "{}")
	await fake_redis.set(cache_key("nearby", "u2|d=50|l=|a=all"), "[]")

	await update_my_location(session, 52.0705, 4.3007)

	[request] = fake_backend.calls("POST", "/location")
	assert json.loads(request.content) == {"lat": 52.0705, "lng": 4.3007}
	assert await fake_redis.get(cache_key("nearby", "u1|d=50|l=|a=all")) is None
	assert await fake_redis.get(cache_key("discover_feed", "u1|lang=|avail=0|n=50")) is None
	assert await fake_redis.get(cache_key("nearby", "u2|d=50|l=|a=all")) == "[]"


@pytest.mark.asyncio
async def test_transient_failure_is_retried_once(fake_backend, session):
	fake_backend.queue("POST", "/location", 503, 200)
	await update_my_location(session, 1.0, 2.0)
	assert len(fake_backend.calls("POST", "/location")) == 2


@pytest.mark.asyncio
async def test_persistent_failure_raises_after_one_retry(fake_backend, fake_redis, session):
	fake_backend.queue("POST", "/location", 503)
	await fake_redis.set(cache_key("nearby", "u1|d=50|l=|a=all"), "[]")

	with pytest.raises(TransientNetworkError):
		await update_my_location(session, 1.0, 2.0)

	assert len(fake_backend.calls("POST", "/location")) == 2
	assert await fake_redis.get(cache_key("nearby", "u1|d=50|l=|a=all")) == "[]"


@pytest.mark.asyncio
async def test_client_error_is_not_retried(fake_backend, session):
	fake_backend.queue("POST", "/location", 400)
	with pytest.raises(BackendError):
		await update_my_location(session, 1.0, 2.0)
	assert len(fake_backend.calls("POST", "/location")) == 1


@pytest.mark.asyncio
async def test_session_reporter_pushes_to_backend(fake_backend, session):
	fake_backend.queue("POST", "/location", 204)
	reporter = LocationReporter.for_session(session, FixedLocator(52.0, 4.0), interval_seconds=10)

	reporter.start_reporting()
	for _ in range(50):
		if fake_backend.calls("POST", "/location"):
			break
		await asyncio.sleep(0.01)
	await reporter.stop_reporting()

	[request] = fake_backend.calls("POST", "/location")
	assert request.headers["Authorization"] == "Bearer token-u1"
