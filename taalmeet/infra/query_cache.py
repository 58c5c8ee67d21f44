"""Request cache with a bounded retry policy for backend reads and mutations.

Reads are cached per (namespace, key) in Redis with a TTL so repeated views over
the same filter combination do not hit the backend. Only raw JSON payloads are
cached; normalisation happens after the cache so a schema change never serves a
stale shape.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from taalmeet.infra.errors import is_network_error
from taalmeet.infra.redis import redis_client
from taalmeet.obs import metrics as obs_metrics
from taalmeet.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_KEY_PREFIX = "q"


def cache_key(namespace: str, key: str) -> str:
	return f"{_KEY_PREFIX}:{namespace}:{key}"


async def with_retry(
	fn: Callable[[], Awaitable[T]],
	*,
	operation: str,
	max_retries: int,
	base_delay: Optional[float] = None,
) -> T:
	"""Run ``fn`` retrying transient network failures up to ``max_retries`` times.

	Waits ``base_delay * 2**attempt`` between attempts. Anything that is not a
	network-class failure is raised immediately.
	"""
	delay = settings.retry_base_delay_seconds if base_delay is None else base_delay
	attempt = 0
	while True:
		try:
			return await fn()
		except Exception as exc:
			if not is_network_error(exc) or attempt >= max_retries:
				raise
			wait = max(0.0, delay * (2**attempt))
			attempt += 1
			obs_metrics.inc_backend_retry(operation)
			logger.info("retrying %s (attempt %s/%s) in %.2fs", operation, attempt, max_retries, wait)
			await asyncio.sleep(wait)


async def _read(full_key: str) -> Optional[Any]:
	try:
		raw = await redis_client.get(full_key)
	except Exception:
		logger.warning("query cache read failed for %s", full_key, exc_info=True)
		return None
	if raw is None:
		return None
	try:
		return json.loads(raw)
	except ValueError:
		logger.warning("dropping undecodable cache entry %s", full_key)
		return None


async def _write(full_key: str, value: Any, ttl_seconds: int) -> None:
	if ttl_seconds <= 0:
		return
	try:
		await redis_client.set(full_key, json.dumps(value, separators=(",", ":")), ex=int(ttl_seconds))
	except Exception:
		logger.warning("query cache write failed for %s", full_key, exc_info=True)


async def cached_query(
	namespace: str,
	key: str,
	fetch: Callable[[], Awaitable[Any]],
	*,
	ttl_seconds: int,
	max_retries: Optional[int] = None,
) -> Any:
	"""Return the cached payload for ``key`` or fetch, cache and return it.

	Failures are never cached: an error on a miss propagates to the caller and the
	next call tries the backend again.
	"""
	full_key = cache_key(namespace, key)
	cached = await _read(full_key)
	if cached is not None:
		obs_metrics.inc_query_cache(namespace, "hit")
		return cached
	obs_metrics.inc_query_cache(namespace, "miss")
	retries = settings.query_max_retries if max_retries is None else max_retries
	value = await with_retry(fetch, operation=namespace, max_retries=retries)
	await _write(full_key, value, ttl_seconds)
	return value


async def run_mutation(fn: Callable[[], Awaitable[T]], *, operation: str) -> T:
	"""Run a write with the (smaller) mutation retry budget. Writes are never cached."""
	return await with_retry(fn, operation=operation, max_retries=settings.mutation_max_retries)


async def invalidate(namespace: str, key_prefix: str = "") -> int:
	"""Drop cached entries of ``namespace`` whose key starts with ``key_prefix``."""
	try:
		removed = await redis_client.delete_prefix(cache_key(namespace, key_prefix))
	except Exception:
		logger.warning("query cache invalidation failed for %s", namespace, exc_info=True)
		return 0
	if removed:
		logger.debug("invalidated %s cached %s entries", removed, namespace)
	return removed
