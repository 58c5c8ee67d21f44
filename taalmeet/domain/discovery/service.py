"""Nearby and discover-feed fetchers.

Both calls go through the request cache (per user and filter combination) and
return canonical :class:`Partner` records. :class:`NearbyFetcher` owns the Filter
State of one screen and refetches whenever it changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Optional

from pydantic import ValidationError

from taalmeet.domain.discovery.schemas import DiscoverFeedPayload, DiscoverQuery, NearbyQuery
from taalmeet.domain.partners.aggregator import AggregateView, SortKey, aggregate
from taalmeet.domain.partners.models import FilterState, Partner
from taalmeet.domain.partners.schemas import parse_partners
from taalmeet.infra import backend
from taalmeet.infra.auth import Session
from taalmeet.infra.errors import AppError, BackendError, user_friendly_message
from taalmeet.infra.query_cache import cached_query
from taalmeet.obs import metrics as obs_metrics
from taalmeet.settings import settings

logger = logging.getLogger(__name__)

NEARBY_PATH = "/partners/nearby"
FEED_PATH = "/discover/feed"

FetchNearbyFn = Callable[[Session, FilterState], Awaitable[list[Partner]]]


def _as_list(payload: Any, operation: str) -> list[Any]:
	if payload is None:
		return []
	if isinstance(payload, list):
		return payload
	# Some deployments wrap arrays in an envelope.
	if isinstance(payload, dict):
		for key in ("data", "items", "results"):
			if isinstance(payload.get(key), list):
				return payload[key]
	raise BackendError(f"{operation}: unexpected payload type {type(payload).__name__}")


async def fetch_nearby(session: Session, filters: FilterState) -> list[Partner]:
	"""Candidates around the caller, as the backend ranks and measures them."""
	query = NearbyQuery.from_filters(filters)

	async def _get() -> list[Any]:
		payload = await backend.get_json(
			NEARBY_PATH,
			session=session,
			operation="fetch_nearby",
			params=query.to_params(),
		)
		return _as_list(payload, "fetch_nearby")

	raw = await cached_query(
		"nearby",
		f"{session.user_id}|{filters.cache_key()}",
		_get,
		ttl_seconds=settings.nearby_cache_ttl_seconds,
	)
	return parse_partners(raw, source="nearby")


@dataclass(slots=True)
class DiscoverFeed:
	recommended: list[Partner] = field(default_factory=list)
	active: list[Partner] = field(default_factory=list)
	new: list[Partner] = field(default_factory=list)
	sessions: list[dict[str, Any]] = field(default_factory=list)

	def sources(self) -> tuple[list[Partner], list[Partner], list[Partner]]:
		"""Partner lists in merge precedence order."""
		return self.recommended, self.active, self.new


def _feed_payload(payload: Any) -> DiscoverFeedPayload:
	if payload is None:
		return DiscoverFeedPayload()
	if not isinstance(payload, dict):
		raise BackendError(f"fetch_discover_feed: unexpected payload type {type(payload).__name__}")
	try:
		return DiscoverFeedPayload.model_validate(payload)
	except ValidationError as exc:
		raise BackendError(f"fetch_discover_feed: malformed feed ({exc.error_count()} errors)") from exc


async def fetch_discover_feed(session: Session, query: Optional[DiscoverQuery] = None) -> DiscoverFeed:
	query = query or DiscoverQuery()

	async def _get() -> dict[str, Any]:
		payload = await backend.get_json(
			FEED_PATH,
			session=session,
			operation="fetch_discover_feed",
			params=query.to_params(),
		)
		# Validate before caching so a malformed feed is never stored.
		return _feed_payload(payload).model_dump()

	raw = await cached_query(
		"discover_feed",
		f"{session.user_id}|{query.cache_key()}",
		_get,
		ttl_seconds=settings.feed_cache_ttl_seconds,
	)
	parsed = _feed_payload(raw)
	return DiscoverFeed(
		recommended=parse_partners(parsed.recommended, source="recommended"),
		active=parse_partners(parsed.active, source="active"),
		new=parse_partners(parsed.new, source="new"),
		sessions=parsed.sessions,
	)


@dataclass(slots=True)
class FetchOutcome:
	status: Literal["ok", "error"]
	partners: list[Partner] = field(default_factory=list)
	error: Optional[AppError] = None

	@property
	def message(self) -> Optional[str]:
		return user_friendly_message(self.error) if self.error is not None else None


class NearbyFetcher:
	"""Keeps one screen's candidate list in step with its Filter State.

	Each request is tagged with a generation number. A response is applied only
	if it belongs to the latest request and the fetcher is still open; anything
	else is dropped without touching ``outcome``.
	"""

	def __init__(
		self,
		session: Session,
		*,
		filters: Optional[FilterState] = None,
		fetch: FetchNearbyFn = fetch_nearby,
	) -> None:
		self.session = session
		self.filters = filters or FilterState(max_distance_km=settings.default_max_distance_km)
		self.outcome: Optional[FetchOutcome] = None
		self._fetch = fetch
		self._generation = 0
		self._alive = True

	@property
	def alive(self) -> bool:
		return self._alive

	async def refresh(self) -> Optional[FetchOutcome]:
		"""Fetch for the current filters; returns None if the result was discarded."""
		if not self._alive:
			return None
		self._generation += 1
		generation = self._generation
		try:
			partners = await self._fetch(self.session, self.filters)
			outcome = FetchOutcome(status="ok", partners=partners)
		except AppError as exc:
			logger.warning("nearby fetch failed: %s", exc.message)
			outcome = FetchOutcome(status="error", error=exc)

		if not self._alive or generation != self._generation:
			obs_metrics.inc_stale_discarded()
			logger.debug("discarding nearby response generation=%s current=%s", generation, self._generation)
			return None
		obs_metrics.inc_nearby_fetch(outcome.status, len(outcome.partners))
		self.outcome = outcome
		return outcome

	async def update_filters(self, filters: FilterState) -> Optional[FetchOutcome]:
		"""Replace the Filter State (last write wins) and refetch."""
		self.filters = filters
		return await self.refresh()

	async def reset_filters(self) -> Optional[FetchOutcome]:
		return await self.update_filters(self.filters.reset())

	def close(self) -> None:
		"""Mark the owning view as gone; in-flight responses will be ignored."""
		self._alive = False

	def view(self, *, sort: SortKey = "source", online_threshold_km: Optional[float] = None) -> AggregateView:
		threshold = settings.online_nearby_threshold_km if online_threshold_km is None else online_threshold_km
		outcome = self.outcome
		if outcome is None:
			return aggregate([], self.filters, sort=sort, online_threshold_km=threshold)
		return aggregate(
			[outcome.partners],
			self.filters,
			error=outcome.error,
			error_message=outcome.message,
			sort=sort,
			online_threshold_km=threshold,
		)
