"""Discovery view endpoints: nearby list, merged feed and map clusters."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from taalmeet.domain.discovery import service
from taalmeet.domain.discovery.matching import with_match_scores
from taalmeet.domain.discovery.schemas import DiscoverQuery
from taalmeet.domain.location.reporter import FixedLocator, UnavailableLocator, resolve_position
from taalmeet.domain.location.service import validate_coordinates
from taalmeet.domain.partners.aggregator import RADIUS_PRESETS_KM, AggregateView, PartnerStats, SortKey, aggregate
from taalmeet.domain.partners.clustering import MapMarker, cluster_markers, display_positions
from taalmeet.domain.partners.models import FilterState, Partner, PartnerLanguage
from taalmeet.domain.partners.schemas import PartnerOut
from taalmeet.infra.auth import Session, get_current_session
from taalmeet.infra.errors import AppError, user_friendly_message
from taalmeet.settings import settings

router = APIRouter(prefix="/discover", tags=["discover"])


class StatsOut(BaseModel):
	total: int = 0
	online: int = 0
	available_now: int = 0
	high_match: int = 0

	@classmethod
	def from_stats(cls, stats: PartnerStats) -> "StatsOut":
		return cls(
			total=stats.total,
			online=stats.online,
			available_now=stats.available_now,
			high_match=stats.high_match,
		)


class DiscoverViewResponse(BaseModel):
	status: Literal["ok", "empty", "error"]
	error: Optional[str] = None
	partners: list[PartnerOut] = Field(default_factory=list)
	online_nearby: list[PartnerOut] = Field(default_factory=list)
	stats: StatsOut = Field(default_factory=StatsOut)
	filters_active: bool = False


class MarkerOut(BaseModel):
	kind: Literal["marker", "cluster"]
	x: float
	y: float
	count: int
	partner_ids: list[str]

	@classmethod
	def from_marker(cls, marker: MapMarker) -> "MarkerOut":
		return cls(
			kind=marker.kind,
			x=round(marker.x, 3),
			y=round(marker.y, 3),
			count=marker.count,
			partner_ids=[p.id for p in marker.partners],
		)


class MapOrigin(BaseModel):
	lat: float
	lng: float
	degraded: bool = False


class MapViewResponse(BaseModel):
	status: Literal["ok", "empty", "error"]
	error: Optional[str] = None
	origin: MapOrigin
	radius_km: float
	markers: list[MarkerOut] = Field(default_factory=list)
	online_nearby_count: int = 0
	radius_presets: list[float] = Field(default_factory=lambda: list(RADIUS_PRESETS_KM))


def _split(raw: Optional[str]) -> list[str]:
	if not raw:
		return []
	return [part.strip() for part in raw.split(",") if part.strip()]


def _viewer_languages(teaching: Optional[str], learning: Optional[str]) -> list[PartnerLanguage]:
	return [PartnerLanguage(language=lang, role="teaching") for lang in _split(teaching)] + [
		PartnerLanguage(language=lang, role="learning") for lang in _split(learning)
	]


def _score(partners: list[Partner], viewer: list[PartnerLanguage]) -> list[Partner]:
	if not viewer:
		return partners
	return with_match_scores(viewer, partners)


def _view_response(view: AggregateView, filters: FilterState) -> DiscoverViewResponse:
	return DiscoverViewResponse(
		status=view.status,
		error=view.error,
		partners=[PartnerOut.from_partner(p) for p in view.partners],
		online_nearby=[PartnerOut.from_partner(p) for p in view.online_nearby],
		stats=StatsOut.from_stats(view.stats),
		filters_active=filters.has_active_filters(),
	)


@router.get("/nearby", response_model=DiscoverViewResponse)
async def discover_nearby(
	*,
	max_distance_km: float = Query(default=50.0, gt=0, le=20000),
	languages: Optional[str] = Query(default=None, description="Comma separated language names"),
	availability: Literal["all", "now", "this_week"] = Query(default="all"),
	min_match_score: int = Query(default=0, ge=0, le=100),
	meeting_type: Literal["all", "in-person", "virtual"] = Query(default="all"),
	q: str = Query(default="", max_length=120),
	sort: Literal["source", "distance", "match"] = Query(default="source"),
	teaching: Optional[str] = Query(default=None),
	learning: Optional[str] = Query(default=None),
	session: Session = Depends(get_current_session),
) -> DiscoverViewResponse:
	filters = FilterState(
		max_distance_km=max_distance_km,
		languages=frozenset(_split(languages)),
		availability=availability,
		min_match_score=min_match_score,
		meeting_type=meeting_type,
		search_query=q,
	)
	viewer = _viewer_languages(teaching, learning)

	async def _fetch(sess: Session, current: FilterState) -> list[Partner]:
		return _score(await service.fetch_nearby(sess, current), viewer)

	fetcher = service.NearbyFetcher(session, filters=filters, fetch=_fetch)
	try:
		await fetcher.refresh()
		view = fetcher.view(sort=sort)
	finally:
		fetcher.close()
	return _view_response(view, filters)


@router.get("/feed", response_model=DiscoverViewResponse)
async def discover_feed(
	*,
	language: Optional[str] = Query(default=None),
	availability_only: bool = Query(default=False),
	limit: int = Query(default=50, ge=1, le=200),
	radius_km: float = Query(default=50.0, gt=0, le=20000),
	q: str = Query(default="", max_length=120),
	sort: Literal["source", "distance", "match"] = Query(default="source"),
	teaching: Optional[str] = Query(default=None),
	learning: Optional[str] = Query(default=None),
	session: Session = Depends(get_current_session),
) -> DiscoverViewResponse:
	filters = FilterState(max_distance_km=radius_km, search_query=q)
	query = DiscoverQuery(language=language, availability_only=availability_only, limit=limit)
	sort_key: SortKey = sort
	try:
		feed = await service.fetch_discover_feed(session, query)
	except AppError as exc:
		view = aggregate(
			[],
			filters,
			error=exc,
			error_message=user_friendly_message(exc, context="discover feed"),
		)
		return _view_response(view, filters)

	viewer = _viewer_languages(teaching, learning)
	view = aggregate(
		[_score(source, viewer) for source in feed.sources()],
		filters,
		sort=sort_key,
		online_threshold_km=settings.online_nearby_threshold_km,
	)
	return _view_response(view, filters)


@router.get("/map", response_model=MapViewResponse)
async def discover_map(
	*,
	radius_km: float = Query(default=50.0, gt=0, le=20000),
	lat: Optional[float] = Query(default=None),
	lng: Optional[float] = Query(default=None),
	session: Session = Depends(get_current_session),
) -> MapViewResponse:
	if lat is not None and lng is not None:
		validate_coordinates(lat, lng)
		locator = FixedLocator(lat, lng)
	else:
		locator = UnavailableLocator()
	sample, degraded = await resolve_position(locator)
	origin = MapOrigin(lat=sample.lat, lng=sample.lng, degraded=degraded)

	fetcher = service.NearbyFetcher(session, filters=FilterState(max_distance_km=radius_km))
	try:
		await fetcher.refresh()
		view = fetcher.view(sort="distance")
	finally:
		fetcher.close()
	if view.status == "error":
		return MapViewResponse(status="error", error=view.error, origin=origin, radius_km=radius_km)

	positions = display_positions(view.partners, (sample.lat, sample.lng), span_km=radius_km)
	markers = cluster_markers(positions, settings.cluster_cell_size_pct)
	return MapViewResponse(
		status=view.status,
		origin=origin,
		radius_km=radius_km,
		markers=[MarkerOut.from_marker(m) for m in markers],
		online_nearby_count=len(view.online_nearby),
	)
