"""Merge candidate lists and derive the filtered views a discovery screen needs.

All functions here are pure: they take partners and return new lists, never
reading settings or sessions implicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Literal, Optional, Sequence

from taalmeet.domain.partners.models import FilterState, Partner, UNKNOWN_DISTANCE_KM

logger = logging.getLogger(__name__)

RADIUS_PRESETS_KM: tuple[float, ...] = (5.0, 10.0, 25.0, 50.0)
ONLINE_NEARBY_THRESHOLD_KM = 2.0
HIGH_MATCH_SCORE = 80

SortKey = Literal["source", "distance", "match"]
ViewStatus = Literal["ok", "empty", "error"]


def merge_sources(*sources: Optional[Iterable[Partner]]) -> list[Partner]:
	"""Merge lists in precedence order; the first instance of an id wins.

	Later duplicates are dropped even when they carry a fresher online flag or
	distance. The discrepancy is logged at DEBUG so it can be measured.
	"""
	merged: dict[str, Partner] = {}
	for source in sources:
		for partner in source or ():
			kept = merged.get(partner.id)
			if kept is None:
				merged[partner.id] = partner
				continue
			if logger.isEnabledFor(logging.DEBUG) and (
				kept.is_online != partner.is_online or kept.distance_km != partner.distance_km
			):
				logger.debug("merge kept earlier record for id=%s despite differing fields", partner.id)
	return list(merged.values())


def merge_discover_feed(feed) -> list[Partner]:
	"""Merge a discover feed: recommended, then active, then new."""
	return merge_sources(feed.recommended, feed.active, feed.new)


def filter_by_radius(partners: Iterable[Partner], radius_km: float) -> list[Partner]:
	"""Keep partners whose server-provided distance is within ``radius_km``.

	Unknown distances count as the sentinel and never pass.
	"""
	return [
		p
		for p in partners
		if p.effective_distance() < UNKNOWN_DISTANCE_KM and p.effective_distance() <= radius_km
	]


def online_nearby(partners: Iterable[Partner], threshold_km: float = ONLINE_NEARBY_THRESHOLD_KM) -> list[Partner]:
	return [p for p in partners if p.is_available() and p.effective_distance() < threshold_km]


def filter_by_search(partners: Iterable[Partner], query: str) -> list[Partner]:
	needle = (query or "").strip().lower()
	if not needle:
		return list(partners)
	return [
		p
		for p in partners
		if needle in p.name.lower() or any(needle in name.lower() for name in p.language_names())
	]


def _matches_languages(partner: Partner, languages: frozenset[str]) -> bool:
	if not languages:
		return True
	return any(partner.teaches(lang) for lang in languages)


def _matches_availability(partner: Partner, filters: FilterState) -> bool:
	if filters.availability == "now":
		return partner.available_now or partner.is_available()
	if filters.availability == "this_week":
		return partner.is_online or (partner.availability is not None and partner.availability.status != "offline")
	return True


def _matches_meeting_type(partner: Partner, filters: FilterState) -> bool:
	if filters.meeting_type == "all":
		return True
	preferences = partner.availability.preferences if partner.availability else ()
	if filters.meeting_type == "in-person":
		return "in-person" in preferences
	return "video" in preferences


def apply_filters(partners: Iterable[Partner], filters: FilterState) -> list[Partner]:
	"""Apply every Filter State constraint, radius first, search last."""
	result: list[Partner] = []
	for partner in filter_by_radius(partners, filters.max_distance_km):
		if not _matches_languages(partner, filters.languages):
			continue
		if not _matches_availability(partner, filters):
			continue
		if filters.min_match_score > 0 and partner.match_score < filters.min_match_score:
			continue
		if not _matches_meeting_type(partner, filters):
			continue
		result.append(partner)
	return filter_by_search(result, filters.search_query)


def sort_partners(partners: Iterable[Partner], by: SortKey = "source") -> list[Partner]:
	"""Stable sort; ``source`` keeps merge order."""
	items = list(partners)
	if by == "distance":
		return sorted(items, key=lambda p: p.effective_distance())
	if by == "match":
		return sorted(items, key=lambda p: -p.match_score)
	return items


@dataclass(slots=True, frozen=True)
class PartnerStats:
	total: int = 0
	online: int = 0
	available_now: int = 0
	high_match: int = 0


def partner_stats(partners: Sequence[Partner]) -> PartnerStats:
	return PartnerStats(
		total=len(partners),
		online=sum(1 for p in partners if p.is_online),
		available_now=sum(1 for p in partners if p.available_now),
		high_match=sum(1 for p in partners if p.match_score >= HIGH_MATCH_SCORE),
	)


@dataclass(slots=True)
class AggregateView:
	"""Display-ready result; ``status`` separates an empty result from a failed fetch."""

	status: ViewStatus
	partners: list[Partner] = field(default_factory=list)
	online_nearby: list[Partner] = field(default_factory=list)
	stats: PartnerStats = field(default_factory=PartnerStats)
	error: Optional[str] = None


def aggregate(
	sources: Sequence[Optional[Iterable[Partner]]],
	filters: FilterState,
	*,
	error: Optional[BaseException] = None,
	error_message: Optional[str] = None,
	sort: SortKey = "source",
	online_threshold_km: float = ONLINE_NEARBY_THRESHOLD_KM,
) -> AggregateView:
	"""Build the full view from raw source lists plus the fetch outcome.

	When the fetch failed the view is ``error`` regardless of what the sources
	contain, so the UI never shows a failure as "no partners found".
	"""
	if error is not None:
		return AggregateView(status="error", error=error_message or str(error))
	merged = merge_sources(*sources)
	visible = sort_partners(apply_filters(merged, filters), sort)
	return AggregateView(
		status="ok" if visible else "empty",
		partners=visible,
		online_nearby=online_nearby(merged, online_threshold_km),
		stats=partner_stats(visible),
	)
