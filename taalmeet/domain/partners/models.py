"""Domain models for partner discovery."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Literal, Optional

LanguageRole = Literal["teaching", "learning"]
AvailabilityStatus = Literal["available", "soon", "busy", "offline"]
AvailabilityMode = Literal["all", "now", "this_week"]
MeetingType = Literal["all", "in-person", "virtual"]

# Stand-in for "distance unknown": larger than any radius a view can select.
UNKNOWN_DISTANCE_KM = 1_000_000.0


@dataclass(slots=True, frozen=True)
class PartnerLanguage:
	language: str
	role: LanguageRole


@dataclass(slots=True, frozen=True)
class Availability:
	status: AvailabilityStatus = "offline"
	until: Optional[str] = None
	preferences: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class Partner:
	"""Canonical candidate record; built only from normalised backend payloads."""

	id: str
	name: str
	avatar_url: Optional[str] = None
	is_online: bool = False
	distance_km: Optional[float] = None
	match_score: int = 0
	languages: tuple[PartnerLanguage, ...] = ()
	lat: Optional[float] = None
	lng: Optional[float] = None
	availability: Optional[Availability] = None
	available_now: bool = False

	def effective_distance(self) -> float:
		return UNKNOWN_DISTANCE_KM if self.distance_km is None else self.distance_km

	def is_available(self) -> bool:
		if self.is_online:
			return True
		return self.availability is not None and self.availability.status == "available"

	def language_names(self) -> tuple[str, ...]:
		return tuple(item.language for item in self.languages)

	def teaches(self, language: str) -> bool:
		wanted = language.lower()
		return any(item.role == "teaching" and item.language.lower() == wanted for item in self.languages)

	def learns(self, language: str) -> bool:
		wanted = language.lower()
		return any(item.role == "learning" and item.language.lower() == wanted for item in self.languages)

	def has_coordinates(self) -> bool:
		return self.lat is not None and self.lng is not None


@dataclass(slots=True, frozen=True)
class LocationSample:
	"""A device position read; kept in memory only."""

	lat: float
	lng: float
	captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True, frozen=True)
class FilterState:
	"""User-chosen discovery constraints for the current view session."""

	max_distance_km: float = 50.0
	languages: frozenset[str] = frozenset()
	availability: AvailabilityMode = "all"
	min_match_score: int = 0
	meeting_type: MeetingType = "all"
	search_query: str = ""

	def with_distance(self, km: float) -> "FilterState":
		if km <= 0:
			raise ValueError("max distance must be positive")
		return replace(self, max_distance_km=float(km))

	def toggle_language(self, language: str) -> "FilterState":
		if language in self.languages:
			return replace(self, languages=self.languages - {language})
		return replace(self, languages=self.languages | {language})

	def with_availability(self, mode: AvailabilityMode) -> "FilterState":
		return replace(self, availability=mode)

	def with_min_match_score(self, score: int) -> "FilterState":
		return replace(self, min_match_score=max(0, min(100, int(score))))

	def with_meeting_type(self, meeting_type: MeetingType) -> "FilterState":
		return replace(self, meeting_type=meeting_type)

	def with_search(self, query: str) -> "FilterState":
		return replace(self, search_query=query)

	def reset(self) -> "FilterState":
		return FilterState()

	def has_active_filters(self) -> bool:
		defaults = FilterState()
		return (
			bool(self.languages)
			or self.max_distance_km < defaults.max_distance_km
			or self.availability != defaults.availability
			or self.min_match_score > 0
			or self.meeting_type != defaults.meeting_type
			or bool(self.search_query.strip())
		)

	def cache_key(self) -> str:
		"""Stable key for the fields that shape the backend request."""
		langs = ",".join(sorted(lang.lower() for lang in self.languages))
		return f"d={self.max_distance_km:g}|l={langs}|a={self.availability}"
