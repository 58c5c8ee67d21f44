"""Pydantic schemas for partner records coming from the backend.

The backend is inconsistent about key casing (``avatar_url`` vs ``avatarUrl``,
``distance`` vs ``distanceKm``). Every variant is accepted here and converted to
the canonical :class:`Partner` on receipt, so nothing downstream looks at raw keys.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from taalmeet.domain.partners.models import Availability, Partner, PartnerLanguage

logger = logging.getLogger(__name__)

_STATUSES = frozenset({"available", "soon", "busy", "offline"})


def _alias(*names: str) -> AliasChoices:
	return AliasChoices(*names)


class LanguagePayload(BaseModel):
	model_config = ConfigDict(extra="ignore")

	language: str = Field(..., min_length=1, validation_alias=_alias("language", "language_name", "languageName", "name"))
	role: Literal["teaching", "learning"]

	@field_validator("role", mode="before")
	def _lower_role(cls, value: Any) -> Any:
		return value.strip().lower() if isinstance(value, str) else value


class AvailabilityPayload(BaseModel):
	model_config = ConfigDict(extra="ignore")

	status: Literal["available", "soon", "busy", "offline"] = "offline"
	until: Optional[str] = None
	preferences: list[str] = Field(default_factory=list)

	@field_validator("status", mode="before")
	def _known_status(cls, value: Any) -> Any:
		if isinstance(value, str) and value.strip().lower() in _STATUSES:
			return value.strip().lower()
		return "offline"


class PartnerPayload(BaseModel):
	"""One candidate as sent by any of the nearby/discover endpoints."""

	model_config = ConfigDict(extra="ignore", populate_by_name=True)

	id: str = Field(..., min_length=1, validation_alias=_alias("id", "user_id", "userId"))
	name: str = Field(default="", validation_alias=_alias("display_name", "displayName", "name", "full_name"))
	avatar_url: Optional[str] = Field(default=None, validation_alias=_alias("avatar_url", "avatarUrl", "avatar"))
	is_online: bool = Field(default=False, validation_alias=_alias("is_online", "isOnline", "online"))
	distance_km: Optional[float] = Field(
		default=None, ge=0, validation_alias=_alias("distance_km", "distanceKm", "distance")
	)
	match_score: int = Field(default=0, validation_alias=_alias("match_score", "matchScore"))
	languages: list[LanguagePayload] = Field(default_factory=list)
	lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0, validation_alias=_alias("lat", "latitude"))
	lng: Optional[float] = Field(
		default=None, ge=-180.0, le=180.0, validation_alias=_alias("lng", "lon", "longitude")
	)
	availability: Optional[AvailabilityPayload] = None
	available_now: bool = Field(
		default=False, validation_alias=_alias("available_now", "availableNow", "is_available", "isAvailable")
	)

	@field_validator("name", mode="before")
	def _name_or_blank(cls, value: Any) -> Any:
		return "" if value is None else value

	@field_validator("id", mode="before")
	def _stringify_id(cls, value: Any) -> Any:
		return str(value) if value is not None and not isinstance(value, str) else value

	@field_validator("match_score", mode="before")
	def _clamp_score(cls, value: Any) -> Any:
		if value is None:
			return 0
		try:
			return max(0, min(100, round(float(value))))
		except (TypeError, ValueError, OverflowError):
			return 0

	@field_validator("languages", mode="before")
	def _drop_bad_languages(cls, value: Any) -> Any:
		if not isinstance(value, list):
			return []
		kept: list[Any] = []
		for item in value:
			try:
				kept.append(LanguagePayload.model_validate(item))
			except ValidationError:
				continue
		return kept

	def to_partner(self) -> Partner:
		availability = None
		if self.availability is not None:
			availability = Availability(
				status=self.availability.status,
				until=self.availability.until,
				preferences=tuple(self.availability.preferences),
			)
		return Partner(
			id=self.id,
			name=self.name,
			avatar_url=self.avatar_url,
			is_online=self.is_online,
			distance_km=self.distance_km,
			match_score=self.match_score,
			languages=tuple(PartnerLanguage(language=item.language, role=item.role) for item in self.languages),
			lat=self.lat,
			lng=self.lng,
			availability=availability,
			available_now=self.available_now,
		)


def parse_partner(raw: Any) -> Partner:
	return PartnerPayload.model_validate(raw).to_partner()


def parse_partners(items: Optional[Iterable[Any]], *, source: str = "backend") -> list[Partner]:
	"""Normalise a raw array, skipping records that do not validate."""
	partners: list[Partner] = []
	skipped = 0
	for item in items or ():
		try:
			partners.append(parse_partner(item))
		except ValidationError:
			skipped += 1
	if skipped:
		logger.warning("skipped %s malformed partner records from %s", skipped, source)
	return partners


class PartnerOut(BaseModel):
	"""Partner row as served by the view endpoints."""

	id: str
	name: str
	avatar_url: Optional[str] = None
	is_online: bool = False
	distance_km: Optional[float] = None
	match_score: int = 0
	languages: list[dict[str, str]] = Field(default_factory=list)
	lat: Optional[float] = None
	lng: Optional[float] = None
	availability_status: Optional[str] = None
	available_now: bool = False

	@classmethod
	def from_partner(cls, partner: Partner) -> "PartnerOut":
		return cls(
			id=partner.id,
			name=partner.name,
			avatar_url=partner.avatar_url,
			is_online=partner.is_online,
			distance_km=partner.distance_km,
			match_score=partner.match_score,
			languages=[{"language": item.language, "role": item.role} for item in partner.languages],
			lat=partner.lat,
			lng=partner.lng,
			availability_status=partner.availability.status if partner.availability else None,
			available_now=partner.available_now,
		)
