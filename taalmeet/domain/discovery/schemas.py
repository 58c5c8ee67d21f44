"""Schemas for the nearby and discover-feed backend calls."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from taalmeet.domain.partners.models import FilterState


class NearbyQuery(BaseModel):
	"""Backend parameters for a nearby lookup, derived from a Filter State."""

	max_distance_km: float = Field(default=50.0, gt=0, le=20000)
	languages: list[str] = Field(default_factory=list)
	availability: Literal["all", "now", "this_week"] = "all"

	@classmethod
	def from_filters(cls, filters: FilterState) -> "NearbyQuery":
		return cls(
			max_distance_km=filters.max_distance_km,
			languages=sorted(filters.languages),
			availability=filters.availability,
		)

	def to_params(self) -> dict[str, Any]:
		params: dict[str, Any] = {"maxDistance": f"{self.max_distance_km:g}"}
		if self.languages:
			params["languages"] = ",".join(self.languages)
		if self.availability == "now":
			params["availability"] = "available"
		elif self.availability == "this_week":
			params["availability"] = "this_week"
		return params


class DiscoverQuery(BaseModel):
	language: Optional[str] = None
	availability_only: bool = False
	limit: int = Field(default=50, ge=1, le=200)

	def to_params(self) -> dict[str, Any]:
		params: dict[str, Any] = {"limit": self.limit}
		if self.language:
			params["language"] = self.language
		if self.availability_only:
			params["availabilityOnly"] = "true"
		return params

	def cache_key(self) -> str:
		return f"lang={(self.language or '').lower()}|avail={int(self.availability_only)}|n={self.limit}"


class DiscoverFeedPayload(BaseModel):
	"""Raw feed response; partner arrays stay raw until normalised by the service."""

	model_config = ConfigDict(extra="ignore")

	recommended: list[Any] = Field(
		default_factory=list,
		validation_alias=AliasChoices("recommendedUsers", "recommended_users", "recommended"),
	)
	active: list[Any] = Field(
		default_factory=list,
		validation_alias=AliasChoices("activeUsers", "active_users", "active"),
	)
	new: list[Any] = Field(
		default_factory=list,
		validation_alias=AliasChoices("newUsers", "new_users", "new"),
	)
	sessions: list[dict[str, Any]] = Field(default_factory=list)

	@field_validator("recommended", "active", "new", "sessions", mode="before")
	def _null_as_empty(cls, value: Any) -> Any:
		return [] if value is None else value
