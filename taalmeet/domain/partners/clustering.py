"""Map-marker placement and grid clustering for the cluster view.

Positions are viewport percentages (0-100 on both axes, y grows downwards).
This is presentation-only grouping; it is rebuilt from scratch on every call.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Iterable, Literal, Optional, Sequence

from taalmeet.domain.partners.models import Partner

KM_PER_DEG_LAT = 110.574
KM_PER_DEG_LNG_EQUATOR = 111.32


@dataclass(slots=True, frozen=True)
class MarkerPosition:
	partner: Partner
	x: float
	y: float
	# True when the partner had no coordinates and was placed at random.
	synthetic: bool = False


@dataclass(slots=True)
class MapMarker:
	kind: Literal["marker", "cluster"]
	x: float
	y: float
	partners: list[Partner] = field(default_factory=list)

	@property
	def count(self) -> int:
		return len(self.partners)


def _clamp(value: float) -> float:
	return max(0.0, min(100.0, value))


def _project(partner: Partner, origin: tuple[float, float], span_km: float) -> tuple[float, float]:
	lat0, lng0 = origin
	dx_km = (partner.lng - lng0) * KM_PER_DEG_LNG_EQUATOR * math.cos(math.radians(lat0))  # type: ignore[operator]
	dy_km = (partner.lat - lat0) * KM_PER_DEG_LAT  # type: ignore[operator]
	return _clamp(50.0 + dx_km / span_km * 50.0), _clamp(50.0 - dy_km / span_km * 50.0)


def _synthetic(partner: Partner, span_km: float, rng: random.Random) -> tuple[float, float]:
	if partner.distance_km is not None:
		radius = min(partner.distance_km, span_km) / span_km * 50.0
	else:
		radius = rng.uniform(5.0, 20.0)
	angle = rng.uniform(0.0, 2 * math.pi)
	return _clamp(50.0 + radius * math.cos(angle)), _clamp(50.0 + radius * math.sin(angle))


def display_positions(
	partners: Iterable[Partner],
	origin: Optional[tuple[float, float]],
	*,
	span_km: float = 50.0,
	rng: Optional[random.Random] = None,
) -> list[MarkerPosition]:
	"""Place partners in the viewport around ``origin`` (the viewer, at 50/50).

	``span_km`` is the distance from the centre to the viewport edge. Partners
	without coordinates, or any partner when the origin is unknown, get a
	pseudo-random spot instead; such positions must never drive filtering.
	"""
	if span_km <= 0:
		raise ValueError("span_km must be positive")
	rng = rng or random.Random()
	positions: list[MarkerPosition] = []
	for partner in partners:
		if origin is not None and partner.has_coordinates():
			x, y = _project(partner, origin, span_km)
			positions.append(MarkerPosition(partner=partner, x=x, y=y))
		else:
			x, y = _synthetic(partner, span_km, rng)
			positions.append(MarkerPosition(partner=partner, x=x, y=y, synthetic=True))
	return positions


def cluster_markers(positions: Sequence[MarkerPosition], cell_size: float = 20.0) -> list[MapMarker]:
	"""Bucket positions into ``cell_size`` grid cells.

	A cell with several members becomes one cluster at their mean position; a
	cell with one member stays a plain marker at its own position.
	"""
	if cell_size <= 0:
		raise ValueError("cell_size must be positive")
	# Positions on the far edge (exactly 100) belong to the last cell.
	last = max(1, math.ceil(100.0 / cell_size)) - 1
	grid: dict[tuple[int, int], list[MarkerPosition]] = {}
	for pos in positions:
		key = (
			min(math.floor(pos.x / cell_size), last),
			min(math.floor(pos.y / cell_size), last),
		)
		grid.setdefault(key, []).append(pos)

	markers: list[MapMarker] = []
	for members in grid.values():
		if len(members) == 1:
			only = members[0]
			markers.append(MapMarker(kind="marker", x=only.x, y=only.y, partners=[only.partner]))
			continue
		markers.append(
			MapMarker(
				kind="cluster",
				x=sum(m.x for m in members) / len(members),
				y=sum(m.y for m in members) / len(members),
				partners=[m.partner for m in members],
			)
		)
	return markers
