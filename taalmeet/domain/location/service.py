"""Service call that tells the backend where the current user is."""

from __future__ import annotations

import logging

from taalmeet.infra import backend
from taalmeet.infra.auth import Session
from taalmeet.infra.errors import ValidationError
from taalmeet.infra.query_cache import invalidate, run_mutation

logger = logging.getLogger(__name__)

LOCATION_PATH = "/location"
# Cache namespaces whose results depend on the caller's position.
LOCATION_DEPENDENT_NAMESPACES = ("nearby", "discover_feed")


def validate_coordinates(lat: float, lng: float) -> None:
	if not -90.0 <= lat <= 90.0:
		raise ValidationError("Invalid latitude. Must be between -90 and 90.")
	if not -180.0 <= lng <= 180.0:
		raise ValidationError("Invalid longitude. Must be between -180 and 180.")


async def update_my_location(session: Session, lat: float, lng: float) -> None:
	"""Push the caller's coordinates; cached nearby results are dropped on success."""
	validate_coordinates(lat, lng)

	async def _post() -> None:
		await backend.post_json(
			LOCATION_PATH,
			session=session,
			operation="update_location",
			json={"lat": lat, "lng": lng},
		)

	await run_mutation(_post, operation="update_location")
	for namespace in LOCATION_DEPENDENT_NAMESPACES:
		await invalidate(namespace, f"{session.user_id}|")
