"""Periodic device-location reporter.

While a discovery screen is active the reporter reads the device position once
on start and then every interval, pushing each fix to the backend. A failed read
or push is logged and the cycle simply waits for the next tick.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, Protocol

from taalmeet.domain.location.service import update_my_location
from taalmeet.domain.partners.models import LocationSample
from taalmeet.infra.auth import Session
from taalmeet.infra.errors import LocationPermissionError, LocationUnavailableError
from taalmeet.infra.scheduler import CancellationToken, PeriodicTask
from taalmeet.obs import metrics as obs_metrics
from taalmeet.settings import settings

logger = logging.getLogger(__name__)

PushFn = Callable[[float, float], Awaitable[None]]


class DeviceLocator(Protocol):
	"""Source of device positions (GPS, browser geolocation, a test double)."""

	async def current_position(self) -> LocationSample:
		"""Raise LocationPermissionError or LocationUnavailableError on failure."""
		...


class FixedLocator:
	"""Locator that always reports the same position."""

	def __init__(self, lat: float, lng: float) -> None:
		self._lat = lat
		self._lng = lng

	async def current_position(self) -> LocationSample:
		return LocationSample(lat=self._lat, lng=self._lng)


class UnavailableLocator:
	"""Locator for callers that sent no position."""

	async def current_position(self) -> LocationSample:
		raise LocationUnavailableError("no position supplied")


class LocationReporter:
	def __init__(
		self,
		locator: DeviceLocator,
		push: PushFn,
		*,
		interval_seconds: Optional[float] = None,
		name: str = "location-reporter",
	) -> None:
		self._locator = locator
		self._push = push
		interval = settings.location_report_interval_seconds if interval_seconds is None else interval_seconds
		self._task = PeriodicTask(name, self._tick, interval_seconds=interval)
		self._permission_warned = False
		self.last_sample: Optional[LocationSample] = None
		self.degraded = False

	@classmethod
	def for_session(cls, session: Session, locator: DeviceLocator, **kwargs) -> "LocationReporter":
		async def _push(lat: float, lng: float) -> None:
			await update_my_location(session, lat, lng)

		return cls(locator, _push, name=f"location-reporter:{session.user_id}", **kwargs)

	@property
	def active(self) -> bool:
		return self._task.running

	def start_reporting(self) -> None:
		self._permission_warned = False
		self._task.start()

	async def stop_reporting(self) -> None:
		"""Cancel the cycle; no push happens after this returns."""
		await self._task.stop()

	async def _tick(self, token: CancellationToken) -> None:
		try:
			sample = await self._locator.current_position()
		except LocationPermissionError:
			obs_metrics.inc_location_read_failure("permission")
			self.degraded = True
			if not self._permission_warned:
				logger.warning("location permission denied; skipping reports until granted")
				self._permission_warned = True
			else:
				logger.debug("location permission still denied")
			return
		except LocationUnavailableError as exc:
			obs_metrics.inc_location_read_failure("unavailable")
			logger.warning("location read failed: %s", exc.message)
			return

		if token.cancelled:
			return
		self.degraded = False
		self._permission_warned = False
		self.last_sample = sample
		try:
			await self._push(sample.lat, sample.lng)
		except Exception as exc:
			obs_metrics.inc_location_push("failed")
			logger.warning("location push failed: %s", exc)
			return
		obs_metrics.inc_location_push("ok")


async def resolve_position(
	locator: DeviceLocator,
	default: Optional[tuple[float, float]] = None,
) -> tuple[LocationSample, bool]:
	"""Read the device once; fall back to the default coordinate when it cannot.

	Returns the sample and whether it is the fallback (degraded mode).
	"""
	try:
		return await locator.current_position(), False
	except (LocationPermissionError, LocationUnavailableError) as exc:
		obs_metrics.inc_location_read_failure(
			"permission" if isinstance(exc, LocationPermissionError) else "unavailable"
		)
		logger.info("using default position: %s", exc.message)
	lat, lng = default if default is not None else (settings.default_lat, settings.default_lng)
	return LocationSample(lat=lat, lng=lng), True
