"""Repeating asyncio task with an explicit cancellation token."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
	"""Flag checked by tick bodies before any side effect.

	Cancelling the asyncio task alone is not enough: a tick that is between two
	awaits when ``cancel`` runs must still see that it should not act.
	"""

	__slots__ = ("_cancelled",)

	def __init__(self) -> None:
		self._cancelled = False

	def cancel(self) -> None:
		self._cancelled = True

	@property
	def cancelled(self) -> bool:
		return self._cancelled


TickFn = Callable[[CancellationToken], Awaitable[None]]


class PeriodicTask:
	"""Run ``tick`` now and then every ``interval_seconds`` until stopped.

	Ticks never overlap; the next sleep starts once the current tick returns.
	An exception inside a tick is logged and the cycle continues.
	"""

	def __init__(
		self,
		name: str,
		tick: TickFn,
		*,
		interval_seconds: float,
		run_immediately: bool = True,
	) -> None:
		if interval_seconds <= 0:
			raise ValueError("interval_seconds must be positive")
		self.name = name
		self._tick = tick
		self._interval = float(interval_seconds)
		self._run_immediately = run_immediately
		self._task: Optional[asyncio.Task] = None
		self._token: Optional[CancellationToken] = None

	@property
	def running(self) -> bool:
		return self._task is not None and not self._task.done()

	def start(self) -> CancellationToken:
		if self.running and self._token is not None:
			return self._token
		token = CancellationToken()
		self._token = token
		self._task = asyncio.create_task(self._run(token), name=self.name)
		return token

	def cancel(self) -> None:
		if self._token is not None:
			self._token.cancel()
		if self._task is not None:
			self._task.cancel()

	async def stop(self) -> None:
		task = self._task
		self.cancel()
		self._task = None
		self._token = None
		if task is not None:
			with suppress(asyncio.CancelledError):
				await task

	async def _run(self, token: CancellationToken) -> None:
		if not self._run_immediately:
			await asyncio.sleep(self._interval)
		while not token.cancelled:
			try:
				await self._tick(token)
			except asyncio.CancelledError:
				raise
			except Exception:
				logger.exception("periodic task %s tick failed", self.name)
			if token.cancelled:
				return
			await asyncio.sleep(self._interval)


__all__ = ["CancellationToken", "PeriodicTask"]
