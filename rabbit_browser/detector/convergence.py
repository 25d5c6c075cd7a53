import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from rabbit_browser.config import DEFAULT_CHECK_INTERVALS_MS
from rabbit_browser.dom.views import ScanSnapshot

logger = logging.getLogger(__name__)


class ConvergenceController:
	"""
	Bounded polling of the live index until enough elements are present.

	Waits follow the interval table, clipped so the total never exceeds the budget, and a
	snapshot is taken after each wait. With `early_return` the first snapshot holding at
	least `min_count` elements is returned. If the table runs out below `min_count`, the
	remaining budget is waited once before a final snapshot. Falling short is not an
	error: the last snapshot is returned as is.

	The budget counts wall time, so slow snapshots use it up as well as the waits.
	"""

	def __init__(
		self,
		take_snapshot: Callable[[], Awaitable[ScanSnapshot]],
		check_intervals: list[int] | None = None,
		sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
		clock: Callable[[], float] = time.monotonic,
	):
		self._take_snapshot = take_snapshot
		self.check_intervals = list(check_intervals or DEFAULT_CHECK_INTERVALS_MS)
		self._sleep = sleep
		self._clock = clock
		self.waited_ms = 0
		self.snapshots_taken = 0

	async def _wait(self, ms: int) -> None:
		await self._sleep(ms / 1000)
		self.waited_ms += ms

	async def _snapshot(self) -> ScanSnapshot:
		self.snapshots_taken += 1
		return await self._take_snapshot()

	def _used_ms(self, started: float) -> int:
		return max(self.waited_ms, round((self._clock() - started) * 1000))

	async def run(self, budget: int, min_count: int = 1, early_return: bool = True) -> ScanSnapshot:
		"""Poll within `budget` milliseconds and return the last snapshot."""
		self.waited_ms = 0
		self.snapshots_taken = 0
		started = self._clock()
		snapshot: ScanSnapshot | None = None

		for interval in self.check_intervals:
			used = self._used_ms(started)
			if used >= budget:
				break
			await self._wait(min(interval, budget - used))
			snapshot = await self._snapshot()
			if early_return and snapshot.count >= min_count:
				logger.debug(f'⚡ {snapshot.count} elements after {self.waited_ms}ms, returning early')
				break
		else:
			snapshot = await self._final_wait(snapshot, budget - self._used_ms(started), min_count)

		if snapshot is None:
			# zero budget: still report what is already indexed
			snapshot = await self._snapshot()

		elapsed_ms = round((self._clock() - started) * 1000)
		if snapshot.count == 0:
			logger.warning('no interactive elements detected')
		return snapshot.model_copy(update={'elapsed_ms': elapsed_ms})

	async def _final_wait(self, snapshot: ScanSnapshot | None, remaining: int, min_count: int) -> ScanSnapshot | None:
		if snapshot is not None and snapshot.count >= min_count:
			return snapshot
		if remaining <= 0:
			return snapshot
		logger.debug(f'⏳ Waiting additional {remaining}ms for more elements...')
		await self._wait(remaining)
		return await self._snapshot()
