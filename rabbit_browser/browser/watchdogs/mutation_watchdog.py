"""Watchdog that turns document mutations into coalesced, serialized rescans."""

from typing import Any, ClassVar

from bubus import BaseEvent
from pydantic import PrivateAttr

from rabbit_browser.browser.events import DocumentMutatedEvent, RescanRequestedEvent
from rabbit_browser.browser.watchdog_base import BaseWatchdog
from rabbit_browser.exceptions import BrowserSessionError


class MutationWatchdog(BaseWatchdog):
	"""
	Requests one rescan per burst of mutations.

	The bus runs handlers one event at a time, so rescans never overlap. At most one
	rescan request is queued at any moment: mutations that arrive while a request is
	pending are folded into it before anything reaches the bus, and the pending flag is
	cleared before the rescan reads the document, so a mutation landing during a rescan
	schedules exactly one more.
	"""

	LISTENS_TO: ClassVar[list[type[BaseEvent[Any]]]] = [DocumentMutatedEvent, RescanRequestedEvent]
	EMITS: ClassVar[list[type[BaseEvent[Any]]]] = [RescanRequestedEvent]

	_rescan_pending: bool = PrivateAttr(default=False)
	_mutations_seen: int = PrivateAttr(default=0)
	_rescans_run: int = PrivateAttr(default=0)

	@property
	def rescan_pending(self) -> bool:
		return self._rescan_pending

	@property
	def mutations_seen(self) -> int:
		return self._mutations_seen

	@property
	def rescans_run(self) -> int:
		return self._rescans_run

	def record_mutations(self, count: int = 1) -> None:
		"""Count page mutations and queue a rescan unless one is already pending."""
		self._mutations_seen += count
		if self._rescan_pending:
			return
		self._rescan_pending = True
		self.event_bus.dispatch(RescanRequestedEvent(reason='mutation'))

	async def on_DocumentMutatedEvent(self, event: DocumentMutatedEvent) -> None:
		self.record_mutations(event.mutation_count)

	async def on_RescanRequestedEvent(self, event: RescanRequestedEvent) -> None:
		self._rescan_pending = False
		try:
			new_handles = await self.detector.rescan()
		except BrowserSessionError as e:
			self.logger.warning(f'⚠️ Rescan ({event.reason}) failed: {e}')
			self.detector.record_scan_error(e)
			return
		self._rescans_run += 1
		if new_handles:
			self.logger.debug(f'🔄 Rescan ({event.reason}) added elements {new_handles}')
