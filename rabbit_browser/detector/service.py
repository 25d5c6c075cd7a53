import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable

from bubus import EventBus

from rabbit_browser.browser.events import ScanCompletedEvent
from rabbit_browser.browser.views import PageDriver, Viewport
from rabbit_browser.browser.watchdogs.mutation_watchdog import MutationWatchdog
from rabbit_browser.browser.watchdogs.overlay_watchdog import OverlayWatchdog
from rabbit_browser.config import CONFIG, DetectorOptions
from rabbit_browser.detector.convergence import ConvergenceController
from rabbit_browser.detector.diagnostics import log_summary
from rabbit_browser.dom.classifier import ElementClassifier
from rabbit_browser.dom.dedupe import ContainmentDeduplicator
from rabbit_browser.dom.index import LiveIndex
from rabbit_browser.dom.mirror import DocumentMirror
from rabbit_browser.dom.probe import probe
from rabbit_browser.dom.projector import ExtractionProjector
from rabbit_browser.dom.scripts import COLLECT_ELEMENTS_JS, INSTALL_OBSERVERS_JS, REMOVE_OVERLAYS_JS
from rabbit_browser.dom.views import Candidate, DOMElementNode, ScanSnapshot
from rabbit_browser.exceptions import BrowserSessionError
from rabbit_browser.utils import time_execution_async

logger = logging.getLogger(__name__)

BINDING_NAME = '__rabbitBrowserNotify'
MAX_RECORD_TEXT = 2000
MIN_POLL_TIMEOUT = 0.05
MUTATION_BATCH_MS = 50


class ElementDetector:
	"""
	Live interactive-element detection for one document session.

	Owns the document mirror, the live index and an event bus carrying the mutation and
	overlay watchdogs. `install()` wires the page observers and runs the first scan;
	afterwards mutations trigger rescans on their own and `detect()` polls the index
	until it converges.
	"""

	def __init__(
		self,
		page: PageDriver,
		options: DetectorOptions | None = None,
		sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
		clock: Callable[[], float] = time.monotonic,
	):
		self.page = page
		self.options = options or DetectorOptions()
		self.classifier = ElementClassifier.from_options(self.options)
		self.deduplicator = ContainmentDeduplicator(self.classifier.is_clickable)
		self.index = LiveIndex(self.deduplicator)
		self.mirror = DocumentMirror()
		self.projector = ExtractionProjector(
			focus_on_consent=self.options.focus_on_consent, max_label_text=self.options.max_label_text
		)
		self.viewport = Viewport()
		self.last_snapshot = ScanSnapshot()
		self._sleep = sleep
		self._clock = clock
		self._scan_lock = asyncio.Lock()
		self._scan_error: BrowserSessionError | None = None
		self._binding_installed = False

		self.event_bus = EventBus(name=f'RabbitDetector_{str(id(self))[-4:]}')
		self.mutation_watchdog = MutationWatchdog(event_bus=self.event_bus, detector=self)
		self.overlay_watchdog = OverlayWatchdog(
			event_bus=self.event_bus, detector=self, intersection_threshold=self.options.intersection_threshold
		)
		self.mutation_watchdog.attach_to_bus()
		self.overlay_watchdog.attach_to_bus()

	# --- page wiring ---

	async def install(self) -> list[int]:
		"""Install page observers and index the document once; returns the handles of the first scan."""
		if not self._binding_installed:
			await self.page.add_binding(BINDING_NAME, self._on_binding_payload)
			self._binding_installed = True
		await self.page.evaluate(
			INSTALL_OBSERVERS_JS,
			{
				'binding': BINDING_NAME,
				'threshold': self.options.intersection_threshold,
				'prefix': CONFIG.RABBIT_BROWSER_CONSOLE_PREFIX,
				'batchMs': MUTATION_BATCH_MS,
			},
		)
		return await self.rescan()

	def _on_binding_payload(self, payload: str) -> None:
		try:
			message = json.loads(payload)
		except (TypeError, ValueError):
			logger.debug(f'Ignoring malformed page notification: {payload!r}')
			return
		kind = message.get('type')
		# at most one rescan and one overlay sync are queued at a time
		if kind == 'mutation':
			self.mutation_watchdog.record_mutations(int(message.get('count') or 1))
		elif kind == 'viewport':
			self.overlay_watchdog.request_sync(str(message.get('reason') or 'scroll'))

	# --- scanning ---

	def collect_candidates(self, nodes: list[DOMElementNode]) -> list[Candidate]:
		"""Probe and classify connected nodes (document order) into this pass's candidates."""
		candidates: list[Candidate] = []
		for node in nodes:
			box = probe(node)
			if box is None:
				continue
			roles = self.classifier.classify(node)
			if not roles:
				continue
			candidates.append(
				Candidate(ref=node, roles=frozenset(roles), box=box, text=node.text, immediate_text=node.immediate_text)
			)
		return candidates

	@time_execution_async('--rescan')
	async def rescan(self) -> list[int]:
		"""
		Read the whole document and merge matching elements into the index.

		Raises BrowserSessionError if the page cannot be read; the index is only touched
		after a complete read, so a failed scan leaves no partial state behind.
		"""
		async with self._scan_lock:
			records = await self.page.evaluate(COLLECT_ELEMENTS_JS, {'maxText': MAX_RECORD_TEXT})
			nodes = self.mirror.update(records or [])
			candidates = self.collect_candidates(nodes)
			new_handles = self.index.merge(candidates)
			self.mirror.prune(keep=[entry.ref for entry in self.index.snapshot()])
			sequence = self.index.scan_sequence
		self.event_bus.dispatch(ScanCompletedEvent(scan_sequence=sequence, new_handles=new_handles))
		return new_handles

	def record_scan_error(self, error: BrowserSessionError) -> None:
		self._scan_error = error

	async def wait_until_idle(self, timeout: float | None = None) -> None:
		"""Wait for queued rescans and overlay syncs to finish, or until `timeout` seconds pass."""
		await self.event_bus.wait_until_idle(timeout=timeout)

	def snapshot(self) -> ScanSnapshot:
		return self.projector.project(self.index.snapshot(), scan_sequence=self.index.scan_sequence)

	async def poll(self, timeout: float | None = None) -> ScanSnapshot:
		"""
		Snapshot after pending rescans settle; re-raises a session failure from a background rescan.

		With a `timeout` the wait is cut short and the index is read as it stands, so a page
		that never stops mutating cannot hold the caller.
		"""
		await self.wait_until_idle(timeout=timeout)
		if self._scan_error is not None:
			error, self._scan_error = self._scan_error, None
			raise error
		return self.snapshot()

	@time_execution_async('--detect')
	async def detect(self) -> ScanSnapshot:
		"""Run the convergence controller with the configured budget and log a summary."""
		deadline = self._clock() + self.options.wait_time / 1000

		async def take_snapshot() -> ScanSnapshot:
			return await self.poll(timeout=max(MIN_POLL_TIMEOUT, deadline - self._clock()))

		controller = ConvergenceController(
			take_snapshot, check_intervals=self.options.check_intervals, sleep=self._sleep, clock=self._clock
		)
		snapshot = await controller.run(
			budget=self.options.wait_time,
			min_count=self.options.min_elements_required,
			early_return=self.options.early_return,
		)
		self.last_snapshot = snapshot
		log_summary(snapshot, self.index.snapshot(), log_details=self.options.log_details)
		return snapshot

	async def sync_overlays(self) -> int:
		return await self.overlay_watchdog.sync()

	# --- lifecycle ---

	async def reset(self, timeout: float | None = None) -> None:
		"""Forget every entry and overlay; used when the page navigates to a new document."""
		await self.wait_until_idle(timeout=timeout)
		self.index.reset()
		self.mirror.reset()
		self.last_snapshot = ScanSnapshot()
		self._scan_error = None
		try:
			await self.page.evaluate(REMOVE_OVERLAYS_JS)
		except BrowserSessionError as e:
			logger.debug(f'Could not remove overlays: {e}')

	async def stop(self) -> None:
		await self.event_bus.stop()
