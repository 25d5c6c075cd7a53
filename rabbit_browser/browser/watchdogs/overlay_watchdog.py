"""Watchdog that keeps overlay boxes aligned with their elements."""

from dataclasses import dataclass
from typing import Any, ClassVar

from bubus import BaseEvent
from pydantic import PrivateAttr

from rabbit_browser.browser.events import ScanCompletedEvent, ViewportChangedEvent
from rabbit_browser.browser.views import Viewport
from rabbit_browser.browser.watchdog_base import BaseWatchdog
from rabbit_browser.dom.scripts import READ_GEOMETRY_JS, RENDER_OVERLAYS_JS
from rabbit_browser.dom.views import IndexEntry, Rect
from rabbit_browser.exceptions import BrowserSessionError


@dataclass
class OverlayUpdate:
	handle: int
	box: Rect
	opacity: float


def compute_overlay_updates(
	entries: list[IndexEntry],
	rects: dict[Any, Any],
	viewport: Viewport,
	threshold: float,
) -> list[OverlayUpdate]:
	"""
	Position each overlay at its element's box in document coordinates.

	`rects` maps node ids (JSON object keys, so usually strings) to viewport-relative
	rects; missing or null rects belong to removed elements and are skipped.
	"""
	view = viewport.document_rect
	updates: list[OverlayUpdate] = []
	for entry in entries:
		node_id = entry.ref.node_id
		raw = rects.get(str(node_id), rects.get(node_id))
		if not raw:
			continue
		try:
			box = Rect.from_dict(raw).translate(viewport.scroll_x, viewport.scroll_y)
		except (AttributeError, TypeError, ValueError):
			continue
		ratio = box.intersection_ratio(view)
		opacity = 1.0 if ratio > 0 and ratio >= threshold else 0.0
		updates.append(OverlayUpdate(handle=entry.handle, box=box, opacity=opacity))
	return updates


class OverlayWatchdog(BaseWatchdog):
	"""Repositions overlays after every scan and on scroll, resize or intersection changes."""

	LISTENS_TO: ClassVar[list[type[BaseEvent[Any]]]] = [ScanCompletedEvent, ViewportChangedEvent]
	EMITS: ClassVar[list[type[BaseEvent[Any]]]] = [ViewportChangedEvent]

	intersection_threshold: float = 0.1

	_syncs_run: int = PrivateAttr(default=0)
	_sync_pending: bool = PrivateAttr(default=False)

	@property
	def syncs_run(self) -> int:
		return self._syncs_run

	def request_sync(self, reason: str = 'scroll') -> None:
		"""Queue one overlay sync; viewport changes arriving while one is queued fold into it."""
		if self._sync_pending:
			return
		self._sync_pending = True
		self.event_bus.dispatch(ViewportChangedEvent(reason=reason))

	async def on_ScanCompletedEvent(self, event: ScanCompletedEvent) -> None:
		await self.sync()

	async def on_ViewportChangedEvent(self, event: ViewportChangedEvent) -> None:
		self._sync_pending = False
		await self.sync()

	async def sync(self) -> int:
		"""Read current geometry, update overlay handles and redraw; returns the number of overlays placed."""
		index = self.detector.index
		live = [e for e in index.snapshot() if e.ref.is_connected]
		if not live:
			return 0

		page = self.detector.page
		try:
			geometry = await page.evaluate(READ_GEOMETRY_JS, {'ids': [e.ref.node_id for e in live]})
		except BrowserSessionError as e:
			self.logger.warning(f'⚠️ Could not read overlay geometry: {e}')
			return 0

		geometry = geometry or {}
		viewport = Viewport.model_validate(geometry.get('viewport') or {})
		self.detector.viewport = viewport
		updates = compute_overlay_updates(live, geometry.get('rects') or {}, viewport, self.intersection_threshold)

		payload = []
		for update in updates:
			entry = index.get(update.handle)
			if entry is None:
				continue
			overlay = entry.overlay
			overlay.box = update.box
			overlay.opacity = update.opacity
			payload.append(
				{
					'id': entry.ref.node_id,
					'domId': overlay.dom_id,
					'label': overlay.label,
					'kind': overlay.kind,
					'x': update.box.x,
					'y': update.box.y,
					'width': update.box.width,
					'height': update.box.height,
					'opacity': update.opacity,
				}
			)

		if payload:
			try:
				await page.evaluate(RENDER_OVERLAYS_JS, {'overlays': payload})
				for update in updates:
					entry = index.get(update.handle)
					if entry is not None:
						entry.overlay.rendered = True
			except Exception as e:
				# overlay rendering is best-effort
				self.logger.debug(f'Overlay render failed: {e}')

		self._syncs_run += 1
		return len(payload)
