import logging
from collections.abc import Callable
from typing import Any

from rabbit_browser.browser.session import BrowserSession
from rabbit_browser.browser.views import PageDriver
from rabbit_browser.config import DetectorOptions
from rabbit_browser.controller.service import Controller
from rabbit_browser.controller.views import ActionResult
from rabbit_browser.detector.service import ElementDetector
from rabbit_browser.dom.debug.highlights import create_highlighted_image
from rabbit_browser.dom.scripts import PAGE_CONTEXT_JS
from rabbit_browser.dom.views import ElementRecord, PageContext, ScanSnapshot
from rabbit_browser.exceptions import BrowserSessionError, SessionDisconnectedError

logger = logging.getLogger(__name__)


class RabbitBrowser:
	"""
	Navigate to pages and get back their interactive elements.

	Usage:
		async with RabbitBrowser() as browser:
			await browser.go('https://example.com')
			for element in browser.get_elements():
				print(element.index, element.tag_name, element.text)
	"""

	def __init__(
		self,
		options: DetectorOptions | dict[str, Any] | None = None,
		cdp_url: str | None = None,
		page: PageDriver | None = None,
	):
		if isinstance(options, dict):
			options = DetectorOptions.model_validate(options)
		self.options = options or DetectorOptions()
		self.cdp_url = cdp_url
		# a caller-supplied page driver is used as-is and never started or stopped here
		self._page: PageDriver | None = page
		self._owns_session = page is None
		self.detector: ElementDetector | None = None
		self.controller: Controller | None = None
		self.snapshot = ScanSnapshot()
		self.page_context: PageContext | None = None
		self._current_url: str | None = None

	@property
	def page(self) -> PageDriver:
		if self._page is None:
			raise SessionDisconnectedError('Browser not started; call start() first')
		return self._page

	async def start(self) -> 'RabbitBrowser':
		"""Connect to Chrome over CDP (no-op when a page driver was supplied)."""
		if self._page is None:
			session = BrowserSession(cdp_url=self.cdp_url)
			await session.start()
			self._page = session
		return self

	connect = start

	async def go(self, url: str, options: DetectorOptions | dict[str, Any] | None = None) -> ScanSnapshot:
		"""
		Navigate to `url`, wait for the document, index it and poll until detection converges.

		Per-call `options` replace the instance options for this and later calls.
		Session failures propagate; no partial snapshot is kept.
		"""
		if options is not None:
			self.options = options if isinstance(options, DetectorOptions) else DetectorOptions.model_validate(options)

		page = self.page
		if self.detector is not None:
			await self.detector.stop()
		self.snapshot = ScanSnapshot()
		self.page_context = None

		await page.navigate(url, ready_condition='complete', timeout=self.options.ready_state_timeout)
		self._current_url = url

		self.detector = ElementDetector(page, self.options)
		self.controller = Controller(self.detector)
		if self.options.log_details:
			logger.info('🔍 Detecting interactive elements and text blocks...')
		await self.detector.install()
		self.snapshot = await self.detector.detect()

		if self.options.include_page_context:
			self.page_context = await self.collect_page_context()

		logger.info(
			f'✅ {url}: {self.snapshot.count} elements, {len(self.snapshot.consent_elements)} consent, '
			f'{len(self.snapshot.text_blocks)} text blocks in {self.snapshot.elapsed_ms}ms'
		)
		return self.snapshot

	async def refresh(self) -> ScanSnapshot:
		"""Re-poll the live index of the current page without navigating."""
		detector = self._require_detector()
		self.snapshot = await detector.poll(timeout=self.options.settle_timeout)
		return self.snapshot

	async def collect_page_context(self) -> PageContext:
		data = await self.page.evaluate(PAGE_CONTEXT_JS)
		return PageContext.model_validate(data or {})

	def _require_detector(self) -> ElementDetector:
		if self.detector is None:
			raise SessionDisconnectedError('No page loaded; call go(url) first')
		return self.detector

	# --- results ---

	def get_elements(self) -> list[ElementRecord]:
		return list(self.snapshot.elements)

	def get_consent_elements(self) -> list[ElementRecord]:
		return list(self.snapshot.consent_elements)

	def get_text_blocks(self) -> list[ElementRecord]:
		return list(self.snapshot.text_blocks)

	def get_page_context(self) -> PageContext | None:
		return self.page_context

	def get_complete_data(self) -> dict[str, Any]:
		data = self.snapshot.to_dict()
		data['pageContext'] = self.page_context.model_dump(by_alias=True, exclude_none=True) if self.page_context else None
		return data

	def get_element_count(self) -> int:
		return self.snapshot.count

	def filter_elements(self, predicate: Callable[[ElementRecord], bool]) -> list[ElementRecord]:
		return [e for e in self.snapshot.elements if predicate(e)]

	def find_elements_by_text(self, text: str) -> list[ElementRecord]:
		"""Case-insensitive substring match on element text."""
		needle = text.lower()
		return self.filter_elements(lambda e: needle in e.text.lower())

	def find_elements_by_tag_name(self, tag_name: str) -> list[ElementRecord]:
		tag = tag_name.lower()
		return self.filter_elements(lambda e: e.tag_name.lower() == tag)

	def get_element(self, index: int) -> ElementRecord | None:
		for element in self.snapshot.elements:
			if element.index == index:
				return element
		return None

	async def get_current_page_url(self) -> str | None:
		page = self.page
		get_url = getattr(page, 'get_current_page_url', None)
		if get_url is not None:
			try:
				return await get_url()
			except BrowserSessionError as e:
				logger.debug(f'Could not read page url: {e}')
		return self._current_url

	# --- actions ---

	def _require_controller(self) -> Controller:
		self._require_detector()
		if self.controller is None:
			raise SessionDisconnectedError('No page loaded; call go(url) first')
		return self.controller

	async def click_element(self, index: int) -> ActionResult:
		return await self._after_action(await self._require_controller().click_element(index))

	async def fill_input(self, index: int, text: str) -> ActionResult:
		return await self._after_action(await self._require_controller().fill_input(index, text))

	async def select_option(self, index: int, value: str) -> ActionResult:
		return await self._after_action(await self._require_controller().select_option(index, value))

	async def submit_form(self, index: int) -> ActionResult:
		return await self._after_action(await self._require_controller().submit_form(index))

	async def _after_action(self, result: ActionResult) -> ActionResult:
		if result.success:
			self.snapshot = self._require_detector().snapshot()
		return result

	# --- screenshots ---

	async def take_screenshot(self, path: str | None = None) -> bytes:
		return await self.page.screenshot(path)

	async def get_highlighted_screenshot(self, path: str | None = None) -> bytes:
		"""Screenshot with the numbered boxes of the current index drawn on top."""
		detector = self._require_detector()
		await detector.sync_overlays()
		image = create_highlighted_image(await self.page.screenshot(), detector.index.snapshot(), detector.viewport)
		if path:
			with open(path, 'wb') as f:
				f.write(image)
			logger.info(f'📸 Highlighted screenshot saved to {path}')
		return image

	# --- lifecycle ---

	async def close(self) -> None:
		if self.detector is not None:
			await self.detector.stop()
			self.detector = None
			self.controller = None
		if self._owns_session and isinstance(self._page, BrowserSession):
			await self._page.stop()
			self._page = None

	async def __aenter__(self) -> 'RabbitBrowser':
		return await self.start()

	async def __aexit__(self, exc_type, exc_value, traceback) -> None:
		await self.close()
