import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from rabbit_browser.controller.views import (
	ActionResult,
	ClickElementAction,
	InputTextAction,
	SelectOptionAction,
	SubmitFormAction,
)
from rabbit_browser.detector.service import ElementDetector
from rabbit_browser.dom.scripts import (
	CLICK_ELEMENT_JS,
	FILL_INPUT_JS,
	PAGE_INFO_JS,
	READY_STATE_JS,
	SELECT_OPTION_JS,
	SUBMIT_FORM_JS,
)
from rabbit_browser.exceptions import ElementNotFoundError, ScriptEvaluationError

logger = logging.getLogger(__name__)

SETTLE_POLL_INTERVAL = 0.1


class Controller:
	"""
	Actions on detected elements, addressed by their index handle.

	After each successful action the controller waits (bounded) for the document to
	settle, then rescans so elements revealed by the action get indexed. If the action
	navigated to a new document the detector is reset and reinstalled first.
	"""

	def __init__(
		self,
		detector: ElementDetector,
		settle_timeout: float | None = None,
		sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
	):
		self.detector = detector
		self.settle_timeout = detector.options.settle_timeout if settle_timeout is None else settle_timeout
		self._sleep = sleep

	async def click_element(self, index: int) -> ActionResult:
		params = ClickElementAction(index=index)
		return await self._perform(params.index, CLICK_ELEMENT_JS, {}, f'🖱️ Clicked element {params.index}')

	async def fill_input(self, index: int, text: str) -> ActionResult:
		params = InputTextAction(index=index, text=text)
		return await self._perform(
			params.index, FILL_INPUT_JS, {'text': params.text}, f'⌨️ Input "{params.text}" into element {params.index}'
		)

	async def select_option(self, index: int, value: str) -> ActionResult:
		params = SelectOptionAction(index=index, value=value)
		return await self._perform(
			params.index, SELECT_OPTION_JS, {'value': params.value}, f'🔽 Selected "{params.value}" in element {params.index}'
		)

	async def submit_form(self, index: int) -> ActionResult:
		params = SubmitFormAction(index=index)
		return await self._perform(params.index, SUBMIT_FORM_JS, {}, f'📨 Submitted form of element {params.index}')

	async def _perform(self, index: int, script: str, extra: dict[str, Any], success_msg: str) -> ActionResult:
		entry = self.detector.index.get(index)
		if entry is None:
			raise ElementNotFoundError(index)
		if not entry.ref.is_connected:
			msg = f'Element {index} is no longer attached to the document'
			logger.warning(f'❌ {msg}')
			return ActionResult(success=False, error=msg)

		page = self.detector.page
		url_before = await self._current_url()
		indexed_before = len(self.detector.index)
		result = await page.evaluate(script, {'id': entry.ref.node_id, **extra})
		if not result or not result.get('ok'):
			reason = (result or {}).get('reason', 'unknown failure')
			msg = f'Action on element {index} failed: {reason}'
			logger.warning(f'❌ {msg}')
			return ActionResult(success=False, error=msg)

		logger.info(success_msg)
		if await self._settle(url_before):
			new_count = len(self.detector.index)
		else:
			new_count = len(self.detector.index) - indexed_before
		return ActionResult(extracted_content=success_msg, new_element_count=new_count)

	async def _current_url(self) -> str | None:
		try:
			info = await self.detector.page.evaluate(PAGE_INFO_JS)
		except ScriptEvaluationError:
			return None
		return (info or {}).get('url')

	async def _settle(self, url_before: str | None) -> bool:
		"""
		Wait until the document is complete (bounded), then rescan.

		Returns True if the action navigated, in which case the detector was reset and reinstalled.
		"""
		page = self.detector.page
		deadline = time.monotonic() + self.settle_timeout
		await self._sleep(SETTLE_POLL_INTERVAL)
		while time.monotonic() < deadline:
			try:
				if await page.evaluate(READY_STATE_JS) == 'complete':
					break
			except ScriptEvaluationError:
				# context is being replaced by a navigation
				pass
			await self._sleep(SETTLE_POLL_INTERVAL)
		else:
			logger.debug(f'Document did not settle within {self.settle_timeout}s, rescanning anyway')

		url_after = await self._current_url()
		if url_before is not None and url_after is not None and url_after != url_before:
			logger.info(f'🔗 Action navigated to {url_after}, re-indexing')
			await self.detector.reset(timeout=self.settle_timeout)
			await self.detector.install()
			return True

		# a mutation-driven rescan may already have picked up revealed elements
		await self.detector.wait_until_idle(timeout=self.settle_timeout)
		await self.detector.rescan()
		return False
