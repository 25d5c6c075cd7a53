import asyncio
import base64
import json
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
from cdp_use import CDPClient

from rabbit_browser.browser.views import ConsoleMessage
from rabbit_browser.config import CONFIG
from rabbit_browser.dom.scripts import PAGE_INFO_JS, READY_STATE_JS
from rabbit_browser.exceptions import (
	BrowserSessionError,
	NavigationTimeoutError,
	ScriptEvaluationError,
	SessionDisconnectedError,
)
from rabbit_browser.utils import time_execution_async

logger = logging.getLogger(__name__)
page_logger = logging.getLogger('rabbit_browser.page')

READY_STATES = ('loading', 'interactive', 'complete')


async def resolve_websocket_url(cdp_url: str) -> str:
	"""Accept a ws:// url as-is, otherwise ask the DevTools HTTP endpoint for it."""
	if cdp_url.startswith('ws'):
		return cdp_url
	url = cdp_url.rstrip('/')
	if not url.endswith('/json/version'):
		url = url + '/json/version'
	try:
		async with httpx.AsyncClient() as client:
			response = await client.get(url, timeout=10.0)
			response.raise_for_status()
			return response.json()['webSocketDebuggerUrl']
	except (httpx.HTTPError, KeyError, ValueError) as e:
		raise SessionDisconnectedError(f'Could not resolve DevTools websocket from {url}: {e}') from e


class BrowserSession:
	"""
	One page of a running Chrome, driven over the DevTools protocol.

	The session attaches to an existing page target (or creates one), relays page console
	output into logging and exposes the small driver surface the detector needs:
	navigate, evaluate, console and binding callbacks, screenshots.
	"""

	def __init__(self, cdp_url: str | None = None, console_prefix: str | None = None):
		self.cdp_url = cdp_url or CONFIG.RABBIT_BROWSER_CDP_URL
		self.console_prefix = console_prefix or CONFIG.RABBIT_BROWSER_CONSOLE_PREFIX
		self.cdp_client: CDPClient | None = None
		self.session_id: str | None = None
		self.target_id: str | None = None
		self._console_handlers: list[Callable[[ConsoleMessage], None]] = []
		self._binding_handlers: dict[str, Callable[[str], None]] = {}
		self._bindings_registered = False
		self.on_console_message(self._relay_console)

	@property
	def is_connected(self) -> bool:
		return self.cdp_client is not None and self.session_id is not None

	async def start(self) -> 'BrowserSession':
		if self.is_connected:
			return self
		ws_url = await resolve_websocket_url(self.cdp_url)
		logger.debug(f'🔌 Connecting to {ws_url}')
		self.cdp_client = CDPClient(ws_url)
		try:
			await self.cdp_client.start()
			await self._attach_to_page()
		except Exception as e:
			await self._stop_client()
			raise SessionDisconnectedError(f'Could not attach to a page at {self.cdp_url}: {e}') from e
		logger.info(f'🐇 Attached to page target {self.target_id[-4:] if self.target_id else "?"}')
		return self

	async def _attach_to_page(self) -> None:
		assert self.cdp_client is not None
		targets = await self.cdp_client.send.Target.getTargets()
		pages = [t for t in targets['targetInfos'] if t['type'] == 'page']
		if pages:
			target_id = pages[0]['targetId']
		else:
			created = await self.cdp_client.send.Target.createTarget(params={'url': 'about:blank'})
			target_id = created['targetId']

		session = await self.cdp_client.send.Target.attachToTarget(params={'targetId': target_id, 'flatten': True})
		self.target_id = target_id
		self.session_id = session['sessionId']

		await self.cdp_client.send.Page.enable(session_id=self.session_id)
		await self.cdp_client.send.Runtime.enable(session_id=self.session_id)
		self.cdp_client.register.Runtime.consoleAPICalled(self._handle_console_api_called)

	async def stop(self) -> None:
		await self._stop_client()
		self.session_id = None
		self.target_id = None
		self._bindings_registered = False

	async def _stop_client(self) -> None:
		if self.cdp_client is None:
			return
		try:
			await self.cdp_client.stop()
		except Exception as e:
			logger.debug(f'Error while closing CDP client: {e}')
		finally:
			self.cdp_client = None

	def _require_client(self) -> CDPClient:
		if self.cdp_client is None or self.session_id is None:
			raise SessionDisconnectedError('Browser session is not connected; call start() first')
		return self.cdp_client

	async def __aenter__(self) -> 'BrowserSession':
		return await self.start()

	async def __aexit__(self, exc_type, exc_value, traceback) -> None:
		await self.stop()

	# --- driver surface ---

	@time_execution_async('--navigate')
	async def navigate(self, url: str, ready_condition: str = 'complete', timeout: float | None = None) -> None:
		"""Navigate and wait (bounded) until document.readyState reaches `ready_condition`."""
		client = self._require_client()
		timeout = CONFIG.RABBIT_BROWSER_NAVIGATION_TIMEOUT if timeout is None else timeout
		try:
			result = await asyncio.wait_for(
				client.send.Page.navigate(params={'url': url}, session_id=self.session_id), timeout=timeout
			)
		except asyncio.TimeoutError as e:
			raise NavigationTimeoutError(url, timeout) from e
		except Exception as e:
			raise BrowserSessionError(f'Navigation to {url} failed: {e}') from e
		if result.get('errorText'):
			raise BrowserSessionError(f'Navigation to {url} failed: {result["errorText"]}')

		logger.info(f'🔗 Navigated to {url}')
		await self.wait_for_ready_state(ready_condition, timeout=timeout, url=url)

	async def wait_for_ready_state(self, ready_condition: str = 'complete', timeout: float = 10.0, url: str = '') -> None:
		wanted = READY_STATES.index(ready_condition) if ready_condition in READY_STATES else len(READY_STATES) - 1
		deadline = time.monotonic() + timeout
		while True:
			try:
				state = await self.evaluate(READY_STATE_JS)
			except ScriptEvaluationError:
				# the execution context is replaced while a navigation commits
				state = 'loading'
			if state in READY_STATES and READY_STATES.index(state) >= wanted:
				return
			if time.monotonic() >= deadline:
				raise NavigationTimeoutError(url or 'current page', timeout)
			await asyncio.sleep(0.1)

	async def evaluate(self, script: str, arg: Any = None) -> Any:
		"""Evaluate a function-expression script with one JSON argument and return its JSON result."""
		client = self._require_client()
		expression = f'({script})({json.dumps(arg)})'
		try:
			result = await client.send.Runtime.evaluate(
				params={'expression': expression, 'returnByValue': True, 'awaitPromise': True},
				session_id=self.session_id,
			)
		except Exception as e:
			raise BrowserSessionError(f'Runtime.evaluate failed: {e}') from e

		if result.get('exceptionDetails'):
			details = result['exceptionDetails']
			message = details.get('exception', {}).get('description') or details.get('text', 'unknown error')
			raise ScriptEvaluationError(f'Page script threw: {message}')
		return result.get('result', {}).get('value')

	def on_console_message(self, handler: Callable[[ConsoleMessage], None]) -> None:
		self._console_handlers.append(handler)

	async def add_binding(self, name: str, handler: Callable[[str], None]) -> None:
		"""Expose `window[name](payload)` to the page; payloads are delivered to `handler`."""
		client = self._require_client()
		self._binding_handlers[name] = handler
		await client.send.Runtime.addBinding(params={'name': name}, session_id=self.session_id)
		if not self._bindings_registered:
			client.register.Runtime.bindingCalled(self._handle_binding_called)
			self._bindings_registered = True

	@time_execution_async('--screenshot')
	async def screenshot(self, path: str | None = None) -> bytes:
		client = self._require_client()
		try:
			result = await client.send.Page.captureScreenshot(params={'format': 'png'}, session_id=self.session_id)
		except Exception as e:
			raise BrowserSessionError(f'Screenshot failed: {e}') from e
		data = base64.b64decode(result['data'])
		if path:
			Path(path).parent.mkdir(parents=True, exist_ok=True)
			Path(path).write_bytes(data)
			logger.info(f'📸 Screenshot saved to {path}')
		return data

	async def get_current_page_url(self) -> str:
		info = await self.evaluate(PAGE_INFO_JS)
		return (info or {}).get('url', '')

	# --- CDP event handlers (cdp_use calls these synchronously) ---

	def _handle_console_api_called(self, event: dict[str, Any], session_id: str | None = None) -> None:
		if session_id is not None and session_id != self.session_id:
			return
		parts = []
		for arg in event.get('args', []):
			value = arg.get('value', arg.get('description', ''))
			parts.append(value if isinstance(value, str) else json.dumps(value))
		message = ConsoleMessage(type=event.get('type', 'log'), text=' '.join(parts))
		for handler in self._console_handlers:
			try:
				handler(message)
			except Exception as e:
				logger.debug(f'Console handler failed: {e}')

	def _handle_binding_called(self, event: dict[str, Any], session_id: str | None = None) -> None:
		if session_id is not None and session_id != self.session_id:
			return
		handler = self._binding_handlers.get(event.get('name', ''))
		if handler is None:
			return
		try:
			handler(event.get('payload', ''))
		except Exception as e:
			logger.warning(f'⚠️ Binding handler for {event.get("name")} failed: {e}')

	def _relay_console(self, message: ConsoleMessage) -> None:
		if not message.text.startswith(self.console_prefix):
			return
		text = message.text[len(self.console_prefix) :].strip()
		if message.type in ('error', 'assert'):
			page_logger.warning(text)
		else:
			page_logger.info(text)
