import asyncio
import base64
import logging
from unittest.mock import AsyncMock, Mock

import pytest
from pytest_httpserver import HTTPServer

from rabbit_browser.browser.session import BrowserSession, resolve_websocket_url
from rabbit_browser.dom.scripts import READY_STATE_JS
from rabbit_browser.exceptions import (
	BrowserSessionError,
	NavigationTimeoutError,
	ScriptEvaluationError,
	SessionDisconnectedError,
)

WS_URL = 'ws://127.0.0.1:9222/devtools/browser/6b1e'


def connected_session(**evaluate_kwargs) -> BrowserSession:
	"""A session wired to a mocked CDP client, as if start() had attached to a page."""
	session = BrowserSession(cdp_url='http://127.0.0.1:9222', console_prefix='[HIGHLIGHT]')
	client = Mock()
	client.send.Runtime.evaluate = AsyncMock(**evaluate_kwargs)
	client.send.Runtime.addBinding = AsyncMock(return_value={})
	client.send.Page.navigate = AsyncMock(return_value={'frameId': 'F1'})
	client.send.Page.captureScreenshot = AsyncMock(return_value={'data': base64.b64encode(b'\x89PNG fake').decode()})
	session.cdp_client = client
	session.session_id = 'S1'
	session.target_id = 'T1'
	return session


class TestResolveWebsocketUrl:
	async def test_reads_version_endpoint(self, httpserver: HTTPServer):
		httpserver.expect_request('/json/version').respond_with_json({'webSocketDebuggerUrl': WS_URL})
		assert await resolve_websocket_url(httpserver.url_for('/')) == WS_URL

	async def test_websocket_urls_pass_through(self):
		assert await resolve_websocket_url(WS_URL) == WS_URL

	async def test_unreachable_endpoint_raises(self, httpserver: HTTPServer):
		httpserver.expect_request('/json/version').respond_with_data('nope', status=500)
		with pytest.raises(SessionDisconnectedError):
			await resolve_websocket_url(httpserver.url_for('/json/version'))

	async def test_missing_key_raises(self, httpserver: HTTPServer):
		httpserver.expect_request('/json/version').respond_with_json({'Browser': 'Chrome'})
		with pytest.raises(SessionDisconnectedError):
			await resolve_websocket_url(httpserver.url_for('/'))


class TestEvaluate:
	async def test_requires_a_connection(self):
		with pytest.raises(SessionDisconnectedError):
			await BrowserSession().evaluate(READY_STATE_JS)

	async def test_script_is_called_with_json_argument(self):
		session = connected_session(return_value={'result': {'type': 'number', 'value': 3}})
		assert await session.evaluate('(arg) => arg.ids.length', {'ids': [1, 2, 3]}) == 3

		params = session.cdp_client.send.Runtime.evaluate.await_args.kwargs['params']
		assert params['expression'] == '((arg) => arg.ids.length)({"ids": [1, 2, 3]})'
		assert params['returnByValue'] is True
		assert params['awaitPromise'] is True

	async def test_page_exceptions_raise_script_errors(self):
		session = connected_session(
			return_value={'exceptionDetails': {'text': 'Uncaught', 'exception': {'description': 'TypeError: x is null'}}}
		)
		with pytest.raises(ScriptEvaluationError, match='x is null'):
			await session.evaluate('() => x.y')

	async def test_transport_failures_raise_session_errors(self):
		session = connected_session(side_effect=ConnectionError('socket closed'))
		with pytest.raises(BrowserSessionError, match='socket closed'):
			await session.evaluate('() => 1')


class TestNavigate:
	async def test_waits_for_ready_state(self):
		session = connected_session(
			side_effect=[
				{'result': {'value': 'loading'}},
				{'result': {'value': 'interactive'}},
				{'result': {'value': 'complete'}},
			]
		)
		await session.navigate('https://example.test/', timeout=5)

		session.cdp_client.send.Page.navigate.assert_awaited_once()
		assert session.cdp_client.send.Runtime.evaluate.await_count == 3

	async def test_interactive_is_enough_when_asked_for(self):
		session = connected_session(return_value={'result': {'value': 'interactive'}})
		await session.navigate('https://example.test/', ready_condition='interactive', timeout=5)

	async def test_slow_navigation_times_out(self):
		session = connected_session(return_value={'result': {'value': 'complete'}})

		async def hang(**kwargs):
			await asyncio.sleep(5)

		session.cdp_client.send.Page.navigate = AsyncMock(side_effect=hang)
		with pytest.raises(NavigationTimeoutError):
			await session.navigate('https://slow.example.test/', timeout=0.05)

	async def test_document_that_never_completes_times_out(self):
		session = connected_session(return_value={'result': {'value': 'loading'}})
		with pytest.raises(NavigationTimeoutError, match='ready state'):
			await session.navigate('https://example.test/', timeout=0.15)

	async def test_navigation_error_text_raises(self):
		session = connected_session(return_value={'result': {'value': 'complete'}})
		session.cdp_client.send.Page.navigate = AsyncMock(return_value={'errorText': 'net::ERR_NAME_NOT_RESOLVED'})
		with pytest.raises(BrowserSessionError, match='ERR_NAME_NOT_RESOLVED'):
			await session.navigate('https://nowhere.invalid/')


class TestPageCallbacks:
	async def test_bindings_are_dispatched_by_name_and_session(self):
		session = connected_session()
		received = []
		await session.add_binding('notifyA', received.append)
		await session.add_binding('notifyB', lambda payload: received.append(f'B:{payload}'))

		session.cdp_client.register.Runtime.bindingCalled.assert_called_once()
		session._handle_binding_called({'name': 'notifyA', 'payload': '{"type":"mutation"}'}, 'S1')
		session._handle_binding_called({'name': 'notifyB', 'payload': 'x'}, 'S1')
		session._handle_binding_called({'name': 'notifyA', 'payload': 'other tab'}, 'S2')
		session._handle_binding_called({'name': 'unknown', 'payload': 'y'}, 'S1')

		assert received == ['{"type":"mutation"}', 'B:x']

	def test_prefixed_console_output_is_relayed(self, caplog):
		session = BrowserSession(console_prefix='[HIGHLIGHT]')
		session.session_id = 'S1'
		messages = []
		session.on_console_message(messages.append)

		with caplog.at_level(logging.INFO, logger='rabbit_browser.page'):
			session._handle_console_api_called(
				{'type': 'log', 'args': [{'type': 'string', 'value': '[HIGHLIGHT] Found'}, {'type': 'number', 'value': 3}]},
				'S1',
			)
			session._handle_console_api_called({'type': 'log', 'args': [{'type': 'string', 'value': 'unrelated'}]}, 'S1')
			session._handle_console_api_called(
				{'type': 'error', 'args': [{'type': 'string', 'value': '[HIGHLIGHT] overlay failed'}]}, 'S1'
			)

		relayed = [(r.levelname, r.getMessage()) for r in caplog.records if r.name == 'rabbit_browser.page']
		assert relayed == [('INFO', 'Found 3'), ('WARNING', 'overlay failed')]
		assert [m.text for m in messages] == ['[HIGHLIGHT] Found 3', 'unrelated', '[HIGHLIGHT] overlay failed']


class TestScreenshot:
	async def test_screenshot_is_decoded_and_saved(self, tmp_path):
		session = connected_session()
		path = tmp_path / 'shots' / 'page.png'
		data = await session.screenshot(str(path))
		assert data == b'\x89PNG fake'
		assert path.read_bytes() == data
