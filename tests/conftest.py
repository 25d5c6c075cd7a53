"""
Shared fixtures: an in-memory page that answers the detector's page scripts.

`FakePage` implements the driver surface (navigate, evaluate, console, bindings,
screenshot) over a small Python element tree, so the whole detection pipeline can run
without a browser. Elements are built with `el(tag, *children, **attrs)`; string children
are text nodes.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

import pytest
from PIL import Image

from rabbit_browser.dom import scripts
from rabbit_browser.dom.mirror import DocumentMirror
from rabbit_browser.dom.views import DOMElementNode
from rabbit_browser.exceptions import ScriptEvaluationError

DEFAULT_RECT = (10, 10, 100, 20)


@dataclass(eq=False)
class FakeElement:
	tag: str
	attrs: dict[str, str] = field(default_factory=dict)
	children: list[Any] = field(default_factory=list)
	rect: tuple[float, float, float, float] | None = DEFAULT_RECT
	display: str = 'block'
	visibility: str = 'visible'
	cursor: str = 'auto'
	style_error: bool = False
	value: str | None = None
	checked: bool | None = None
	options: list[str] | None = None
	label: str | None = None
	on_click: Callable[['FakePage', 'FakeElement'], None] | None = None
	parent: 'FakeElement | None' = None

	@property
	def element_children(self) -> list['FakeElement']:
		return [c for c in self.children if isinstance(c, FakeElement)]

	@property
	def text(self) -> str:
		parts = [c if isinstance(c, str) else c.text for c in self.children]
		return ' '.join(' '.join(parts).split())

	@property
	def immediate_text(self) -> str:
		return ' '.join(' '.join(c for c in self.children if isinstance(c, str)).split())

	def iter_elements(self):
		yield self
		for child in self.element_children:
			yield from child.iter_elements()


def el(
	tag: str,
	*children: Any,
	rect: tuple[float, float, float, float] | None = DEFAULT_RECT,
	display: str = 'block',
	visibility: str = 'visible',
	cursor: str = 'auto',
	style_error: bool = False,
	value: str | None = None,
	checked: bool | None = None,
	options: list[str] | None = None,
	label: str | None = None,
	on_click: Callable | None = None,
	**attrs: str,
) -> FakeElement:
	"""Build a fake element; `class_` becomes `class` and underscores in names become dashes."""
	attributes = {name.rstrip('_').replace('_', '-'): str(v) for name, v in attrs.items()}
	element = FakeElement(
		tag=tag,
		attrs=attributes,
		children=list(children),
		rect=rect,
		display=display,
		visibility=visibility,
		cursor=cursor,
		style_error=style_error,
		value=value,
		checked=checked,
		options=options,
		label=label,
		on_click=on_click,
	)
	for child in element.element_children:
		child.parent = element
	return element


class FakePage:
	def __init__(self, *children: Any, url: str = 'https://example.test/', title: str = 'Example'):
		self.body = el('body', *children)
		self.url = url
		self.title = title
		self.ready_state = 'complete'
		self.page_context: dict[str, Any] = {'title': title, 'url': url}
		self.scroll_x = 0.0
		self.scroll_y = 0.0
		self.width = 1280.0
		self.height = 800.0

		self._ids: dict[int, tuple[FakeElement, int]] = {}
		self._next_id = 1
		self.bindings: dict[str, Callable[[str], None]] = {}
		self.console_handlers: list[Callable] = []
		self.observers_installed = 0
		self.overlays: dict[str, dict[str, Any]] = {}
		self.actions: list[tuple[str, FakeElement, Any]] = []
		self.evaluated: list[str] = []
		self.fail_collect = False
		self.navigations: list[str] = []

	# --- driver surface ---

	async def navigate(self, url: str, ready_condition: str = 'complete', timeout: float | None = None) -> None:
		self.navigations.append(url)
		self.url = url

	async def evaluate(self, script: str, arg: Any = None) -> Any:
		self.evaluated.append(script)
		if script == scripts.COLLECT_ELEMENTS_JS:
			if self.fail_collect:
				raise ScriptEvaluationError('Page script threw: collector failed')
			return self.collect()
		if script == scripts.INSTALL_OBSERVERS_JS:
			self.observers_installed += 1
			return True
		if script == scripts.READ_GEOMETRY_JS:
			return self._geometry(arg['ids'])
		if script == scripts.RENDER_OVERLAYS_JS:
			for overlay in arg['overlays']:
				self.overlays[overlay['domId']] = overlay
			return {'rendered': len(arg['overlays']), 'failed': 0}
		if script == scripts.REMOVE_OVERLAYS_JS:
			self.overlays.clear()
			return 1
		if script == scripts.PAGE_CONTEXT_JS:
			return dict(self.page_context)
		if script == scripts.PAGE_INFO_JS:
			return {'url': self.url, 'title': self.title}
		if script == scripts.READY_STATE_JS:
			return self.ready_state
		if script in (scripts.CLICK_ELEMENT_JS, scripts.FILL_INPUT_JS, scripts.SELECT_OPTION_JS, scripts.SUBMIT_FORM_JS):
			return self._action(script, arg)
		raise AssertionError(f'FakePage got an unexpected script: {script[:60]!r}')

	def on_console_message(self, handler: Callable) -> None:
		self.console_handlers.append(handler)

	async def add_binding(self, name: str, handler: Callable[[str], None]) -> None:
		self.bindings[name] = handler

	async def screenshot(self, path: str | None = None) -> bytes:
		buffer = BytesIO()
		Image.new('RGB', (int(self.width), int(self.height)), 'white').save(buffer, format='PNG')
		data = buffer.getvalue()
		if path:
			with open(path, 'wb') as f:
				f.write(data)
		return data

	# --- document helpers for tests ---

	def append(self, parent: FakeElement, child: FakeElement, notify: bool = True) -> FakeElement:
		parent.children.append(child)
		child.parent = parent
		if notify:
			self.notify({'type': 'mutation', 'count': 1})
		return child

	def remove(self, child: FakeElement, notify: bool = True) -> None:
		assert child.parent is not None
		child.parent.children.remove(child)
		child.parent = None
		if notify:
			self.notify({'type': 'mutation', 'count': 1})

	def scroll_to(self, x: float, y: float) -> None:
		self.scroll_x, self.scroll_y = x, y
		self.notify({'type': 'viewport', 'reason': 'scroll'})

	def notify(self, payload: dict[str, Any]) -> None:
		for handler in self.bindings.values():
			handler(json.dumps(payload))

	def console(self, text: str, type: str = 'log') -> None:
		from rabbit_browser.browser.views import ConsoleMessage

		for handler in self.console_handlers:
			handler(ConsoleMessage(type=type, text=text))

	def node_id(self, element: FakeElement) -> int:
		known = self._ids.get(id(element))
		if known is None:
			known = (element, self._next_id)
			self._next_id += 1
			self._ids[id(element)] = known
		return known[1]

	def element_by_id(self, node_id: int) -> FakeElement | None:
		for element, known_id in self._ids.values():
			if known_id == node_id and self._is_attached(element):
				return element
		return None

	def _is_attached(self, element: FakeElement) -> bool:
		node = element
		while node.parent is not None:
			node = node.parent
		return node is self.body

	# --- script implementations ---

	def collect(self) -> list[dict[str, Any]]:
		records: list[dict[str, Any]] = []

		def visit(element: FakeElement, parent_id: int | None) -> None:
			node_id = self.node_id(element)
			record: dict[str, Any] = {
				'id': node_id,
				'parentId': parent_id,
				'tag': element.tag,
				'attributes': dict(element.attrs),
				'style': None,
				'rect': None,
				'text': element.text,
				'immediateText': element.immediate_text,
				'textChildCount': sum(1 for c in element.children if isinstance(c, str)),
				'subtreeElementCount': 0,
				'error': element.style_error,
			}
			if not element.style_error:
				record['style'] = {'display': element.display, 'visibility': element.visibility, 'cursor': element.cursor}
				if element.rect is not None:
					x, y, w, h = element.rect
					record['rect'] = {'x': x - self.scroll_x, 'y': y - self.scroll_y, 'width': w, 'height': h}
			if element.tag == 'a':
				record['href'] = element.attrs.get('href')
			if element.tag in ('input', 'textarea', 'select'):
				record['value'] = element.value
				record['label'] = element.label
				if element.checked is not None:
					record['checked'] = element.checked
				if element.tag == 'select':
					record['options'] = list(element.options or [])
			records.append(record)
			start = len(records)
			for child in element.element_children:
				visit(child, node_id)
			record['subtreeElementCount'] = len(records) - start

		for child in self.body.element_children:
			visit(child, None)
		return records

	def _geometry(self, ids: list[int]) -> dict[str, Any]:
		rects: dict[str, Any] = {}
		for node_id in ids:
			element = self.element_by_id(node_id)
			if element is None or element.rect is None:
				rects[str(node_id)] = None
				continue
			x, y, w, h = element.rect
			rects[str(node_id)] = {'x': x - self.scroll_x, 'y': y - self.scroll_y, 'width': w, 'height': h}
		return {
			'viewport': {'scrollX': self.scroll_x, 'scrollY': self.scroll_y, 'width': self.width, 'height': self.height},
			'rects': rects,
		}

	def _action(self, script: str, arg: dict[str, Any]) -> dict[str, Any]:
		element = self.element_by_id(arg['id'])
		if element is None:
			return {'ok': False, 'reason': 'detached'}
		if script == scripts.CLICK_ELEMENT_JS:
			self.actions.append(('click', element, None))
			if element.on_click is not None:
				element.on_click(self, element)
			return {'ok': True, 'tag': element.tag}
		if script == scripts.FILL_INPUT_JS:
			element.value = arg['text']
			self.actions.append(('fill', element, arg['text']))
			return {'ok': True, 'tag': element.tag}
		if script == scripts.SELECT_OPTION_JS:
			if element.tag != 'select':
				return {'ok': False, 'reason': 'not a select element'}
			if arg['value'] not in (element.options or []):
				return {'ok': False, 'reason': 'option not found', 'options': element.options}
			element.value = arg['value']
			self.actions.append(('select', element, arg['value']))
			return {'ok': True, 'tag': 'select', 'value': arg['value'], 'text': arg['value']}
		form = element
		while form is not None and form.tag != 'form':
			form = form.parent
		if form is None:
			return {'ok': False, 'reason': 'no enclosing form'}
		self.actions.append(('submit', form, None))
		return {'ok': True, 'tag': 'form'}


def mirror_nodes(*children: Any) -> tuple[FakePage, DocumentMirror, list[DOMElementNode]]:
	"""Build a page, read it once into a mirror and return the nodes in document order."""
	page = FakePage(*children)
	mirror = DocumentMirror()
	nodes = mirror.update(page.collect())
	return page, mirror, nodes


def node_by_id(nodes: list[DOMElementNode], element_id: str) -> DOMElementNode:
	for node in nodes:
		if node.element_id == element_id:
			return node
	raise KeyError(element_id)


class FakeClock:
	"""Simulated time for convergence tests: sleeping advances the clock instantly."""

	def __init__(self):
		self.now = 0.0
		self.sleeps: list[float] = []

	def __call__(self) -> float:
		return self.now

	async def sleep(self, seconds: float) -> None:
		self.sleeps.append(seconds)
		self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()
