from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from rabbit_browser.dom.views import Rect


class Viewport(BaseModel):
	"""Scroll offset and size of the visible area, in CSS pixels"""

	model_config = ConfigDict(populate_by_name=True)

	scroll_x: float = Field(default=0, alias='scrollX')
	scroll_y: float = Field(default=0, alias='scrollY')
	width: float = 0
	height: float = 0

	@property
	def document_rect(self) -> Rect:
		"""The viewport expressed in document coordinates."""
		return Rect(self.scroll_x, self.scroll_y, self.width, self.height)


class ConsoleMessage(BaseModel):
	type: str = 'log'
	text: str = ''


class PageDriver(Protocol):
	"""What the detector needs from a page; `BrowserSession` is the CDP implementation."""

	async def navigate(self, url: str, ready_condition: str = 'complete', timeout: float | None = None) -> None: ...

	async def evaluate(self, script: str, arg: Any = None) -> Any: ...

	def on_console_message(self, handler: Callable[[ConsoleMessage], None]) -> None: ...

	async def add_binding(self, name: str, handler: Callable[[str], None]) -> None: ...

	async def screenshot(self, path: str | None = None) -> bytes: ...
