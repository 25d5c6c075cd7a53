class RabbitBrowserError(Exception):
	"""Base class for all rabbit_browser errors."""


class ElementDetachedError(RabbitBrowserError):
	"""The element was removed from the document."""


class StyleUnavailableError(RabbitBrowserError):
	"""The page could not compute style or geometry for an element (e.g. cross-origin frame)."""


class PatternError(RabbitBrowserError):
	"""A configured matching pattern could not be compiled."""

	def __init__(self, pattern: str, reason: str):
		self.pattern = pattern
		self.reason = reason
		super().__init__(f'Invalid pattern {pattern!r}: {reason}')


class BrowserSessionError(RabbitBrowserError):
	"""Session-level failure; the detector cannot recover from these."""


class NavigationTimeoutError(BrowserSessionError):
	def __init__(self, url: str, timeout: float):
		self.url = url
		self.timeout = timeout
		super().__init__(f'Navigation to {url} did not reach a ready state within {timeout}s')


class SessionDisconnectedError(BrowserSessionError):
	"""The remote debugging connection is closed or was never opened."""


class ScriptEvaluationError(BrowserSessionError):
	"""A page-side script threw."""


class ElementNotFoundError(RabbitBrowserError):
	def __init__(self, index: int):
		self.index = index
		super().__init__(f'Element index {index} not found in the detected elements')
