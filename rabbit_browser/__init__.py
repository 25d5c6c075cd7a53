"""
rabbit_browser: live detection of the interactive elements of a web page.
"""

from rabbit_browser.browser.session import BrowserSession
from rabbit_browser.config import CONFIG, DetectorOptions
from rabbit_browser.controller.service import Controller
from rabbit_browser.controller.views import ActionResult
from rabbit_browser.detector.service import ElementDetector
from rabbit_browser.dom.lexicon import ConsentLexicon
from rabbit_browser.dom.views import ElementRecord, PageContext, Role, ScanSnapshot
from rabbit_browser.exceptions import (
	BrowserSessionError,
	ElementNotFoundError,
	NavigationTimeoutError,
	RabbitBrowserError,
)
from rabbit_browser.logging_config import setup_logging
from rabbit_browser.service import RabbitBrowser

__all__ = [
	'RabbitBrowser',
	'BrowserSession',
	'ElementDetector',
	'Controller',
	'ActionResult',
	'DetectorOptions',
	'ConsentLexicon',
	'ElementRecord',
	'PageContext',
	'Role',
	'ScanSnapshot',
	'CONFIG',
	'setup_logging',
	'RabbitBrowserError',
	'BrowserSessionError',
	'NavigationTimeoutError',
	'ElementNotFoundError',
]
