import logging
import sys

from rabbit_browser.config import CONFIG

_THIRD_PARTY_LOGGERS = ('cdp_use', 'websockets', 'httpx', 'httpcore', 'bubus', 'PIL')


class RabbitBrowserFormatter(logging.Formatter):
	"""Drops the package prefix from logger names: rabbit_browser.detector.service -> detector.service"""

	def format(self, record: logging.LogRecord) -> str:
		if isinstance(record.name, str) and record.name.startswith('rabbit_browser.'):
			record.name = record.name[len('rabbit_browser.') :]
		return super().format(record)


def setup_logging(level: str | None = None, stream=None) -> logging.Logger:
	"""
	Install one stream handler on the `rabbit_browser` logger.

	Calling it again only updates the level. The level defaults to
	RABBIT_BROWSER_LOGGING_LEVEL (debug, info, warning, error, result).
	"""
	level_name = (level or CONFIG.RABBIT_BROWSER_LOGGING_LEVEL).lower()
	# 'result' keeps warnings and errors only
	log_level = {'result': logging.WARNING}.get(level_name, getattr(logging, level_name.upper(), logging.INFO))

	package_logger = logging.getLogger('rabbit_browser')
	package_logger.setLevel(log_level)
	package_logger.propagate = False

	existing = [h for h in package_logger.handlers if getattr(h, '_rabbit_browser_handler', False)]
	if not existing:
		handler = logging.StreamHandler(stream or sys.stdout)
		handler._rabbit_browser_handler = True  # type: ignore[attr-defined]
		handler.setFormatter(RabbitBrowserFormatter('%(levelname)-8s [%(name)s] %(message)s'))
		package_logger.addHandler(handler)

	for name in _THIRD_PARTY_LOGGERS:
		third_party = logging.getLogger(name)
		third_party.setLevel(logging.ERROR if log_level > logging.DEBUG else logging.WARNING)
		third_party.propagate = False

	package_logger.debug(f'Logging configured at {logging.getLevelName(log_level)}')
	return package_logger
