"""Human-readable diagnostic lines about a detection run."""

import logging

from rabbit_browser.dom.views import IndexEntry, ScanSnapshot
from rabbit_browser.utils import truncate

logger = logging.getLogger(__name__)

DIAGNOSTIC_TEXT_LIMIT = 30


def format_element_line(position: int, entry: IndexEntry) -> str:
	node = entry.ref
	id_part = f' id="{node.element_id}"' if node.element_id else ''
	text = truncate(node.text, DIAGNOSTIC_TEXT_LIMIT)
	rect = node.rect
	if rect is None:
		geometry = 'no geometry'
	else:
		geometry = f'{round(rect.width)}x{round(rect.height)} @ ({round(rect.x)},{round(rect.y)})'
	return f'  {position}. {node.tag_name}{id_part} | text: "{text}" | {geometry}'


def summary_lines(snapshot: ScanSnapshot, entries: list[IndexEntry], log_details: bool = False) -> list[str]:
	"""
	Summary of a snapshot: element and consent counts, plus one line per consent
	element (or per element when `log_details` is set).
	"""
	lines = [
		f'{snapshot.count} elements found',
		f'{len(snapshot.consent_elements)} consent buttons on the page',
	]
	by_handle = {e.handle: e for e in entries}
	shown = snapshot.elements if log_details else snapshot.consent_elements
	for position, record in enumerate(shown, start=1):
		entry = by_handle.get(record.index)
		if entry is not None:
			lines.append(format_element_line(position, entry))
	return lines


def log_summary(snapshot: ScanSnapshot, entries: list[IndexEntry], log_details: bool = False) -> None:
	for line in summary_lines(snapshot, entries, log_details):
		logger.info(line)
