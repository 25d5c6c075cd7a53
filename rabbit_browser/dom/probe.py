"""Geometry & visibility probe: is an element rendered, and where."""

import logging

from rabbit_browser.dom.views import DOMElementNode, Rect

logger = logging.getLogger(__name__)


def probe(ref: DOMElementNode) -> Rect | None:
	"""
	Return the element's viewport-relative box, or None when it should be rejected.

	Rejects zero-area boxes, `display: none` and `visibility: hidden`. Any failure while
	reading geometry or style (detached node, cross-origin frame) is treated as a rejection.
	"""
	try:
		rect = ref.bounding_box
		style = ref.style
	except Exception as e:
		logger.debug(f'Probe skipped {ref!r}: {e}')
		return None

	if rect.width <= 0 or rect.height <= 0:
		return None
	if style.get('display', '').strip().lower() == 'none':
		return None
	if style.get('visibility', '').strip().lower() == 'hidden':
		return None
	return rect


def is_visible(ref: DOMElementNode) -> bool:
	return probe(ref) is not None
