"""
Screenshot highlighting for detected elements.

Draws the numbered boxes of the live index onto a PNG screenshot with Pillow, so a
detection run can be inspected without the in-page overlays.
"""

import logging
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from rabbit_browser.browser.views import Viewport
from rabbit_browser.dom.views import IndexEntry, Rect, Role

logger = logging.getLogger(__name__)

# Color per overlay kind, matching the in-page overlay colors
KIND_COLORS = {
	'element': '#FF0000',
	'consent': '#FF8C00',
	'text': '#1E90FF',
}
FORM_INPUT_COLOR = '#4ECDC4'


def get_entry_color(entry: IndexEntry) -> str:
	if entry.overlay.kind == 'element' and Role.FORM_INPUT in entry.roles and Role.CLICKABLE not in entry.roles:
		return FORM_INPUT_COLOR
	return KIND_COLORS.get(entry.overlay.kind, KIND_COLORS['element'])


def _load_font(size: int = 12):
	for path in ('arial.ttf', '/System/Library/Fonts/Arial.ttf', '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'):
		try:
			return ImageFont.truetype(path, size)
		except OSError:
			continue
	return ImageFont.load_default()


def viewport_box(entry: IndexEntry, viewport: Viewport) -> Rect | None:
	"""The entry's box relative to the visible area, from its overlay when it has been synced."""
	if entry.overlay.box is not None:
		return entry.overlay.box.translate(-viewport.scroll_x, -viewport.scroll_y)
	return entry.ref.rect


def create_highlighted_image(
	screenshot: bytes,
	entries: list[IndexEntry],
	viewport: Viewport | None = None,
	scale: float = 1.0,
	show_index_labels: bool = True,
	box_thickness: int = 2,
) -> bytes:
	"""
	Return a PNG with a box (and index label) drawn around every connected entry.

	`scale` converts CSS pixels to screenshot pixels (the device pixel ratio).
	"""
	viewport = viewport or Viewport()
	image = Image.open(BytesIO(screenshot)).convert('RGB')
	draw = ImageDraw.Draw(image)
	font = _load_font()

	drawn = 0
	for entry in entries:
		if not entry.ref.is_connected:
			continue
		box = viewport_box(entry, viewport)
		if box is None or box.width <= 0 or box.height <= 0:
			continue

		x, y = int(box.x * scale), int(box.y * scale)
		x2, y2 = int(box.right * scale), int(box.bottom * scale)
		if x2 < 0 or y2 < 0 or x > image.width or y > image.height:
			continue

		color = get_entry_color(entry)
		for i in range(box_thickness):
			draw.rectangle([x - i, y - i, x2 + i, y2 + i], outline=color, fill=None)

		if show_index_labels:
			label = entry.overlay.label
			label_x = max(0, x - 2)
			label_y = max(0, y - 18)
			bbox = draw.textbbox((label_x, label_y), label, font=font)
			draw.rectangle([bbox[0] - 2, bbox[1] - 2, bbox[2] + 2, bbox[3] + 2], fill=color, outline=None)
			draw.text((label_x, label_y), label, fill='white', font=font)
		drawn += 1

	logger.debug(f'🖍️ Highlighted {drawn} elements on screenshot')
	output = BytesIO()
	image.save(output, format='PNG')
	return output.getvalue()
