import logging
import re

from rabbit_browser.dom.probe import is_visible
from rabbit_browser.dom.views import (
	EXCLUDED_RECORD_ATTRIBUTE_PREFIXES,
	EXCLUDED_RECORD_ATTRIBUTES,
	DOMElementNode,
	ElementRecord,
	IndexEntry,
	Role,
	ScanSnapshot,
)

logger = logging.getLogger(__name__)

FORM_FIELD_TAGS = {'input', 'textarea', 'select'}
# Attributes that usually single out an element when it has no id
DISTINGUISHING_ATTRIBUTES = ('name', 'data-testid', 'aria-label', 'type', 'href')
_SIMPLE_IDENT = re.compile(r'^[A-Za-z_][\w-]*$')


def _css_string(value: str) -> str:
	return value.replace('\\', '\\\\').replace('"', '\\"')


def build_selector(node: DOMElementNode) -> str:
	"""
	Advisory CSS selector for an element: `#id`, else the tag plus a distinguishing
	attribute or its first class. Not guaranteed unique; identity lives in the index.
	"""
	element_id = node.element_id
	if element_id:
		if _SIMPLE_IDENT.match(element_id):
			return f'#{element_id}'
		return f'[id="{_css_string(element_id)}"]'

	for attr in DISTINGUISHING_ATTRIBUTES:
		value = node.attributes.get(attr)
		if value and len(value) <= 100:
			return f'{node.tag_name}[{attr}="{_css_string(value)}"]'

	classes = node.class_tokens
	if classes and _SIMPLE_IDENT.match(classes[0]):
		return f'{node.tag_name}.{classes[0]}'
	return node.tag_name


def record_attributes(node: DOMElementNode) -> dict[str, str]:
	return {
		name: value
		for name, value in node.attributes.items()
		if name not in EXCLUDED_RECORD_ATTRIBUTES and not name.startswith(EXCLUDED_RECORD_ATTRIBUTE_PREFIXES)
	}


class ExtractionProjector:
	"""Turns live index entries into caller-facing element records."""

	def __init__(self, focus_on_consent: bool = False, max_label_text: int = 50):
		self.focus_on_consent = focus_on_consent
		self.max_label_text = max_label_text

	def to_record(self, entry: IndexEntry) -> ElementRecord:
		node = entry.ref
		is_form_input = Role.FORM_INPUT in entry.roles
		data: dict = {
			'index': entry.handle,
			'text': node.text,
			'immediate_text': node.immediate_text or None,
			'tag_name': node.tag_name,
			'type': node.attributes.get('type'),
			'id': node.element_id or None,
			'class_name': node.attributes.get('class') or None,
			'href': node.href or node.attributes.get('href'),
			'value': node.value,
			'attributes': record_attributes(node),
			'selector': build_selector(node),
			'is_visible': is_visible(node),
			'is_clickable': entry.is_interactive,
			'is_form_input': is_form_input,
			'is_consent': entry.is_consent,
			'roles': sorted(r.value for r in entry.roles),
		}
		if is_form_input or node.tag_name in FORM_FIELD_TAGS:
			label = node.label
			if label and len(label) > self.max_label_text:
				label = label[: self.max_label_text]
			data.update(
				label=label or None,
				placeholder=node.attributes.get('placeholder'),
				name=node.attributes.get('name'),
				required='required' in node.attributes,
				checked=node.checked,
				options=node.options,
			)
		return ElementRecord(**data)

	def project(self, entries: list[IndexEntry], scan_sequence: int = 0, elapsed_ms: int = 0) -> ScanSnapshot:
		"""Project index entries (handle order) into a snapshot; detached elements are left out."""
		live = [e for e in entries if e.ref.is_connected]
		skipped = len(entries) - len(live)
		if skipped:
			logger.debug(f'Skipping {skipped} detached entries in projection')

		interactive: list[ElementRecord] = []
		consent: list[ElementRecord] = []
		text_blocks: list[ElementRecord] = []
		for entry in live:
			record = self.to_record(entry)
			if entry.is_interactive or entry.is_consent:
				interactive.append(record)
			else:
				text_blocks.append(record)
			if entry.is_consent:
				consent.append(record)

		elements = interactive
		if self.focus_on_consent and consent:
			elements = list(consent)

		return ScanSnapshot(
			elements=tuple(elements),
			consent_elements=tuple(consent),
			text_blocks=tuple(text_blocks),
			scan_sequence=scan_sequence,
			elapsed_ms=elapsed_ms,
		)
