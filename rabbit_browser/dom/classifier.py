from rabbit_browser.dom.lexicon import ConsentLexicon
from rabbit_browser.dom.views import DOMElementNode, Role

CLICKABLE_TAGS = {'a', 'button', 'select'}
CLICKABLE_ARIA_ROLES = {'button', 'link', 'checkbox', 'radio', 'tab', 'menuitem', 'switch'}
CLICKABLE_INPUT_TYPES = {'button', 'submit', 'reset', 'checkbox', 'radio'}
CLICK_HANDLER_ATTRIBUTES = {'onclick', 'onmousedown', 'onmouseup'}

FORM_INPUT_TYPES = {
	'text',
	'email',
	'password',
	'search',
	'tel',
	'url',
	'number',
	'date',
	'datetime-local',
	'month',
	'week',
	'time',
	'color',
	'file',
	'range',
}

HEADING_TAGS = {'h1', 'h2', 'h3', 'h4', 'h5', 'h6'}
TEXT_CONTAINER_TAGS = {'p', 'li', 'label', 'blockquote', 'figcaption', 'dt', 'dd', 'td', 'th', 'legend', 'caption'}

# Generic containers acting as consent controls must look like a button, not a banner
CONSENT_GENERIC_TAGS = {'div', 'span'}
CONSENT_MAX_WIDTH = 500
CONSENT_MAX_HEIGHT = 100


class ElementClassifier:
	"""
	Capability-set classifier.

	Each category is decided by its own ordered rule function; an element may hold any
	combination of roles. The clickable rule is reused by the consent rule and by the
	deduplicator's leaf-text check.
	"""

	def __init__(
		self,
		include_form_inputs: bool = True,
		highlight_all_text: bool = False,
		text_block_max_elements: int = 12,
		lexicon: ConsentLexicon | None = None,
	):
		self.include_form_inputs = include_form_inputs
		self.highlight_all_text = highlight_all_text
		self.text_block_max_elements = text_block_max_elements
		self.lexicon = lexicon or ConsentLexicon()

	@classmethod
	def from_options(cls, options) -> 'ElementClassifier':
		return cls(
			include_form_inputs=options.include_form_inputs,
			highlight_all_text=options.highlight_all_text,
			text_block_max_elements=options.text_block_max_elements,
			lexicon=options.lexicon,
		)

	def classify(self, node: DOMElementNode) -> set[Role]:
		roles: set[Role] = set()
		if self.is_clickable(node):
			roles.add(Role.CLICKABLE)
		if self.include_form_inputs and self.is_form_input(node):
			roles.add(Role.FORM_INPUT)
		if self.highlight_all_text and self.is_text_block(node):
			roles.add(Role.TEXT_BLOCK)
		if self.is_consent_candidate(node):
			roles.add(Role.CONSENT_CANDIDATE)
		return roles

	# --- clickable ---

	@staticmethod
	def _has_clickable_tag(node: DOMElementNode) -> bool:
		return node.tag_name in CLICKABLE_TAGS

	@staticmethod
	def _has_clickable_aria_role(node: DOMElementNode) -> bool:
		return node.aria_role in CLICKABLE_ARIA_ROLES

	@staticmethod
	def _is_clickable_input(node: DOMElementNode) -> bool:
		return node.tag_name == 'input' and node.input_type in CLICKABLE_INPUT_TYPES

	@staticmethod
	def _has_click_handler(node: DOMElementNode) -> bool:
		return any(attr in node.attributes for attr in CLICK_HANDLER_ATTRIBUTES)

	@staticmethod
	def _has_pointer_cursor(node: DOMElementNode) -> bool:
		if not node.computed_style:
			return False
		return node.computed_style.get('cursor', '').strip().lower() == 'pointer'

	@staticmethod
	def is_clickable(node: DOMElementNode) -> bool:
		return (
			ElementClassifier._has_clickable_tag(node)
			or ElementClassifier._has_clickable_aria_role(node)
			or ElementClassifier._is_clickable_input(node)
			or ElementClassifier._has_click_handler(node)
			or ElementClassifier._has_pointer_cursor(node)
		)

	# --- form inputs ---

	@staticmethod
	def is_form_input(node: DOMElementNode) -> bool:
		if node.tag_name == 'input':
			# a missing type attribute means text
			input_type = node.input_type or 'text'
			if input_type == 'hidden' or input_type in CLICKABLE_INPUT_TYPES:
				return False
			return input_type in FORM_INPUT_TYPES
		if node.tag_name in ('textarea', 'select'):
			return True
		contenteditable = node.attributes.get('contenteditable')
		return contenteditable is not None and contenteditable.strip().lower() in ('', 'true', 'plaintext-only')

	# --- text blocks ---

	def is_text_block(self, node: DOMElementNode) -> bool:
		if node.tag_name in HEADING_TAGS:
			return True
		if node.tag_name not in TEXT_CONTAINER_TAGS:
			return False
		if not node.immediate_text.strip():
			return False
		return node.subtree_element_count < self.text_block_max_elements

	# --- consent ---

	def is_consent_candidate(self, node: DOMElementNode) -> bool:
		if not self.is_clickable(node):
			return False

		# known vendor controls skip the lexicon rules below, never the clickable check above
		if self.lexicon.is_vendor_control(node.element_id, node.class_tokens):
			return True

		text = (node.text or '').strip()
		if text and self.lexicon.is_excluded(text):
			return False

		has_action = bool(text) and self.lexicon.has_action_word(text)
		if node.tag_name == 'a' and not has_action and self.lexicon.mentions_cookie(text):
			# "Cookies" / "Cookie policy" links are navigation, not consent controls
			return False

		has_hint = self.lexicon.has_class_hint(node.element_id, node.class_tokens)
		matched = (
			has_action
			or has_hint
			or (node.tag_name == 'button' and self.lexicon.mentions_cookie(text))
		)
		if not matched:
			return False

		if node.tag_name in CONSENT_GENERIC_TAGS and not self._is_button_sized(node):
			return False
		return True

	@staticmethod
	def _is_button_sized(node: DOMElementNode) -> bool:
		if node.rect is None:
			return False
		return node.rect.width < CONSENT_MAX_WIDTH and node.rect.height < CONSENT_MAX_HEIGHT
