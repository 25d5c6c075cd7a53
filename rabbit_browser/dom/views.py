from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rabbit_browser.exceptions import ElementDetachedError, StyleUnavailableError

# Attributes never copied into element records (internal or noisy)
EXCLUDED_RECORD_ATTRIBUTES = {'style', 'class', 'id', 'tabindex'}
EXCLUDED_RECORD_ATTRIBUTE_PREFIXES = ('data-rabbit', 'data-highlight', 'aria')


class Role(str, enum.Enum):
	"""Why an element was accepted into the index."""

	CLICKABLE = 'clickable'
	FORM_INPUT = 'form-input'
	TEXT_BLOCK = 'text-block'
	CONSENT_CANDIDATE = 'consent-candidate'


INTERACTIVE_ROLES = frozenset({Role.CLICKABLE, Role.FORM_INPUT})


@dataclass(frozen=True)
class Rect:
	x: float
	y: float
	width: float
	height: float

	@property
	def right(self) -> float:
		return self.x + self.width

	@property
	def bottom(self) -> float:
		return self.y + self.height

	@property
	def area(self) -> float:
		return max(0.0, self.width) * max(0.0, self.height)

	def translate(self, dx: float, dy: float) -> 'Rect':
		return Rect(self.x + dx, self.y + dy, self.width, self.height)

	def intersection_ratio(self, other: 'Rect') -> float:
		"""Fraction of this rect's area covered by `other` (0.0 when this rect is empty)."""
		if self.area <= 0:
			return 0.0
		w = min(self.right, other.right) - max(self.x, other.x)
		h = min(self.bottom, other.bottom) - max(self.y, other.y)
		if w <= 0 or h <= 0:
			return 0.0
		return (w * h) / self.area

	@classmethod
	def from_dict(cls, data: dict[str, Any] | None) -> 'Rect | None':
		if not data:
			return None
		return cls(
			x=float(data.get('x', 0) or 0),
			y=float(data.get('y', 0) or 0),
			width=float(data.get('width', 0) or 0),
			height=float(data.get('height', 0) or 0),
		)


@dataclass(eq=False)
class DOMElementNode:
	"""
	Stable handle to one element of the live document.

	Identity is object identity: the document mirror hands out the same instance for the
	same page element on every read, so these objects can live in sets and dicts directly.
	Geometry and style accessors raise once the element has left the document.
	"""

	node_id: int
	tag_name: str
	attributes: dict[str, str] = field(default_factory=dict)
	parent: 'DOMElementNode | None' = field(default=None, repr=False)
	children: list['DOMElementNode'] = field(default_factory=list, repr=False)
	text: str = ''
	immediate_text: str = ''
	text_child_count: int = 0
	subtree_element_count: int = 0
	computed_style: dict[str, str] | None = field(default_factory=dict)
	rect: Rect | None = None
	# form control state
	value: str | None = None
	checked: bool | None = None
	href: str | None = None
	label: str | None = None
	options: list[str] | None = None
	is_connected: bool = True
	style_error: bool = False

	@property
	def child_element_count(self) -> int:
		return len(self.children)

	@property
	def bounding_box(self) -> Rect:
		if not self.is_connected:
			raise ElementDetachedError(f'<{self.tag_name}> #{self.node_id} is no longer attached')
		if self.style_error or self.rect is None:
			raise StyleUnavailableError(f'geometry unavailable for <{self.tag_name}> #{self.node_id}')
		return self.rect

	@property
	def style(self) -> dict[str, str]:
		if not self.is_connected:
			raise ElementDetachedError(f'<{self.tag_name}> #{self.node_id} is no longer attached')
		if self.style_error or self.computed_style is None:
			raise StyleUnavailableError(f'style unavailable for <{self.tag_name}> #{self.node_id}')
		return self.computed_style

	@property
	def element_id(self) -> str:
		return self.attributes.get('id', '')

	@property
	def class_tokens(self) -> list[str]:
		return self.attributes.get('class', '').split()

	@property
	def input_type(self) -> str:
		return self.attributes.get('type', '').strip().lower()

	@property
	def aria_role(self) -> str:
		return self.attributes.get('role', '').strip().lower()

	def ancestors(self):
		"""Yield parents from the nearest one up to the root."""
		node = self.parent
		while node is not None:
			yield node
			node = node.parent

	def is_ancestor_of(self, other: 'DOMElementNode') -> bool:
		return any(a is self for a in other.ancestors())

	def iter_subtree(self):
		"""Pre-order traversal including this node."""
		stack = [self]
		while stack:
			node = stack.pop()
			yield node
			stack.extend(reversed(node.children))

	def __repr__(self) -> str:
		ident = f'#{self.element_id}' if self.element_id else ''
		return f'<{self.tag_name}{ident} node_id={self.node_id}>'


@dataclass
class Candidate:
	"""An element that passed probe and classification in the current scan pass."""

	ref: DOMElementNode
	roles: frozenset[Role]
	box: Rect
	text: str = ''
	immediate_text: str = ''

	@property
	def is_interactive(self) -> bool:
		return bool(self.roles & INTERACTIVE_ROLES)


@dataclass
class OverlayHandle:
	"""Outline + numeric label pair drawn in absolute document coordinates."""

	handle: int
	label: str
	kind: str = 'element'
	box: Rect | None = None
	opacity: float = 0.0
	rendered: bool = False

	@property
	def dom_id(self) -> str:
		return f'rabbit-overlay-{self.handle}'


@dataclass
class IndexEntry:
	handle: int
	ref: DOMElementNode
	roles: frozenset[Role]
	overlay: OverlayHandle
	first_seen_at: int

	@property
	def is_interactive(self) -> bool:
		return bool(self.roles & INTERACTIVE_ROLES)

	@property
	def is_consent(self) -> bool:
		return Role.CONSENT_CANDIDATE in self.roles


class ElementRecord(BaseModel):
	"""Caller-facing description of one detected element (serializes with camelCase keys)."""

	model_config = ConfigDict(populate_by_name=True, frozen=True)

	index: int
	text: str
	immediate_text: str | None = Field(default=None, alias='immediateText')
	tag_name: str = Field(alias='tagName')
	type: str | None = None
	id: str | None = None
	class_name: str | None = Field(default=None, alias='className')
	href: str | None = None
	value: str | None = None
	attributes: dict[str, str] = Field(default_factory=dict)
	selector: str
	is_visible: bool = Field(alias='isVisible')
	is_clickable: bool = Field(alias='isClickable')
	is_form_input: bool = Field(default=False, alias='isFormInput')
	is_consent: bool = Field(default=False, alias='isConsent')
	roles: list[str] = Field(default_factory=list)
	# form input variants
	label: str | None = None
	placeholder: str | None = None
	name: str | None = None
	required: bool | None = None
	checked: bool | None = None
	options: list[str] | None = None


class ScanSnapshot(BaseModel):
	"""Immutable point-in-time projection of the live index."""

	model_config = ConfigDict(frozen=True)

	elements: tuple[ElementRecord, ...] = ()
	consent_elements: tuple[ElementRecord, ...] = ()
	text_blocks: tuple[ElementRecord, ...] = ()
	scan_sequence: int = 0
	elapsed_ms: int = 0

	@property
	def count(self) -> int:
		return len(self.elements)

	def to_dict(self) -> dict[str, Any]:
		return {
			'elements': [e.model_dump(by_alias=True, exclude_none=True) for e in self.elements],
			'consentElements': [e.model_dump(by_alias=True, exclude_none=True) for e in self.consent_elements],
			'textBlocks': [e.model_dump(by_alias=True, exclude_none=True) for e in self.text_blocks],
		}


class PageHeadings(BaseModel):
	h1: list[str] = Field(default_factory=list)
	h2: list[str] = Field(default_factory=list)
	h3: list[str] = Field(default_factory=list)


class PageContext(BaseModel):
	"""Short textual summary of the page, trimmed for token usage."""

	model_config = ConfigDict(populate_by_name=True)

	title: str = ''
	url: str = ''
	meta_description: str | None = Field(default=None, alias='metaDescription')
	headings: PageHeadings | None = None
	main_content: list[str] = Field(default_factory=list, alias='mainContent')
	navigation: list[str] = Field(default_factory=list)
	footer: str | None = None
