"""Containment-based deduplication of scan candidates."""

from collections.abc import Callable, Iterable

from rabbit_browser.dom.views import Candidate, DOMElementNode


def is_leaf_text(node: DOMElementNode) -> bool:
	"""A node holding exactly one text child and no element children."""
	return node.child_element_count == 0 and node.text_child_count == 1


def contains_or_contained(a: DOMElementNode, b: DOMElementNode) -> bool:
	return a is b or a.is_ancestor_of(b) or b.is_ancestor_of(a)


class ContainmentDeduplicator:
	"""
	Drops candidates that are ancestors or descendants of an already accepted element.

	Input must be in document (pre-order) order so that ancestors are seen before their
	descendants, which makes the outermost element win. Interactive candidates are
	processed first; text-only candidates are admitted afterwards only where they neither
	contain nor sit inside an accepted element, so a paragraph never swallows its links.
	"""

	def __init__(self, is_clickable: Callable[[DOMElementNode], bool]):
		self._is_clickable = is_clickable

	def dedupe(self, candidates: list[Candidate], accepted: Iterable[DOMElementNode] = ()) -> list[Candidate]:
		"""
		Return the surviving candidates in their input order.

		`accepted` holds refs that already won in an earlier pass; they always outrank new
		candidates that would be their ancestor or descendant.
		"""
		kept_refs: list[DOMElementNode] = list(accepted)
		survivors: list[Candidate] = []

		interactive = [c for c in candidates if c.is_interactive]
		text_only = [c for c in candidates if not c.is_interactive]

		for phase in (interactive, text_only):
			for candidate in phase:
				if self._rejected(candidate.ref, kept_refs):
					continue
				kept_refs.append(candidate.ref)
				survivors.append(candidate)

		order = {id(c): i for i, c in enumerate(candidates)}
		survivors.sort(key=lambda c: order[id(c)])
		return survivors

	def _rejected(self, ref: DOMElementNode, kept_refs: list[DOMElementNode]) -> bool:
		if is_leaf_text(ref) and ref.parent is not None and self._is_clickable(ref.parent):
			return True
		return any(contains_or_contained(ref, kept) for kept in kept_refs)
