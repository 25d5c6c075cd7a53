import logging

from rabbit_browser.dom.dedupe import ContainmentDeduplicator, contains_or_contained
from rabbit_browser.dom.views import Candidate, DOMElementNode, IndexEntry, OverlayHandle, Role

logger = logging.getLogger(__name__)


class LiveIndex:
	"""
	Accumulated, deduplicated set of detected elements for one document session.

	The index exclusively owns its entries and their overlays. Entries are never removed
	while the session lives: a node that leaves the document keeps its entry (and handle),
	it is just skipped by projections and overlay sync. `reset()` drops everything.
	"""

	def __init__(self, deduplicator: ContainmentDeduplicator):
		self._deduplicator = deduplicator
		self._entries: list[IndexEntry] = []
		# keyed by id() of the ref; refs are identity-stable for the session
		self._by_ref: dict[int, IndexEntry] = {}
		self._next_handle = 1
		self.scan_sequence = 0

	def __len__(self) -> int:
		return len(self._entries)

	def has(self, ref: DOMElementNode) -> bool:
		entry = self._by_ref.get(id(ref))
		return entry is not None and entry.ref is ref

	def get(self, handle: int) -> IndexEntry | None:
		# handles are contiguous from 1 in insertion order
		if 1 <= handle <= len(self._entries):
			return self._entries[handle - 1]
		return None

	def entry_for(self, ref: DOMElementNode) -> IndexEntry | None:
		entry = self._by_ref.get(id(ref))
		if entry is not None and entry.ref is ref:
			return entry
		return None

	def merge(self, candidates: list[Candidate]) -> list[int]:
		"""
		Merge one scan pass into the index and return the newly assigned handles.

		Candidates must be in document order. Refs already indexed are skipped, and existing
		entries outrank new candidates that are their ancestors or descendants, so repeated
		merges of the same document are idempotent.
		"""
		self.scan_sequence += 1
		fresh = [c for c in candidates if not self.has(c.ref)]
		if not fresh:
			return []

		accepted_refs = [e.ref for e in self._entries]
		survivors = self._deduplicator.dedupe(fresh, accepted=accepted_refs)

		new_handles: list[int] = []
		for candidate in survivors:
			# no entry may contain another
			if any(contains_or_contained(candidate.ref, e.ref) for e in self._entries):
				continue
			entry = self._insert(candidate)
			new_handles.append(entry.handle)

		if new_handles:
			logger.debug(f'➕ Scan #{self.scan_sequence} indexed {len(new_handles)} new elements: {new_handles}')
		return new_handles

	def _insert(self, candidate: Candidate) -> IndexEntry:
		handle = self._next_handle
		self._next_handle += 1
		kind = 'consent' if Role.CONSENT_CANDIDATE in candidate.roles else 'element'
		if candidate.roles == {Role.TEXT_BLOCK}:
			kind = 'text'
		entry = IndexEntry(
			handle=handle,
			ref=candidate.ref,
			roles=frozenset(candidate.roles),
			overlay=OverlayHandle(handle=handle, label=str(handle), kind=kind, box=candidate.box),
			first_seen_at=self.scan_sequence,
		)
		self._entries.append(entry)
		self._by_ref[id(candidate.ref)] = entry
		return entry

	def snapshot(self) -> list[IndexEntry]:
		"""Entries in handle order (a copy; callers cannot mutate the index through it)."""
		return list(self._entries)

	def overlays(self) -> list[OverlayHandle]:
		return [e.overlay for e in self._entries]

	def reset(self) -> None:
		self._entries.clear()
		self._by_ref.clear()
		self._next_handle = 1
		self.scan_sequence = 0
