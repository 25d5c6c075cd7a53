"""Events exchanged on a detector's event bus."""

from bubus import BaseEvent
from pydantic import Field


class DocumentMutatedEvent(BaseEvent[None]):
	"""The page reported subtree insertions or removals."""

	mutation_count: int = 1


class RescanRequestedEvent(BaseEvent[None]):
	"""A full rescan of the document should run and merge into the live index."""

	reason: str = 'mutation'


class ScanCompletedEvent(BaseEvent[None]):
	scan_sequence: int
	new_handles: list[int] = Field(default_factory=list)


class ViewportChangedEvent(BaseEvent[None]):
	"""Scroll, resize or intersection change; overlays need repositioning."""

	reason: str = 'scroll'
