import logging
from collections.abc import Iterable
from typing import Any

from rabbit_browser.dom.views import DOMElementNode, Rect
from rabbit_browser.utils import time_execution_sync

logger = logging.getLogger(__name__)


class DocumentMirror:
	"""
	Identity-preserving Python model of the live document.

	The page tags each element with a numeric id that is never reused. Every read replaces
	the state of known nodes in place, so one page element stays the same `DOMElementNode`
	object while it is in the document. Nodes missing from the latest read are marked
	detached rather than dropped, so existing references stay valid handles; `prune`
	later forgets the detached nodes nobody holds on to.
	"""

	def __init__(self):
		self._nodes: dict[int, DOMElementNode] = {}
		self.roots: list[DOMElementNode] = []
		self.order: list[DOMElementNode] = []

	def __len__(self) -> int:
		return len(self._nodes)

	def get(self, node_id: int) -> DOMElementNode | None:
		return self._nodes.get(node_id)

	@time_execution_sync('--mirror_update')
	def update(self, records: list[dict[str, Any]]) -> list[DOMElementNode]:
		"""Apply one full document read (pre-order records) and return the connected nodes in document order."""
		seen: set[int] = set()
		order: list[DOMElementNode] = []
		roots: list[DOMElementNode] = []

		for record in records:
			node_id = int(record['id'])
			node = self._nodes.get(node_id)
			if node is None:
				node = DOMElementNode(node_id=node_id, tag_name=str(record.get('tag', '')).lower())
				self._nodes[node_id] = node
			self._apply(node, record)
			node.children = []
			seen.add(node_id)
			order.append(node)

		for node, record in zip(order, records):
			parent_id = record.get('parentId')
			parent = self._nodes.get(parent_id) if parent_id is not None else None
			if parent is not None and parent.node_id in seen:
				node.parent = parent
				parent.children.append(node)
			else:
				node.parent = None
				roots.append(node)

		detached = 0
		for node_id, node in self._nodes.items():
			if node_id not in seen and node.is_connected:
				node.is_connected = False
				detached += 1
		if detached:
			logger.debug(f'🔌 {detached} mirrored elements left the document')

		self.order = order
		self.roots = roots
		return order

	@staticmethod
	def _apply(node: DOMElementNode, record: dict[str, Any]) -> None:
		node.tag_name = str(record.get('tag', node.tag_name)).lower()
		node.attributes = dict(record.get('attributes') or {})
		node.text = record.get('text') or ''
		node.immediate_text = record.get('immediateText') or ''
		node.text_child_count = int(record.get('textChildCount') or 0)
		node.subtree_element_count = int(record.get('subtreeElementCount') or 0)
		node.style_error = bool(record.get('error'))
		style = record.get('style')
		node.computed_style = dict(style) if style is not None else None
		node.rect = Rect.from_dict(record.get('rect'))
		node.value = record.get('value')
		node.checked = record.get('checked')
		node.href = record.get('href')
		node.label = record.get('label')
		node.options = record.get('options')
		node.is_connected = True

	def prune(self, keep: Iterable[DOMElementNode] = ()) -> int:
		"""Drop detached nodes except those in `keep`; returns how many were dropped."""
		kept = {id(node) for node in keep}
		gone = [node_id for node_id, node in self._nodes.items() if not node.is_connected and id(node) not in kept]
		for node_id in gone:
			del self._nodes[node_id]
		return len(gone)

	def reset(self) -> None:
		self._nodes.clear()
		self.roots = []
		self.order = []
