import itertools

from conftest import FakePage, el, node_by_id

from rabbit_browser.dom.classifier import ElementClassifier
from rabbit_browser.dom.dedupe import ContainmentDeduplicator
from rabbit_browser.dom.index import LiveIndex
from rabbit_browser.dom.mirror import DocumentMirror
from rabbit_browser.dom.probe import probe
from rabbit_browser.dom.views import Candidate, Role


class Scanner:
	"""Mirror + classifier + index, the synchronous core of a detector."""

	def __init__(self, page: FakePage, classifier: ElementClassifier | None = None):
		self.page = page
		self.classifier = classifier or ElementClassifier()
		self.mirror = DocumentMirror()
		self.index = LiveIndex(ContainmentDeduplicator(self.classifier.is_clickable))

	def candidates(self) -> list[Candidate]:
		nodes = self.mirror.update(self.page.collect())
		result = []
		for node in nodes:
			box = probe(node)
			roles = self.classifier.classify(node)
			if box is not None and roles:
				result.append(Candidate(ref=node, roles=frozenset(roles), box=box, text=node.text))
		return result

	def scan(self) -> list[int]:
		return self.index.merge(self.candidates())


def assert_containment_invariant(index: LiveIndex):
	entries = index.snapshot()
	for a, b in itertools.permutations(entries, 2):
		assert not a.ref.is_ancestor_of(b.ref), f'{a.ref!r} contains {b.ref!r}'


class TestMerge:
	def test_handles_start_at_one_in_document_order(self):
		scanner = Scanner(FakePage(el('a', 'Home', href='/'), el('button', 'Go'), el('input', type='email')))
		assert scanner.scan() == [1, 2, 3]
		assert [e.ref.tag_name for e in scanner.index.snapshot()] == ['a', 'button', 'input']

	def test_remerge_of_the_same_document_is_idempotent(self):
		scanner = Scanner(FakePage(el('div', el('button', 'A'), el('button', 'B'), onclick='x()'), el('a', 'C', href='#')))
		first = scanner.scan()
		before = [(e.handle, e.ref) for e in scanner.index.snapshot()]

		assert scanner.scan() == []
		assert scanner.scan() == []
		assert [(e.handle, e.ref) for e in scanner.index.snapshot()] == before
		assert len(first) == 2

	def test_handles_are_monotonic_and_never_reused(self):
		first = el('button', 'First')
		page = FakePage(first)
		scanner = Scanner(page)
		assert scanner.scan() == [1]

		page.remove(first, notify=False)
		scanner.scan()
		page.append(page.body, el('button', 'Second'), notify=False)
		assert scanner.scan() == [2]
		page.append(page.body, el('button', 'Third'), notify=False)
		assert scanner.scan() == [3]

		handles = [e.handle for e in scanner.index.snapshot()]
		assert handles == sorted(handles) == [1, 2, 3]

	def test_removed_elements_keep_their_entry(self):
		banner = el('button', 'Accept')
		page = FakePage(banner)
		scanner = Scanner(page)
		scanner.scan()
		entry = scanner.index.get(1)

		page.remove(banner, notify=False)
		scanner.scan()
		assert scanner.index.get(1) is entry
		assert entry.ref.is_connected is False

	def test_existing_entry_outranks_a_new_ancestor(self):
		wrapper = el('div', el('button', 'Inner', id='inner'), id='wrapper')
		page = FakePage(wrapper)
		scanner = Scanner(page)
		scanner.scan()

		wrapper.attrs['onclick'] = 'go()'
		assert scanner.scan() == []
		assert [e.ref.element_id for e in scanner.index.snapshot()] == ['inner']

	def test_existing_entry_outranks_a_new_descendant(self):
		card = el('div', el('p', 'Loading...'), id='card', onclick='open()')
		page = FakePage(card)
		scanner = Scanner(page)
		scanner.scan()

		page.append(card, el('button', 'Details', id='details'), notify=False)
		assert scanner.scan() == []
		assert [e.ref.element_id for e in scanner.index.snapshot()] == ['card']

	def test_has_uses_reference_identity(self):
		page = FakePage(el('button', 'Go', id='go'))
		scanner = Scanner(page)
		scanner.scan()
		node = node_by_id(scanner.mirror.order, 'go')
		assert scanner.index.has(node)

		other = Scanner(FakePage(el('button', 'Go', id='go')))
		other.scan()
		assert not scanner.index.has(node_by_id(other.mirror.order, 'go'))

	def test_overlay_lifetime_and_kind(self):
		scanner = Scanner(
			FakePage(el('button', 'Accept all'), el('h2', 'Heading'), el('a', 'Docs', href='/docs')),
			ElementClassifier(highlight_all_text=True),
		)
		scanner.scan()
		kinds = {e.handle: e.overlay.kind for e in scanner.index.snapshot()}
		assert kinds == {1: 'consent', 2: 'text', 3: 'element'}
		assert all(e.overlay.label == str(e.handle) for e in scanner.index.snapshot())
		assert scanner.index.get(2).roles == {Role.TEXT_BLOCK}

	def test_reset_drops_everything(self):
		scanner = Scanner(FakePage(el('button', 'Go')))
		scanner.scan()
		scanner.index.reset()
		assert len(scanner.index) == 0
		assert scanner.index.overlays() == []
		assert scanner.index.get(1) is None


def test_containment_invariant_holds_across_mutations():
	page = FakePage(
		el('nav', el('a', 'One', href='/1'), el('a', el('span', 'Two', cursor='pointer'), href='/2')),
		el('section', el('div', el('div', 'Card', cursor='pointer'), onclick='c()'), el('p', 'Read ', el('a', 'more', href='#'))),
		el('form', el('label', 'Name', el('input', type='text')), el('button', 'Send', type='submit')),
	)
	scanner = Scanner(page, ElementClassifier(highlight_all_text=True))
	scanner.scan()
	assert_containment_invariant(scanner.index)

	section = page.body.element_children[1]
	section.attrs['onclick'] = 'section()'
	page.append(section, el('button', 'Late'), notify=False)
	page.append(page.body, el('div', el('button', 'Accept'), el('a', 'Cookies', href='/c')), notify=False)
	scanner.scan()
	assert_containment_invariant(scanner.index)
