from conftest import FakePage, el
from test_live_index import Scanner

from rabbit_browser.detector.diagnostics import format_element_line, summary_lines
from rabbit_browser.dom.projector import ExtractionProjector
from rabbit_browser.utils import truncate


def scanned(page: FakePage):
	scanner = Scanner(page)
	scanner.scan()
	entries = scanner.index.snapshot()
	return ExtractionProjector().project(entries), entries


def test_truncate():
	assert truncate('  short   text ', 30) == 'short text'
	assert truncate('x' * 35, 30) == 'x' * 30 + '...'


def test_element_line_format():
	_, entries = scanned(
		FakePage(el('button', 'Accept all cookies and continue browsing', id='ok', rect=(12.4, 40.6, 120, 32)))
	)
	assert format_element_line(1, entries[0]) == (
		'  1. button id="ok" | text: "Accept all cookies and continu..." | 120x32 @ (12,41)'
	)


def test_element_line_without_id():
	_, entries = scanned(FakePage(el('a', 'Home', href='/')))
	assert format_element_line(2, entries[0]) == '  2. a | text: "Home" | 100x20 @ (10,10)'


def test_summary_shows_consent_lines_by_default():
	snapshot, entries = scanned(FakePage(el('a', 'Home', href='/'), el('button', 'Reject all', id='no')))
	assert summary_lines(snapshot, entries) == [
		'2 elements found',
		'1 consent buttons on the page',
		'  1. button id="no" | text: "Reject all" | 100x20 @ (10,10)',
	]


def test_summary_with_details_lists_every_element():
	snapshot, entries = scanned(FakePage(el('a', 'Home', href='/'), el('button', 'Reject all', id='no')))
	lines = summary_lines(snapshot, entries, log_details=True)
	assert lines[2:] == [
		'  1. a | text: "Home" | 100x20 @ (10,10)',
		'  2. button id="no" | text: "Reject all" | 100x20 @ (10,10)',
	]
