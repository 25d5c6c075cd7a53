"""
Simple usage: detect the interactive elements of a page.

Start Chrome with remote debugging first:
    google-chrome --remote-debugging-port=9222

Then run:
    python examples/simple_usage.py https://example.com
"""

import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from rabbit_browser import RabbitBrowser, setup_logging


async def main(url: str):
	setup_logging()

	async with RabbitBrowser({'log_details': True}) as browser:
		await browser.go(url)

		print(f'\n{browser.get_element_count()} interactive elements on {url}\n')
		for element in browser.get_elements():
			marker = '🍪' if element.is_consent else '  '
			print(f'{marker} [{element.index}] <{element.tag_name}> {element.text[:60]!r} -> {element.selector}')

		context = browser.get_page_context()
		if context is not None:
			print(f'\nTitle: {context.title}')
			if context.headings and context.headings.h1:
				print(f'H1: {context.headings.h1[0]}')

		await browser.get_highlighted_screenshot('highlighted.png')


if __name__ == '__main__':
	asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else 'https://example.com'))
