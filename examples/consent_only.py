"""
Find and click the "accept" button of a cookie banner.

Consent widgets are usually injected after the page loads, so the detector keeps
polling until at least one consent button shows up or the wait budget runs out.
"""

import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from rabbit_browser import DetectorOptions, RabbitBrowser, setup_logging

OPTIONS = DetectorOptions(focus_on_consent=True, wait_time=5000, include_page_context=False)


async def main(url: str):
	setup_logging()

	async with RabbitBrowser(OPTIONS) as browser:
		await browser.go(url)

		buttons = browser.get_consent_elements()
		if not buttons:
			print('No consent banner found')
			return

		for button in buttons:
			print(f'[{button.index}] {button.text!r} ({button.selector})')

		accept = next((b for b in buttons if 'accept' in b.text.lower() or 'agree' in b.text.lower()), buttons[0])
		result = await browser.click_element(accept.index)
		print(f'Clicked {accept.text!r}: {"ok" if result.success else result.error}')


if __name__ == '__main__':
	asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else 'https://www.google.com'))
