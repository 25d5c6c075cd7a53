"""
Fill and submit a form using detected element indexes.

Form inputs carry their label, placeholder, name and (for selects) options, which is
usually enough to pick the right field without writing selectors.
"""

import asyncio
import json
import sys

from dotenv import load_dotenv

load_dotenv()

from rabbit_browser import RabbitBrowser, setup_logging

VALUES = {
	'email': 'rabbit@example.com',
	'name': 'Peter Rabbit',
}


async def main(url: str):
	setup_logging()

	async with RabbitBrowser({'include_form_inputs': True}) as browser:
		await browser.go(url)

		fields = browser.filter_elements(lambda e: e.is_form_input)
		print(json.dumps([f.model_dump(by_alias=True, exclude_none=True) for f in fields], indent=2))

		last_field = None
		for field in fields:
			key = (field.name or field.label or field.placeholder or '').lower()
			for wanted, value in VALUES.items():
				if wanted in key:
					result = await browser.fill_input(field.index, value)
					print(f'{field.index}: {"filled" if result.success else result.error}')
					last_field = field
					break

		if last_field is not None:
			result = await browser.submit_form(last_field.index)
			print(f'submit: {"ok" if result.success else result.error}')
			print(f'now on {await browser.get_current_page_url()}')


if __name__ == '__main__':
	asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else 'https://httpbin.org/forms/post'))
