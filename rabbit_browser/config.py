"""Configuration: environment-backed settings and detector options."""

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from rabbit_browser.dom.lexicon import ConsentLexicon

load_dotenv()

DEFAULT_CHECK_INTERVALS_MS = [300, 500, 700, 1000, 1500]


class Config:
	"""Environment settings, read lazily so tests can patch os.environ."""

	@property
	def RABBIT_BROWSER_LOGGING_LEVEL(self) -> str:
		return os.getenv('RABBIT_BROWSER_LOGGING_LEVEL', 'info').lower()

	@property
	def RABBIT_BROWSER_CDP_URL(self) -> str:
		return os.getenv('RABBIT_BROWSER_CDP_URL', 'http://127.0.0.1:9222')

	@property
	def RABBIT_BROWSER_NAVIGATION_TIMEOUT(self) -> float:
		return float(os.getenv('RABBIT_BROWSER_NAVIGATION_TIMEOUT', '30'))

	@property
	def RABBIT_BROWSER_CONSOLE_PREFIX(self) -> str:
		return os.getenv('RABBIT_BROWSER_CONSOLE_PREFIX', '[HIGHLIGHT]')


CONFIG = Config()


def _alias(snake: str, camel: str) -> Any:
	return AliasChoices(snake, camel)


class DetectorOptions(BaseModel):
	"""Detector options; accepts both snake_case and the camelCase names used by page scripts."""

	model_config = ConfigDict(extra='forbid', populate_by_name=True, validate_assignment=True)

	focus_on_consent: bool = Field(default=False, validation_alias=_alias('focus_on_consent', 'focusOnConsent'))
	include_form_inputs: bool = Field(default=True, validation_alias=_alias('include_form_inputs', 'includeFormInputs'))
	highlight_all_text: bool = Field(default=False, validation_alias=_alias('highlight_all_text', 'highlightAllText'))
	wait_time: int = Field(default=3000, ge=0, validation_alias=_alias('wait_time', 'waitTime'))  # ms
	min_elements_required: int = Field(
		default=1, ge=0, validation_alias=_alias('min_elements_required', 'minElementsRequired')
	)
	early_return: bool = Field(default=True, validation_alias=_alias('early_return', 'earlyReturn'))
	include_page_context: bool = Field(default=True, validation_alias=_alias('include_page_context', 'includePageContext'))
	log_details: bool = Field(default=False, validation_alias=_alias('log_details', 'logDetails'))
	check_intervals: list[int] = Field(
		default_factory=lambda: list(DEFAULT_CHECK_INTERVALS_MS), validation_alias=_alias('check_intervals', 'checkIntervals')
	)
	intersection_threshold: float = Field(
		default=0.1, ge=0.0, le=1.0, validation_alias=_alias('intersection_threshold', 'intersectionThreshold')
	)
	text_block_max_elements: int = Field(
		default=12, ge=1, validation_alias=_alias('text_block_max_elements', 'textBlockMaxElements')
	)
	max_label_text: int = Field(default=50, ge=1, validation_alias=_alias('max_label_text', 'maxLabelText'))
	ready_state_timeout: float = Field(default=10.0, ge=0, validation_alias=_alias('ready_state_timeout', 'readyStateTimeout'))
	settle_timeout: float = Field(default=2.0, ge=0, validation_alias=_alias('settle_timeout', 'settleTimeout'))
	lexicon: ConsentLexicon = Field(default_factory=ConsentLexicon)

	@field_validator('check_intervals')
	@classmethod
	def validate_check_intervals(cls, value: list[int]) -> list[int]:
		if not value:
			raise ValueError('check_intervals must not be empty')
		if any(v <= 0 for v in value):
			raise ValueError('check_intervals must be positive')
		if any(b < a for a, b in zip(value, value[1:])):
			raise ValueError('check_intervals must be non-decreasing')
		return value
