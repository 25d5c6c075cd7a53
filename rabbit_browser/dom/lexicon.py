"""
Consent/cookie lexicon used by the classifier.

The word lists are plain data: they are site-specific and fragile, so they can be
replaced or extended from a JSON file without touching classification code.
"""

import json
import logging
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from rabbit_browser.exceptions import PatternError

logger = logging.getLogger(__name__)


class ConsentLexicon(BaseModel):
	model_config = ConfigDict(extra='forbid')

	# Action verbs that make an element a primary consent control
	action_words: list[str] = Field(
		default_factory=lambda: [
			'accept',
			'agree',
			'allow',
			'reject',
			'decline',
			'akzeptieren',
			'alle akzeptieren',
			'ablehnen',
			'alle ablehnen',
			'zustimmen',
			'accepter',
			'tout accepter',
			'refuser',
			'aceptar',
			'rechazar',
			'accetta',
			'rifiuta',
			'aceitar',
			'rejeitar',
			'accepteren',
			'weigeren',
		]
	)
	# Words that indicate a secondary settings/policy link rather than an action
	exclusion_words: list[str] = Field(
		default_factory=lambda: [
			'settings',
			'preferences',
			'options',
			'policy',
			'learn more',
			'more info',
			'customize',
			'customise',
			'manage',
			'mehr',
			'einstellungen',
			'personalisierung',
			'richtlinie',
			'paramètres',
			'configuración',
		]
	)
	cookie_words: list[str] = Field(default_factory=lambda: ['cookie', 'consent', 'gdpr', 'privacy'])
	# Substrings of id/class values that mark consent buttons
	class_hints: list[str] = Field(
		default_factory=lambda: [
			'consent-button',
			'cookie-button',
			'cookie-consent',
			'accept',
			'agree',
			'disagree',
			'reject',
			'decline',
			'allow',
		]
	)
	# Known consent-widget ids and classes, checked before the word lists
	vendor_ids: list[str] = Field(
		default_factory=lambda: [
			'L2AGLb',
			'W0wltc',
			'VDity',
			'onetrust-accept-btn-handler',
			'onetrust-reject-all-handler',
			'CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll',
			'CybotCookiebotDialogBodyButtonDecline',
			'didomi-notice-agree-button',
			'didomi-notice-disagree-button',
			'truste-consent-button',
		]
	)
	vendor_classes: list[str] = Field(
		default_factory=lambda: [
			'tHlp8d',
			'cc-btn',
			'cc-button',
			'cc-allow',
			'cc-deny',
			'gdpr-button',
			'accept-cookies',
			'reject-cookies',
			'consent-button',
			'agree-button',
			'fc-cta-consent',
		]
	)
	# Extra regular expressions matched against lowercased text as action signals
	extra_action_patterns: list[str] = Field(default_factory=list)

	_compiled_patterns: list[re.Pattern[str]] = PrivateAttr(default_factory=list)

	def model_post_init(self, __context) -> None:
		self.action_words = [w.lower() for w in self.action_words]
		self.exclusion_words = [w.lower() for w in self.exclusion_words]
		self.cookie_words = [w.lower() for w in self.cookie_words]
		self.class_hints = [w.lower() for w in self.class_hints]
		compiled: list[re.Pattern[str]] = []
		for pattern in self.extra_action_patterns:
			try:
				compiled.append(self._compile(pattern))
			except PatternError as e:
				logger.warning(f'⚠️ Skipping consent pattern: {e}')
		self._compiled_patterns = compiled

	@staticmethod
	def _compile(pattern: str) -> re.Pattern[str]:
		try:
			return re.compile(pattern, re.IGNORECASE)
		except re.error as e:
			raise PatternError(pattern, str(e)) from e

	@classmethod
	def from_json_file(cls, path: str | Path) -> 'ConsentLexicon':
		"""Load a lexicon from JSON; keys missing from the file keep their defaults."""
		with open(path, encoding='utf-8') as f:
			data = json.load(f)
		return cls.model_validate(data)

	# --- matching ---

	def is_vendor_control(self, element_id: str, class_tokens: list[str]) -> bool:
		if element_id and element_id in self.vendor_ids:
			return True
		return any(token in self.vendor_classes for token in class_tokens)

	def has_action_word(self, text: str) -> bool:
		lowered = text.lower()
		if any(word in lowered for word in self.action_words):
			return True
		return any(p.search(lowered) for p in self._compiled_patterns)

	def has_class_hint(self, element_id: str, class_tokens: list[str]) -> bool:
		haystack = ' '.join([element_id, *class_tokens]).lower()
		if not haystack.strip():
			return False
		return any(hint in haystack for hint in self.class_hints)

	def mentions_cookie(self, text: str) -> bool:
		lowered = text.lower()
		return any(word in lowered for word in self.cookie_words)

	def is_excluded(self, text: str) -> bool:
		lowered = text.lower()
		return any(word in lowered for word in self.exclusion_words)
