"""
Service configuration.

Values come from environment variables (optionally loaded from .env files by
the startup script), with defaults suitable for local runs.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BrowserExclusion:
	"""A browser combination that cannot reliably automate push notifications.

	A rule matches when the browser name matches, the release matches (if set)
	and the installed major version is at most max_version (if set).
	"""

	browser_name: str
	reason: str
	release: str | None = None
	max_version: int | None = None

	@property
	def release_level(self) -> bool:
		"""True when the rule excludes a whole release regardless of its version."""
		return self.max_version is None

	def matches(self, browser_name: str, release: str, version_number: int | None = None) -> bool:
		if browser_name != self.browser_name:
			return False
		if self.release is not None and release != self.release:
			return False
		if self.max_version is None:
			return True
		return version_number is not None and version_number <= self.max_version


DEFAULT_EXCLUSIONS: tuple[BrowserExclusion, ...] = (
	BrowserExclusion(
		browser_name='chrome',
		release='unstable',
		reason='Chrome unstable has no installable channel and is no longer supported.',
	),
	BrowserExclusion(
		browser_name='chromium',
		release='beta',
		reason='Only a single Chromium build is available, use the stable release.',
	),
	BrowserExclusion(
		browser_name='chromium',
		release='unstable',
		reason='Only a single Chromium build is available, use the stable release.',
	),
	BrowserExclusion(
		browser_name='chrome',
		max_version=51,
		reason=(
			'Unfortunately Chrome version 51 and below lacks applicationServerKey '
			'support and cannot be tested automatically.'
		),
	),
)


def _get_bool(env_var: str, default: bool) -> bool:
	value = os.getenv(env_var, str(default)).lower()
	return value in ('true', '1', 'yes', 'on', 'enabled')


def _get_list(env_var: str, default: tuple[str, ...]) -> tuple[str, ...]:
	value = os.getenv(env_var)
	if not value:
		return default
	return tuple(item.strip() for item in value.split(',') if item.strip())


@dataclass
class ServiceConfig:
	"""Push testing service configuration."""

	host: str = '0.0.0.0'
	port: int = 8090

	# URL the driven browsers use to reach the harness
	public_url: str | None = None

	supported_browsers: tuple[str, ...] = ('chrome', 'chromium')
	supported_versions: tuple[str, ...] = ('stable', 'beta', 'unstable')
	exclusions: tuple[BrowserExclusion, ...] = DEFAULT_EXCLUSIONS

	headless: bool = False
	download_browsers: bool = True

	# Wait ceilings, in seconds
	harness_timeout: float = 30.0
	subscription_timeout: float = 30.0
	message_timeout: float = 60.0
	message_interval: float = 0.5

	log_file: str | None = None
	debug: bool = False

	@property
	def harness_url(self) -> str:
		"""Base URL of the in-page harness, without a trailing slash."""
		url = self.public_url or f'http://localhost:{self.port}'
		return url.rstrip('/')

	@classmethod
	def from_env(cls) -> 'ServiceConfig':
		"""
		Create configuration from environment variables.

		Environment variables:
		- PUSH_TESTING_HOST / PUSH_TESTING_PORT: bind address (default: 0.0.0.0:8090)
		- PUSH_TESTING_PUBLIC_URL: harness URL seen by browsers (default: http://localhost:<port>)
		- PUSH_TESTING_BROWSERS: comma separated browser allow-list (default: chrome,chromium)
		- PUSH_TESTING_BROWSER_VERSIONS: comma separated release allow-list (default: stable,beta,unstable)
		- PUSH_TESTING_HEADLESS: run browsers headless (default: false)
		- PUSH_TESTING_DOWNLOAD_BROWSERS: install browsers on start (default: true)
		- PUSH_TESTING_HARNESS_TIMEOUT, PUSH_TESTING_SUBSCRIPTION_TIMEOUT,
		  PUSH_TESTING_MESSAGE_TIMEOUT, PUSH_TESTING_MESSAGE_INTERVAL: wait settings in seconds
		- PUSH_TESTING_LOG_FILE: optional log file path
		- PUSH_TESTING_DEBUG: enable debug logging (default: false)
		"""
		port = int(os.getenv('PUSH_TESTING_PORT', '8090'))
		config = cls(
			host=os.getenv('PUSH_TESTING_HOST', '0.0.0.0'),
			port=port,
			public_url=os.getenv('PUSH_TESTING_PUBLIC_URL') or None,
			supported_browsers=_get_list('PUSH_TESTING_BROWSERS', ('chrome', 'chromium')),
			supported_versions=_get_list('PUSH_TESTING_BROWSER_VERSIONS', ('stable', 'beta', 'unstable')),
			headless=_get_bool('PUSH_TESTING_HEADLESS', False),
			download_browsers=_get_bool('PUSH_TESTING_DOWNLOAD_BROWSERS', True),
			harness_timeout=float(os.getenv('PUSH_TESTING_HARNESS_TIMEOUT', '30')),
			subscription_timeout=float(os.getenv('PUSH_TESTING_SUBSCRIPTION_TIMEOUT', '30')),
			message_timeout=float(os.getenv('PUSH_TESTING_MESSAGE_TIMEOUT', '60')),
			message_interval=float(os.getenv('PUSH_TESTING_MESSAGE_INTERVAL', '0.5')),
			log_file=os.getenv('PUSH_TESTING_LOG_FILE') or None,
			debug=_get_bool('PUSH_TESTING_DEBUG', False),
		)
		logger.debug(
			f'[Config] Browsers: {", ".join(config.supported_browsers)}; '
			f'versions: {", ".join(config.supported_versions)}; harness: {config.harness_url}'
		)
		return config

	def find_exclusion(
		self, browser_name: str, release: str, version_number: int | None = None
	) -> BrowserExclusion | None:
		"""Return the first exclusion rule matching the combination, if any."""
		for exclusion in self.exclusions:
			if exclusion.matches(browser_name, release, version_number):
				return exclusion
		return None
