"""
Browser provisioning.

Installs browser binaries through the Playwright CLI and resolves an installed
binary for a (browser name, release) pair.
"""

import asyncio
import glob
import logging
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from push_testing.config import ServiceConfig

logger = logging.getLogger(__name__)

INSTALL_TIMEOUT = 600  # seconds, a full Chrome package download
VERSION_TIMEOUT = 10

# Playwright install target per (browser, release)
INSTALL_TARGETS: dict[tuple[str, str], str] = {
	('chrome', 'stable'): 'chrome',
	('chrome', 'beta'): 'chrome-beta',
	('chromium', 'stable'): 'chromium',
}


def _playwright_cache() -> Path:
	override = os.getenv('PLAYWRIGHT_BROWSERS_PATH')
	if override and override != '0':
		return Path(override)
	if sys.platform == 'darwin':
		return Path.home() / 'Library' / 'Caches' / 'ms-playwright'
	if sys.platform == 'win32':
		return Path(os.getenv('LOCALAPPDATA', str(Path.home()))) / 'ms-playwright'
	return Path.home() / '.cache' / 'ms-playwright'


def default_search_paths() -> dict[tuple[str, str], list[str]]:
	"""Glob patterns where each installable browser ends up on this platform."""
	cache = str(_playwright_cache())
	if sys.platform == 'darwin':
		return {
			('chrome', 'stable'): ['/Applications/Google Chrome.app/Contents/MacOS/Google Chrome'],
			('chrome', 'beta'): ['/Applications/Google Chrome Beta.app/Contents/MacOS/Google Chrome Beta'],
			('chromium', 'stable'): [f'{cache}/chromium-*/chrome-mac*/Chromium.app/Contents/MacOS/Chromium'],
		}
	if sys.platform == 'win32':
		program_files = os.getenv('PROGRAMFILES', 'C:\\Program Files')
		return {
			('chrome', 'stable'): [f'{program_files}\\Google\\Chrome\\Application\\chrome.exe'],
			('chrome', 'beta'): [f'{program_files}\\Google\\Chrome Beta\\Application\\chrome.exe'],
			('chromium', 'stable'): [f'{cache}\\chromium-*\\chrome-win*\\chrome.exe'],
		}
	return {
		('chrome', 'stable'): ['/opt/google/chrome/chrome'],
		('chrome', 'beta'): ['/opt/google/chrome-beta/chrome'],
		('chromium', 'stable'): [f'{cache}/chromium-*/chrome-linux*/chrome'],
	}


@dataclass(frozen=True)
class BrowserHandle:
	"""An installed browser binary that can be launched."""

	browser_name: str
	release: str
	executable_path: str
	version_number: int | None = None

	def launch_options(self) -> dict[str, Any]:
		"""BrowserProfile overrides for this browser.

		Chromium-family browsers get the notification permission up front; the
		session factory additionally grants it to the harness origin once the
		browser runs.
		"""
		return {
			'executable_path': self.executable_path,
			'permissions': ['notifications'],
		}


class BrowserProvisioner:
	"""Downloads and locates the browsers the service can drive."""

	def __init__(
		self,
		config: ServiceConfig,
		search_paths: dict[tuple[str, str], list[str]] | None = None,
		install_timeout: float = INSTALL_TIMEOUT,
	):
		self.config = config
		self.search_paths = search_paths if search_paths is not None else default_search_paths()
		self.install_timeout = install_timeout
		self._versions: dict[str, int] = {}

	def browsers_to_download(self) -> list[tuple[str, str]]:
		"""Every supported browser/release pair not excluded at release level."""
		pairs = []
		for browser_name in self.config.supported_browsers:
			for release in self.config.supported_versions:
				exclusion = self.config.find_exclusion(browser_name, release)
				if exclusion is not None and exclusion.release_level:
					logger.debug(f'[Provisioner] Skipping {browser_name} ({release}): {exclusion.reason}')
					continue
				pairs.append((browser_name, release))
		return pairs

	async def download_browsers(self) -> None:
		"""Install every required browser concurrently.

		Raises:
			RuntimeError: if any install fails, after all installs finished
		"""
		pairs = self.browsers_to_download()
		logger.info(f'[Provisioner] Installing {len(pairs)} browser(s): {pairs}')
		results = await asyncio.gather(
			*(self.download_browser(name, release) for name, release in pairs),
			return_exceptions=True,
		)
		failures = [
			f'{name} ({release}): {result}'
			for (name, release), result in zip(pairs, results)
			if isinstance(result, BaseException)
		]
		if failures:
			raise RuntimeError(f'Browser download failed for {"; ".join(failures)}')

	async def download_browser(self, browser_name: str, release: str) -> None:
		"""Install one browser with ``playwright install``."""
		target = INSTALL_TARGETS.get((browser_name, release))
		if target is None:
			raise RuntimeError(f'No installer available for {browser_name} ({release})')

		if self._find_executable(browser_name, release):
			logger.debug(f'[Provisioner] {browser_name} ({release}) already installed')
			return

		logger.info(f"[Provisioner] Running 'playwright install {target}' …")
		proc = await asyncio.create_subprocess_exec(
			sys.executable,
			'-m',
			'playwright',
			'install',
			target,
			stdout=asyncio.subprocess.PIPE,
			stderr=asyncio.subprocess.PIPE,
		)
		try:
			_, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.install_timeout)
		except asyncio.TimeoutError:
			proc.kill()
			await proc.wait()
			raise RuntimeError(f'playwright install {target} timed out after {self.install_timeout:.0f}s') from None

		if proc.returncode != 0:
			raise RuntimeError(
				f'playwright install {target} failed (rc={proc.returncode}): {stderr.decode(errors="replace")[:500]}'
			)
		logger.info(f'[Provisioner] ✅ Installed {browser_name} ({release})')

	async def get_local_browser(self, browser_name: str, release: str) -> BrowserHandle | None:
		"""Resolve an installed browser, or None if it isn't available."""
		executable = self._find_executable(browser_name, release)
		if executable is None:
			logger.debug(f'[Provisioner] No executable found for {browser_name} ({release})')
			return None

		version_number = self._versions.get(executable)
		if version_number is None:
			version_number = await self._probe_version(executable)
			# Failed probes are retried on the next lookup
			if version_number is not None:
				self._versions[executable] = version_number

		return BrowserHandle(
			browser_name=browser_name,
			release=release,
			executable_path=executable,
			version_number=version_number,
		)

	def _find_executable(self, browser_name: str, release: str) -> str | None:
		for pattern in self.search_paths.get((browser_name, release), []):
			# Newest playwright revision sorts last
			for match in sorted(glob.glob(pattern), reverse=True):
				if os.path.isfile(match) and os.access(match, os.X_OK):
					return match
		return None

	async def _probe_version(self, executable: str) -> int | None:
		"""Read the major version from ``<executable> --version``."""
		try:
			proc = await asyncio.create_subprocess_exec(
				executable,
				'--version',
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
			)
		except OSError as e:
			logger.warning(f'[Provisioner] Could not read version of {executable}: {e}')
			return None

		try:
			stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=VERSION_TIMEOUT)
		except asyncio.TimeoutError:
			proc.kill()
			await proc.wait()
			logger.warning(f'[Provisioner] {executable} --version timed out after {VERSION_TIMEOUT}s')
			return None

		match = re.search(r'(\d+)\.\d+', stdout.decode(errors='replace'))
		if not match:
			logger.warning(f'[Provisioner] Unrecognised version output from {executable}')
			return None
		return int(match.group(1))
