"""
Browser sessions driven by the test instances.

BrowserSession is the capability set the state machine needs (navigate,
execute_script, wait_until, close). Backends implement the driver calls;
the polling policy and the close-once guarantee live in the base class so every
backend shares them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlsplit

from browser_use import BrowserSession as BrowserUseSession
from browser_use.browser.events import NavigateToUrlEvent
from browser_use.browser.profile import BrowserProfile
from push_testing.errors import DriverError, WaitTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.3


class BrowserSession(ABC):
	"""A single browser, exclusively owned by one test instance."""

	def __init__(self):
		self._closed = False

	@property
	def closed(self) -> bool:
		return self._closed

	@abstractmethod
	async def navigate(self, url: str) -> None:
		"""Load url in the current page. Raises DriverError on failure."""

	@abstractmethod
	async def execute_script(self, script: str) -> Any:
		"""Evaluate a JavaScript expression in the page and return its JSON value.

		Raises DriverError if the script throws or the session is gone.
		"""

	@abstractmethod
	async def _release(self) -> None:
		"""Release the underlying browser resources."""

	async def wait_until(
		self,
		predicate_script: str,
		timeout: float,
		interval: float = DEFAULT_POLL_INTERVAL,
	) -> None:
		"""Poll predicate_script until it returns a truthy value.

		Args:
			predicate_script: JavaScript expression evaluated on every poll
			timeout: Ceiling in seconds for the whole wait
			interval: Delay in seconds between polls

		Raises:
			WaitTimeoutError: if the ceiling expires first, including when a
				single evaluation hangs past it
			DriverError: if an evaluation fails
		"""
		loop = asyncio.get_running_loop()
		deadline = loop.time() + timeout

		while True:
			remaining = deadline - loop.time()
			if remaining <= 0:
				raise WaitTimeoutError(predicate_script, timeout)

			try:
				result = await asyncio.wait_for(self.execute_script(predicate_script), timeout=remaining)
			except asyncio.TimeoutError:
				raise WaitTimeoutError(predicate_script, timeout) from None

			if result:
				return

			remaining = deadline - loop.time()
			if remaining <= 0:
				raise WaitTimeoutError(predicate_script, timeout)
			await asyncio.sleep(min(interval, remaining))

	async def close(self) -> None:
		"""Release the browser. Calling it again is a no-op."""
		if self._closed:
			return
		self._closed = True
		await self._release()


class CdpBrowserSession(BrowserSession):
	"""BrowserSession backed by a browser_use session over the DevTools protocol."""

	def __init__(self, browser_session: BrowserUseSession):
		super().__init__()
		self.browser_session = browser_session

	async def navigate(self, url: str) -> None:
		if self._closed:
			raise DriverError('Browser session has been closed')

		logger.debug(f'[BrowserSession] Navigating to {url}')
		try:
			event = self.browser_session.event_bus.dispatch(NavigateToUrlEvent(url=url))
			await event
			await event.event_result(raise_if_any=True, raise_if_none=False)
		except Exception as e:
			raise DriverError(f'Unable to navigate to {url}: {type(e).__name__}: {e}') from e

	async def execute_script(self, script: str) -> Any:
		if self._closed:
			raise DriverError('Browser session has been closed')

		try:
			cdp_session = await self.browser_session.get_or_create_cdp_session()
			result = await cdp_session.cdp_client.send.Runtime.evaluate(
				params={'expression': script, 'returnByValue': True, 'awaitPromise': True},
				session_id=cdp_session.session_id,
			)
		except Exception as e:
			raise DriverError(f'Failed to execute script: {type(e).__name__}: {e}') from e

		if result.get('exceptionDetails'):
			exception = result['exceptionDetails']
			description = exception.get('exception', {}).get('description') or exception.get('text', 'Unknown error')
			raise DriverError(f'Script raised an exception: {description}')

		return result.get('result', {}).get('value')

	async def grant_notifications(self, origin: str) -> None:
		"""Pre-grant the notification permission so no native prompt blocks the flow."""
		try:
			cdp_session = await self.browser_session.get_or_create_cdp_session()
			await cdp_session.cdp_client.send.Browser.grantPermissions(
				params={'permissions': ['notifications'], 'origin': origin},
			)
		except Exception as e:
			raise DriverError(f'Unable to grant notification permission for {origin}: {e}') from e

	async def _release(self) -> None:
		logger.debug('[BrowserSession] Killing browser')
		try:
			await self.browser_session.kill()
		except Exception as e:
			raise DriverError(f'Failed to close browser: {type(e).__name__}: {e}') from e


class BrowserSessionFactory:
	"""Launches CDP browser sessions for provisioned browser handles."""

	def __init__(self, headless: bool = False):
		self.headless = headless

	async def create(self, handle: Any, harness_url: str) -> CdpBrowserSession:
		"""Start a browser for handle with notifications allowed on the harness origin.

		Args:
			handle: BrowserHandle resolved by the provisioner
			harness_url: URL of the harness page

		Returns:
			A started CdpBrowserSession
		"""
		parts = urlsplit(harness_url)
		origin = f'{parts.scheme}://{parts.netloc}'

		profile = BrowserProfile(
			headless=self.headless,
			user_data_dir=None,
			keep_alive=True,
			**handle.launch_options(),
		)
		browser_session = BrowserUseSession(browser_profile=profile)

		logger.debug(f'[BrowserSessionFactory] Starting {handle.browser_name} ({handle.release})')
		try:
			await browser_session.start()
		except Exception as e:
			try:
				await browser_session.kill()
			except Exception as kill_error:
				logger.warning(f'[BrowserSessionFactory] Error killing half-started browser: {kill_error}')
			raise DriverError(f'Unable to start {handle.browser_name} {handle.release}: {e}') from e

		session = CdpBrowserSession(browser_session)
		try:
			await session.grant_notifications(origin)
		except DriverError:
			await session.close()
			raise

		logger.info(f'[BrowserSessionFactory] ✅ {handle.browser_name} ({handle.release}) started')
		return session
