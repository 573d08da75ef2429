"""
Push Testing Orchestrator

Owns every test suite, validates operation requests and dispatches them to the
addressed suite and instance. Also owns service startup (browser downloads,
API transport) and shutdown.
"""

import asyncio
import logging
from typing import Any

from push_testing.browser.provisioning import BrowserProvisioner
from push_testing.browser.session import BrowserSessionFactory
from push_testing.config import ServiceConfig
from push_testing.errors import (
	BrowserNotFound,
	DriverFailure,
	InvalidBrowserName,
	InvalidBrowserVersion,
	InvalidInstanceError,
	InvalidTestId,
	InvalidTestSuiteId,
	InvalidVapidKey,
	InvalidVariableType,
	MissingRequiredArgs,
	ProtocolFailure,
	SuiteEndedError,
	SuiteTeardownError,
	UnsupportedBrowser,
)
from push_testing.schemas import NotificationStatus, SubscriptionResult, SuiteCreated
from push_testing.suite import TestInstance, TestSuite

logger = logging.getLogger(__name__)

SUBSCRIPTION_ERROR_PREFIX = 'An issue occurred while attempting to get the subscription: '


def _is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(value: Any) -> str:
	if value is None:
		return 'null'
	if isinstance(value, bool):
		return 'boolean'
	if isinstance(value, str):
		return 'string'
	if isinstance(value, list):
		return 'array'
	if isinstance(value, dict):
		return 'object'
	return type(value).__name__


class Orchestrator:
	"""Registry of test suites and entry point for every service operation."""

	def __init__(
		self,
		config: ServiceConfig | None = None,
		provisioner: BrowserProvisioner | None = None,
		session_factory: BrowserSessionFactory | None = None,
		serve_api: bool = True,
	):
		"""
		Args:
			config: Service configuration (read from the environment if None)
			provisioner: Browser provisioner (created from config if None)
			session_factory: Factory launching browser sessions (created from config if None)
			serve_api: Whether start_service starts the HTTP transport
		"""
		self.config = config or ServiceConfig.from_env()
		self.provisioner = provisioner or BrowserProvisioner(self.config)
		self.session_factory = session_factory or BrowserSessionFactory(headless=self.config.headless)
		self.serve_api = serve_api

		self.suites: dict[int, TestSuite] = {}
		self.next_suite_id = 0
		self._api_server: Any | None = None

	@property
	def supported_browsers(self) -> tuple[str, ...]:
		return self.config.supported_browsers

	@property
	def supported_versions(self) -> tuple[str, ...]:
		return self.config.supported_versions

	# Service lifecycle

	async def start_service(self) -> None:
		"""Provision browsers, then start accepting operations."""
		if self.config.download_browsers:
			await self.provisioner.download_browsers()
		else:
			logger.info('[Orchestrator] Browser downloads disabled')

		if self.serve_api:
			from push_testing.server.app import ApiServer

			self._api_server = ApiServer(self)
			await self._api_server.start_listening()

		logger.info('[Orchestrator] ✅ Service started')

	async def wait_closed(self) -> None:
		"""Block until the API transport stops serving."""
		if self._api_server is not None:
			await self._api_server.wait_closed()

	async def end_service(self) -> None:
		"""Stop the transport and end every live suite."""
		if self._api_server is not None:
			await self._api_server.kill()
			self._api_server = None

		suites = list(self.suites.values())
		self.suites.clear()
		results = await asyncio.gather(*(suite.end() for suite in suites), return_exceptions=True)
		for suite, result in zip(suites, results):
			if isinstance(result, BaseException):
				logger.error(f'[Orchestrator] Error ending test suite {suite.id} during shutdown: {result}')

		logger.info(f'[Orchestrator] Service stopped ({len(suites)} test suite(s) ended)')

	# Operations

	def start_test_suite(self) -> dict[str, Any]:
		suite = TestSuite(
			self.next_suite_id,
			harness_timeout=self.config.harness_timeout,
			subscription_timeout=self.config.subscription_timeout,
			message_timeout=self.config.message_timeout,
			message_interval=self.config.message_interval,
		)
		self.next_suite_id += 1
		self.suites[suite.id] = suite
		logger.info(f'[Orchestrator] Created test suite {suite.id}')
		return SuiteCreated(test_suite_id=suite.id).model_dump(by_alias=True)

	async def end_test_suite(self, args: dict[str, Any] | None) -> dict[str, Any]:
		args = args or {}
		self._check_required_args(args, ['testSuiteId'])
		suite = self._get_suite(args['testSuiteId'])

		# Unregister first so concurrent operations see the suite as gone
		self.suites.pop(suite.id, None)
		try:
			await suite.end()
		except SuiteTeardownError as e:
			raise DriverFailure(f'An issue occurred while attempting to end the test suite: {e}') from e

		logger.info(f'[Orchestrator] Ended test suite {suite.id}')
		return {}

	async def get_subscription(self, args: dict[str, Any] | None) -> dict[str, Any]:
		args = args or {}
		self._check_required_args(args, ['testSuiteId', 'browserName', 'browserVersion'])
		suite = self._get_suite(args['testSuiteId'])

		browser_name = args['browserName']
		if not isinstance(browser_name, str) or browser_name not in self.supported_browsers:
			raise InvalidBrowserName(
				f'browserName should be one of the following values: {", ".join(self.supported_browsers)}. '
				f'Found {_type_name(browser_name)} {browser_name!r}.'
			)

		browser_version = args['browserVersion']
		if not isinstance(browser_version, str) or browser_version not in self.supported_versions:
			raise InvalidBrowserVersion(
				f'browserVersion should be one of the following values: {", ".join(self.supported_versions)}. '
				f'Found {_type_name(browser_version)} {browser_version!r}.'
			)

		handle = await self.provisioner.get_local_browser(browser_name, browser_version)
		if handle is None:
			raise BrowserNotFound(
				'Unable to find the requested browser. This is likely an issue with the push testing service.'
			)

		exclusion = self.config.find_exclusion(browser_name, browser_version, handle.version_number)
		if exclusion is not None:
			raise UnsupportedBrowser(exclusion.reason)

		query: dict[str, str] = {}
		vapid_public_key = args.get('vapidPublicKey')
		if vapid_public_key not in (None, ''):
			if not isinstance(vapid_public_key, str):
				raise InvalidVapidKey('Your vapid public key must be a string.')
			query['vapidPublicKey'] = vapid_public_key

		harness_url = self.config.harness_url

		async def launch_session():
			return await self.session_factory.create(handle, harness_url)

		try:
			instance = await suite.create_instance(launch_session)
		except SuiteEndedError as e:
			raise InvalidTestSuiteId(f"testSuiteId passed in doesn't exist: {suite.id}.") from e
		except Exception as e:
			raise DriverFailure(SUBSCRIPTION_ERROR_PREFIX + str(e)) from e

		try:
			subscription = await instance.subscribe(harness_url, query)
		except ProtocolFailure as e:
			await self._discard_instance(suite, instance)
			raise ProtocolFailure(e.kind, SUBSCRIPTION_ERROR_PREFIX + e.message) from e
		except Exception as e:
			await self._discard_instance(suite, instance)
			raise DriverFailure(SUBSCRIPTION_ERROR_PREFIX + str(e)) from e

		result = SubscriptionResult(test_id=instance.id, subscription=subscription)
		return result.model_dump(by_alias=True, exclude_none=True)

	async def get_notification_status(self, args: dict[str, Any] | None) -> dict[str, Any]:
		args = args or {}
		self._check_required_args(args, ['testSuiteId', 'testId'])
		suite = self._get_suite(args['testSuiteId'])
		instance = self._get_instance(suite, args['testId'])

		try:
			messages = await instance.poll_messages()
		except InvalidInstanceError as e:
			raise InvalidTestId(f'testId is not accepting notifications: {e}') from e
		except Exception as e:
			raise DriverFailure(
				f'An error occurred while attempting to check the notification status. {e}',
				error_id='web_driver_error',
			) from e

		return NotificationStatus(messages=messages).model_dump()

	# Validation

	def _check_required_args(self, args: dict[str, Any], required: list[str]) -> None:
		missing = [name for name in required if args.get(name) is None]
		if missing:
			raise MissingRequiredArgs(required=required, missing=missing, received=list(args.keys()))

	def _get_suite(self, test_suite_id: Any) -> TestSuite:
		if not _is_number(test_suite_id):
			raise InvalidVariableType(f'testSuiteId should be a number, found {_type_name(test_suite_id)}.')

		suite = self.suites.get(test_suite_id)
		if suite is None:
			raise InvalidTestSuiteId(f"testSuiteId passed in doesn't exist: {test_suite_id}.")
		return suite

	def _get_instance(self, suite: TestSuite, test_id: Any) -> TestInstance:
		if not _is_number(test_id):
			raise InvalidVariableType(f'testId should be a number, found {_type_name(test_id)}.')

		instance = suite.get_instance(test_id)
		if instance is None:
			raise InvalidTestId(f'testId was not found as a valid test, received testId: {test_id}.')
		return instance

	async def _discard_instance(self, suite: TestSuite, instance: TestInstance) -> None:
		"""Release the browser of an instance whose subscription failed."""
		try:
			await suite.end_instance(instance.id)
		except Exception as e:
			logger.warning(f'[Orchestrator] Error releasing browser of test {instance.id} in suite {suite.id}: {e}')
