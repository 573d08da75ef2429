"""
Test Instance

Drives one browser session through the push subscription flow of the harness
and drains the messages the harness receives afterwards.
"""

import logging
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from pydantic import ValidationError

from push_testing.browser.session import BrowserSession
from push_testing.errors import (
	InvalidInstanceError,
	ProtocolFailure,
	ProtocolFailureKind,
	WaitTimeoutError,
)
from push_testing.schemas import Subscription
from push_testing.suite import harness_scripts

logger = logging.getLogger(__name__)


class InstanceState(str, Enum):
	"""Test instance state enumeration."""

	CREATED = 'created'
	AWAITING_HARNESS_LOAD = 'awaiting_harness_load'
	HARNESS_READY = 'harness_ready'
	AWAITING_SERVICE_WORKER = 'awaiting_service_worker'
	AWAITING_SUBSCRIPTION = 'awaiting_subscription'
	SUBSCRIBED = 'subscribed'
	FAILED = 'failed'
	ENDED = 'ended'


class TestInstance:
	"""One browser session bound to one push subscription."""

	__test__ = False

	def __init__(
		self,
		instance_id: int,
		session: BrowserSession,
		harness_timeout: float = 30.0,
		subscription_timeout: float = 30.0,
		message_timeout: float = 60.0,
		message_interval: float = 0.5,
	):
		"""
		Args:
			instance_id: Id of the instance within its suite
			session: Browser session owned by this instance
			harness_timeout: Ceiling in seconds for the harness to load
			subscription_timeout: Ceiling in seconds for each of the service
				worker and subscription results
			message_timeout: Poll window in seconds for incoming messages
			message_interval: Delay in seconds between message polls
		"""
		self.id = instance_id
		self.session = session
		self.state = InstanceState.CREATED
		self.subscription: Subscription | None = None
		self.failure: ProtocolFailure | None = None

		self.harness_timeout = harness_timeout
		self.subscription_timeout = subscription_timeout
		self.message_timeout = message_timeout
		self.message_interval = message_interval

	def __repr__(self) -> str:
		return f'TestInstance(id={self.id}, state={self.state.value})'

	@property
	def is_ended(self) -> bool:
		return self.state == InstanceState.ENDED

	def _require_state(self, *states: InstanceState) -> None:
		if self.state == InstanceState.ENDED:
			raise InvalidInstanceError(f'Test instance {self.id} has ended')
		if self.state not in states:
			raise InvalidInstanceError(
				f'Test instance {self.id} is {self.state.value}, expected {", ".join(s.value for s in states)}'
			)

	def _fail(self, kind: ProtocolFailureKind, message: str) -> ProtocolFailure:
		self.failure = ProtocolFailure(kind, message)
		self.state = InstanceState.FAILED
		logger.warning(f'[TestInstance {self.id}] {kind.value}: {message}')
		return self.failure

	async def subscribe(self, harness_url: str, query: dict[str, Any] | None = None) -> Subscription:
		"""Run the harness through service worker registration and subscription.

		Args:
			harness_url: Base URL of the harness page
			query: Optional configuration passed to the harness as query parameters

		Returns:
			The subscription reported by the browser

		Raises:
			ProtocolFailure: if the harness reports a registration or subscription error
			DriverError: if a driver call fails or a wait times out
		"""
		self._require_state(InstanceState.CREATED)

		url = harness_url.rstrip('/') + '/'
		if query:
			url += '?' + urlencode(query)

		self.state = InstanceState.AWAITING_HARNESS_LOAD
		await self.session.navigate(url)
		await self.session.wait_until(harness_scripts.HARNESS_LOADED, self.harness_timeout)
		self.state = InstanceState.HARNESS_READY
		logger.debug(f'[TestInstance {self.id}] Harness loaded')

		await self.session.execute_script(harness_scripts.START)
		self.state = InstanceState.AWAITING_SERVICE_WORKER

		await self.session.wait_until(harness_scripts.SW_REGISTERED_REPORTED, self.subscription_timeout)
		sw_registered = await self.session.execute_script(harness_scripts.SW_REGISTERED)
		if isinstance(sw_registered, dict) and sw_registered.get('error'):
			raise self._fail(
				ProtocolFailureKind.SERVICE_WORKER,
				f'There was an error when registering the service worker. "{sw_registered["error"]}".',
			)
		self.state = InstanceState.AWAITING_SUBSCRIPTION
		logger.debug(f'[TestInstance {self.id}] Service worker registered')

		await self.session.wait_until(harness_scripts.SUBSCRIPTION_REPORTED, self.subscription_timeout)
		raw_subscription = await self.session.execute_script(harness_scripts.SUBSCRIPTION)
		if not isinstance(raw_subscription, dict):
			raise self._fail(ProtocolFailureKind.SUBSCRIPTION, f'Unexpected subscription value: {raw_subscription!r}')
		if raw_subscription.get('error'):
			raise self._fail(ProtocolFailureKind.SUBSCRIPTION, str(raw_subscription['error']))

		try:
			self.subscription = Subscription.model_validate(raw_subscription)
		except ValidationError as e:
			raise self._fail(ProtocolFailureKind.SUBSCRIPTION, f'Invalid subscription: {e}') from e

		self.state = InstanceState.SUBSCRIBED
		logger.info(f'[TestInstance {self.id}] ✅ Subscribed: {self.subscription.endpoint}')
		return self.subscription

	async def poll_messages(self) -> list[str]:
		"""Wait for messages to arrive, then drain the harness buffer.

		Returns:
			Messages received since the last drain; empty if none arrived in the
			poll window
		"""
		self._require_state(InstanceState.SUBSCRIBED)

		try:
			await self.session.wait_until(
				harness_scripts.MESSAGES_PENDING,
				self.message_timeout,
				interval=self.message_interval,
			)
		except WaitTimeoutError:
			logger.debug(f'[TestInstance {self.id}] No messages within {self.message_timeout}s')

		messages = await self.session.execute_script(harness_scripts.DRAIN_MESSAGES)
		# A push without payload reports no text
		messages = ['' if message is None else str(message) for message in messages or []]
		logger.debug(f'[TestInstance {self.id}] Drained {len(messages)} message(s)')
		return messages

	async def end(self) -> None:
		"""End the instance and release its browser. Safe to call more than once."""
		if self.state == InstanceState.ENDED:
			return
		self.state = InstanceState.ENDED
		logger.debug(f'[TestInstance {self.id}] Ending')
		await self.session.close()
