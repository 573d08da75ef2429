"""
Test Suite

An isolated namespace of test instances, created and torn down as a unit.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from push_testing.browser.session import BrowserSession
from push_testing.errors import SuiteEndedError, SuiteTeardownError
from push_testing.suite.instance import TestInstance

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Awaitable[BrowserSession]]


class TestSuite:
	"""Owns the test instances created under one suite id."""

	__test__ = False

	def __init__(self, suite_id: int, **instance_options: float):
		"""
		Args:
			suite_id: Id assigned by the orchestrator
			instance_options: Timeouts forwarded to every TestInstance
		"""
		self.id = suite_id
		self.instances: dict[int, TestInstance] = {}
		self.next_instance_id = 0
		self.is_ended = False
		self._instance_options = instance_options

	def __repr__(self) -> str:
		return f'TestSuite(id={self.id}, instances={len(self.instances)})'

	async def create_instance(self, session_factory: SessionFactory) -> TestInstance:
		"""Acquire a browser session and register a new instance for it.

		Raises:
			SuiteEndedError: if the suite ended while the session was starting
		"""
		if self.is_ended:
			raise SuiteEndedError(f'Test suite {self.id} has ended')

		session = await session_factory()

		# No await between the check and the insert: id allocation is atomic
		if self.is_ended:
			await session.close()
			raise SuiteEndedError(f'Test suite {self.id} ended while its browser was starting')

		instance = TestInstance(self.next_instance_id, session, **self._instance_options)
		self.next_instance_id += 1
		self.instances[instance.id] = instance
		logger.info(f'[TestSuite {self.id}] Created test instance {instance.id}')
		return instance

	def get_instance(self, instance_id: int) -> TestInstance | None:
		return self.instances.get(instance_id)

	async def end_instance(self, instance_id: int) -> None:
		"""Remove one instance and release its browser."""
		instance = self.instances.pop(instance_id, None)
		if instance is None:
			return
		await instance.end()
		logger.debug(f'[TestSuite {self.id}] Ended test instance {instance_id}')

	async def end(self) -> None:
		"""End every instance, then report failures once all teardowns ran.

		Raises:
			SuiteTeardownError: if any instance failed to release its browser
		"""
		self.is_ended = True
		instances = list(self.instances.values())
		self.instances.clear()

		logger.info(f'[TestSuite {self.id}] Ending {len(instances)} test instance(s)')
		results = await asyncio.gather(*(instance.end() for instance in instances), return_exceptions=True)

		failures = {
			instance.id: result
			for instance, result in zip(instances, results)
			if isinstance(result, BaseException)
		}
		if failures:
			for instance_id, error in failures.items():
				logger.error(f'[TestSuite {self.id}] Failed to end test instance {instance_id}: {error}')
			raise SuiteTeardownError(self.id, failures)
