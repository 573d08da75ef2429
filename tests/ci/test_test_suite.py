"""
Tests for test suites: instance ids, lookup and teardown.
"""

import asyncio

import pytest

from push_testing.errors import DriverError, SuiteEndedError, SuiteTeardownError
from push_testing.suite import TestSuite
from tests.fakes import FakeHarnessSession


def session_factory_for(sessions: list[FakeHarnessSession], **options):
	async def create():
		session = FakeHarnessSession(**options)
		sessions.append(session)
		return session

	return create


class TestCreateInstance:
	async def test_instance_ids_are_sequential(self):
		suite = TestSuite(0)
		sessions = []

		first = await suite.create_instance(session_factory_for(sessions))
		second = await suite.create_instance(session_factory_for(sessions))

		assert (first.id, second.id) == (0, 1)
		assert suite.get_instance(1) is second
		assert first.session is sessions[0]

	async def test_ids_are_not_reused(self):
		suite = TestSuite(0)
		sessions = []
		await suite.create_instance(session_factory_for(sessions))
		await suite.end_instance(0)

		instance = await suite.create_instance(session_factory_for(sessions))

		assert instance.id == 1
		assert suite.get_instance(0) is None

	async def test_instance_options_are_forwarded(self):
		suite = TestSuite(3, harness_timeout=1.5, message_interval=0.1)

		instance = await suite.create_instance(session_factory_for([]))

		assert instance.harness_timeout == 1.5
		assert instance.message_interval == 0.1

	async def test_concurrent_creation_gets_distinct_ids(self):
		suite = TestSuite(0)
		sessions = []

		instances = await asyncio.gather(*(suite.create_instance(session_factory_for(sessions)) for _ in range(5)))

		assert sorted(instance.id for instance in instances) == [0, 1, 2, 3, 4]

	async def test_create_on_ended_suite_is_rejected(self):
		suite = TestSuite(0)
		await suite.end()

		with pytest.raises(SuiteEndedError):
			await suite.create_instance(session_factory_for([]))

	async def test_suite_ended_while_browser_starts(self):
		suite = TestSuite(0)
		session = FakeHarnessSession()
		started = asyncio.Event()
		release = asyncio.Event()

		async def slow_factory():
			started.set()
			await release.wait()
			return session

		creating = asyncio.create_task(suite.create_instance(slow_factory))
		await started.wait()
		await suite.end()
		release.set()

		with pytest.raises(SuiteEndedError):
			await creating

		assert session.closed
		assert suite.instances == {}

	async def test_factory_failure_leaves_no_instance(self):
		suite = TestSuite(0)

		async def failing_factory():
			raise DriverError('browser failed to start')

		with pytest.raises(DriverError):
			await suite.create_instance(failing_factory)

		assert suite.instances == {}
		assert suite.next_instance_id == 0


class TestEndSuite:
	async def test_end_releases_every_instance(self):
		suite = TestSuite(0)
		sessions = []
		for _ in range(3):
			await suite.create_instance(session_factory_for(sessions))

		await suite.end()

		assert suite.is_ended
		assert suite.instances == {}
		assert all(session.release_count == 1 for session in sessions)

	async def test_teardown_failures_are_aggregated(self):
		suite = TestSuite(7)
		sessions = []
		await suite.create_instance(session_factory_for(sessions))
		await suite.create_instance(session_factory_for(sessions, release_error='kill failed'))
		await suite.create_instance(session_factory_for(sessions))

		with pytest.raises(SuiteTeardownError) as exc_info:
			await suite.end()

		assert exc_info.value.suite_id == 7
		assert list(exc_info.value.failures) == [1]
		# Every browser was released despite the failure
		assert [session.release_count for session in sessions] == [1, 1, 1]

	async def test_end_instance_unknown_id_is_noop(self):
		suite = TestSuite(0)

		await suite.end_instance(42)

		assert suite.instances == {}
