"""
Error taxonomy for the push testing service.

Every failure that reaches the API boundary is a PushTestingError carrying a
stable error id. Driver-level errors (DriverError and friends) are internal and
are wrapped into DriverFailure at the operation boundary.
"""

from enum import Enum
from typing import Any


class PushTestingError(Exception):
	"""Base class for errors reported to API callers."""

	error_id: str = 'unknown_error'
	status_code: int = 400

	def __init__(self, message: str, error_id: str | None = None):
		super().__init__(message)
		self.message = message
		if error_id is not None:
			self.error_id = error_id

	def to_response(self) -> dict[str, Any]:
		"""Return the error envelope sent to the caller."""
		return {'error': {'id': self.error_id, 'message': self.message}}


# Validation errors


class MissingRequiredArgs(PushTestingError):
	error_id = 'missing_required_args'

	def __init__(self, required: list[str], missing: list[str], received: list[str]):
		self.required = required
		self.missing = missing
		self.received = received
		super().__init__(
			f'Required arguments are missing. Required fields: {", ".join(required)}. '
			f'Missing: {", ".join(missing)}. Received: {", ".join(received)}.'
		)


class InvalidVariableType(PushTestingError):
	error_id = 'invalid_variable_type'


class InvalidTestSuiteId(PushTestingError):
	error_id = 'invalid_test_suite_id'


class InvalidTestId(PushTestingError):
	error_id = 'invalid_test_id'


class InvalidBrowserName(PushTestingError):
	error_id = 'invalid_browser_name'


class InvalidBrowserVersion(PushTestingError):
	error_id = 'invalid_browser_version'


class InvalidVapidKey(PushTestingError):
	error_id = 'invalid_vapid_key'


# Resource faults


class BrowserNotFound(PushTestingError):
	error_id = 'browser_not_found'


class UnsupportedBrowser(PushTestingError):
	error_id = 'bad_browser_support'


# Protocol faults


class ProtocolFailureKind(str, Enum):
	"""Failures explicitly reported by the in-page harness."""

	SERVICE_WORKER = 'unable_to_reg_service_worker'
	SUBSCRIPTION = 'unable_to_get_subscription'


class ProtocolFailure(PushTestingError):
	"""The harness reported that a step of the subscription flow failed."""

	status_code = 500

	def __init__(self, kind: ProtocolFailureKind, message: str):
		self.kind = kind
		super().__init__(message, error_id=kind.value)


# Driver faults


class DriverFailure(PushTestingError):
	"""A driver or timeout fault, wrapped with operation context."""

	error_id = 'webdriver_issue'
	status_code = 500


class DriverError(Exception):
	"""Raised by a browser session when the driver cannot complete a call."""


class WaitTimeoutError(DriverError):
	"""A bounded wait expired before its predicate became true."""

	def __init__(self, predicate: str, timeout: float):
		self.predicate = predicate
		self.timeout = timeout
		super().__init__(f'Timed out after {timeout:.1f}s waiting for: {predicate}')


class InvalidInstanceError(Exception):
	"""An operation was attempted on a test instance that cannot accept it."""


class SuiteEndedError(Exception):
	"""A test suite ended while an instance was being added to it."""


class SuiteTeardownError(DriverError):
	"""One or more instances failed to release their browser sessions."""

	def __init__(self, suite_id: int, failures: dict[int, BaseException]):
		self.suite_id = suite_id
		self.failures = failures
		details = '; '.join(f'test {instance_id}: {error}' for instance_id, error in failures.items())
		super().__init__(f'Failed to end {len(failures)} test instance(s) in suite {suite_id}: {details}')
