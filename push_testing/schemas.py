"""
Pydantic models for values returned to API callers.
"""

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionKeys(BaseModel):
	"""Encryption keys of a push subscription."""

	model_config = ConfigDict(extra='allow')

	p256dh: str = Field(..., description='Client public key (base64url)')
	auth: str = Field(..., description='Authentication secret (base64url)')


class Subscription(BaseModel):
	"""Push subscription reported by the browser.

	The service treats it as opaque: unknown fields are preserved and
	returned to the caller untouched.
	"""

	model_config = ConfigDict(extra='allow', populate_by_name=True)

	endpoint: str = Field(..., description='Push service endpoint URL')
	keys: SubscriptionKeys | None = Field(default=None, description='Encryption keys, if any')
	content_encodings: list[str] | None = Field(
		default=None,
		alias='contentEncodings',
		description='Content encodings supported by the browser',
	)


class SuiteCreated(BaseModel):
	"""Result of a start-test-suite call."""

	model_config = ConfigDict(populate_by_name=True)

	test_suite_id: int = Field(..., alias='testSuiteId')


class SubscriptionResult(BaseModel):
	"""Result of a successful get-subscription call."""

	model_config = ConfigDict(populate_by_name=True)

	test_id: int = Field(..., alias='testId')
	subscription: Subscription


class NotificationStatus(BaseModel):
	messages: list[str] = Field(default_factory=list, description='Messages drained from the harness')
