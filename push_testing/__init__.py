"""
Web Push Testing Service

Drives real browsers through push subscription and message delivery so push
senders can be tested end to end.
"""

from push_testing.errors import DriverFailure, ProtocolFailure, ProtocolFailureKind, PushTestingError
from push_testing.orchestrator import Orchestrator
from push_testing.schemas import Subscription

__all__ = [
	'DriverFailure',
	'Orchestrator',
	'ProtocolFailure',
	'ProtocolFailureKind',
	'PushTestingError',
	'Subscription',
]
