"""
JavaScript snippets evaluated against the in-page harness.

The harness exposes ``window.PUSH_TESTING_SERVICE`` with a ``loaded`` flag, a
``start()`` entry point, ``swRegistered`` and ``subscription`` results and a
``receivedMessages`` buffer.
"""

HARNESS_LOADED = 'Boolean(window.PUSH_TESTING_SERVICE && window.PUSH_TESTING_SERVICE.loaded)'

START = '(() => { window.PUSH_TESTING_SERVICE.start(); return true; })()'

SW_REGISTERED_REPORTED = "typeof window.PUSH_TESTING_SERVICE.swRegistered !== 'undefined'"

SW_REGISTERED = 'window.PUSH_TESTING_SERVICE.swRegistered'

SUBSCRIPTION_REPORTED = "typeof window.PUSH_TESTING_SERVICE.subscription !== 'undefined'"

SUBSCRIPTION = 'window.PUSH_TESTING_SERVICE.subscription'

MESSAGES_PENDING = 'window.PUSH_TESTING_SERVICE.receivedMessages.length > 0'

# Read and clear in one evaluation so no message lands between the two steps
DRAIN_MESSAGES = """(() => {
	const messages = window.PUSH_TESTING_SERVICE.receivedMessages;
	window.PUSH_TESTING_SERVICE.receivedMessages = [];
	return messages;
})()"""
