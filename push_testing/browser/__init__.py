"""Browser sessions and provisioning."""
from push_testing.browser.provisioning import BrowserHandle, BrowserProvisioner
from push_testing.browser.session import BrowserSession, BrowserSessionFactory, CdpBrowserSession

__all__ = [
	'BrowserHandle',
	'BrowserProvisioner',
	'BrowserSession',
	'BrowserSessionFactory',
	'CdpBrowserSession',
]
