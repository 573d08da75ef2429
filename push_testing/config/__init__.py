"""
Configuration module for the push testing service.

Provides service settings and the browser exclusion table.
"""

from push_testing.config.settings import DEFAULT_EXCLUSIONS, BrowserExclusion, ServiceConfig

__all__ = [
	'BrowserExclusion',
	'DEFAULT_EXCLUSIONS',
	'ServiceConfig',
]
