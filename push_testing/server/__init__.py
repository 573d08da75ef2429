"""Server components."""
from push_testing.server.app import ApiServer, create_app

__all__ = [
	'ApiServer',
	'create_app',
]
