"""
Pytest configuration and shared fixtures for all tests.
"""

import httpx
import pytest

from push_testing.config import ServiceConfig
from push_testing.orchestrator import Orchestrator
from push_testing.server.app import create_app
from tests.fakes import FakeProvisioner, FakeSessionFactory


@pytest.fixture
def service_config():
	"""Configuration with short waits and no browser downloads."""
	return ServiceConfig(
		public_url='http://localhost:8090',
		download_browsers=False,
		harness_timeout=0.5,
		subscription_timeout=0.5,
		message_timeout=0.3,
		message_interval=0.05,
	)


@pytest.fixture
def provisioner():
	return FakeProvisioner()


@pytest.fixture
def session_factory():
	return FakeSessionFactory()


@pytest.fixture
def orchestrator(service_config, provisioner, session_factory):
	return Orchestrator(
		config=service_config,
		provisioner=provisioner,
		session_factory=session_factory,
		serve_api=False,
	)


@pytest.fixture
async def client(orchestrator):
	"""Async HTTP client talking to the API app in-process."""
	app = create_app(orchestrator)
	async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url='http://testserver') as test_client:
		yield test_client
