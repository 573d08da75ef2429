"""
Startup script for the Web Push Testing Service

Starts:
1. Browser provisioning (downloads every supported browser)
2. The HTTP API and harness server

Runs until interrupted, then ends every live test suite.
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from push_testing.config import ServiceConfig

logger = logging.getLogger(__name__)


def configure_logging(config: ServiceConfig) -> None:
	"""Configure root logging for the service process.

	Set PUSH_TESTING_DEBUG=true to enable debug logging.
	"""
	root_log_level = logging.DEBUG if config.debug else logging.INFO

	handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
	if config.log_file:
		handlers.append(logging.FileHandler(config.log_file))

	logging.basicConfig(
		level=root_log_level,
		format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
		handlers=handlers,
		force=True,  # Override any existing configuration
	)

	logging.getLogger('uvicorn').setLevel(logging.INFO)
	logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
	logging.getLogger('fastapi').setLevel(logging.INFO)

	# browser_use and its CDP client are very chatty at DEBUG
	logging.getLogger('browser_use').setLevel(logging.INFO)
	logging.getLogger('cdp_use').setLevel(logging.WARNING)
	logging.getLogger('bubus').setLevel(logging.WARNING)

	logging.getLogger('httpcore').setLevel(logging.WARNING)
	logging.getLogger('httpx').setLevel(logging.WARNING)


async def run_service(config: ServiceConfig) -> None:
	from push_testing.orchestrator import Orchestrator

	orchestrator = Orchestrator(config=config)
	try:
		await orchestrator.start_service()
		logger.info('=' * 70)
		logger.info(f'API: {config.harness_url}/api/')
		logger.info(f'Harness: {config.harness_url}/')
		logger.info(f'Health check: {config.harness_url}/health')
		logger.info('=' * 70)
		await orchestrator.wait_closed()
	finally:
		logger.info('🛑 Stopping Web Push Testing Service...')
		await orchestrator.end_service()


def main() -> None:
	# macOS fork safety for the browser subprocesses
	if sys.platform == 'darwin':
		os.environ.setdefault('OBJC_DISABLE_INITIALIZE_FORK_SAFETY', 'YES')

	# .env.local takes precedence over .env for local development overrides
	load_dotenv(dotenv_path='.env.local', override=False)
	load_dotenv(override=False)

	config = ServiceConfig.from_env()
	configure_logging(config)

	logger.info('=' * 70)
	logger.info('Starting Web Push Testing Service')
	logger.info(f'   Browsers: {", ".join(config.supported_browsers)}')
	logger.info(f'   Versions: {", ".join(config.supported_versions)}')
	logger.info(f'   Headless: {config.headless}')
	logger.info('=' * 70)

	try:
		asyncio.run(run_service(config))
	except KeyboardInterrupt:
		logger.info('Interrupted')
	except RuntimeError as e:
		logger.error(f'❌ Service failed: {e}')
		sys.exit(1)


if __name__ == '__main__':
	main()
