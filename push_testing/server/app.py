"""
HTTP API for the push testing service.

Exposes the four test operations as POST endpoints, wraps results in the
``{"data": ...}`` / ``{"error": {"id", "message"}}`` envelope and serves the
in-page harness the driven browsers load.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from push_testing.errors import PushTestingError

logger = logging.getLogger(__name__)

HARNESS_DIR = Path(__file__).resolve().parent.parent / 'harness'


async def _read_args(request: Request) -> dict[str, Any]:
	"""Parse the JSON body; a missing or malformed body counts as no arguments."""
	body = await request.body()
	if not body:
		return {}
	try:
		args = json.loads(body)
	except ValueError:
		logger.debug(f'[API] Ignoring non-JSON body on {request.url.path}')
		return {}
	return args if isinstance(args, dict) else {}


async def _respond(operation: str, pending: Awaitable[dict[str, Any]]) -> JSONResponse:
	try:
		data = await pending
	except PushTestingError as e:
		logger.info(f'[API] {operation} failed: {e.error_id}: {e.message}')
		return JSONResponse(e.to_response(), status_code=e.status_code)
	except Exception as e:
		logger.error(f'[API] {operation} raised an unexpected error: {e}', exc_info=True)
		return JSONResponse(
			{'error': {'id': 'internal_error', 'message': f'Unexpected error: {e}'}},
			status_code=500,
		)
	return JSONResponse({'data': data})


def create_app(orchestrator: Any, lifespan: Any | None = None) -> FastAPI:
	"""Build the FastAPI app for orchestrator.

	Args:
		orchestrator: Orchestrator handling the operations
		lifespan: Optional lifespan context manager

	Returns:
		FastAPI app with API routes and the harness mounted at /
	"""
	app = FastAPI(title='Web Push Testing Service', lifespan=lifespan)
	app.state.orchestrator = orchestrator

	@app.post('/api/start-test-suite/')
	async def start_test_suite():
		async def start():
			return orchestrator.start_test_suite()

		return await _respond('start-test-suite', start())

	@app.post('/api/end-test-suite/')
	async def end_test_suite(request: Request):
		args = await _read_args(request)
		return await _respond('end-test-suite', orchestrator.end_test_suite(args))

	@app.post('/api/get-subscription/')
	async def get_subscription(request: Request):
		args = await _read_args(request)
		return await _respond('get-subscription', orchestrator.get_subscription(args))

	@app.post('/api/get-notification-status/')
	async def get_notification_status(request: Request):
		args = await _read_args(request)
		return await _respond('get-notification-status', orchestrator.get_notification_status(args))

	@app.get('/health')
	async def health_check():
		return JSONResponse({
			'status': 'ok',
			'service': 'web-push-testing-service',
			'test_suites': len(orchestrator.suites),
		})

	# Registered last so the API routes take precedence
	app.mount('/', StaticFiles(directory=HARNESS_DIR, html=True), name='harness')
	return app


class ApiServer:
	"""Runs the API app under uvicorn inside the current event loop."""

	def __init__(self, orchestrator: Any):
		config = orchestrator.config
		self.app = create_app(orchestrator)
		self.server = uvicorn.Server(
			uvicorn.Config(
				self.app,
				host=config.host,
				port=config.port,
				log_config=None,  # Use the service logging configuration
			)
		)
		self.url = config.harness_url
		self._serve_task: asyncio.Task[Any] | None = None

	async def start_listening(self) -> None:
		"""Start serving and return once the socket is bound."""
		if self._serve_task is not None:
			return

		self._serve_task = asyncio.create_task(self.server.serve(), name='push_testing_api_server')
		while not self.server.started:
			if self._serve_task.done():
				await self._serve_task
				raise RuntimeError('API server stopped before it started listening')
			await asyncio.sleep(0.05)
		logger.info(f'[API] Listening on {self.url}')

	async def wait_closed(self) -> None:
		if self._serve_task is not None:
			await self._serve_task

	async def kill(self) -> None:
		"""Stop serving. Calling it again is a no-op."""
		if self._serve_task is None:
			return
		self.server.should_exit = True
		await self._serve_task
		self._serve_task = None
		logger.info('[API] Stopped')
