"""
mockwire Mock Server

FastAPI-based HTTP mock server programmed at runtime through an admin API.

Features:
- Declarative request matching (path, query, headers, body, JSON)
- Canned responses returned byte-for-byte, with optional delay
- Admin API for creating, inspecting and deleting mocks on a live server
- Exact per-mock call counting
- Isolated instances on OS-assigned ephemeral ports
- Metrics and optional request recording
"""

from __future__ import annotations  # Enable forward references for type hints

import asyncio
import json
import logging
import os
import socket
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import uvicorn
import yaml
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from ..common import URLMatcher
from .errors import BindError, ConfigurationError, MockNotFoundError, ServerStartupError
from .matcher import IncomingRequest, MatchResult, RequestMatcher
from .models import MockDefinition
from .registry import MockRegistry

# Status returned when no mock matches a request
FALLBACK_STATUS = 500

# Set by the ASGI server from the actual body
_SKIPPED_RESPONSE_HEADERS = {'content-length', 'transfer-encoding', 'connection'}

LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _parse_mock_id(mock_id: str) -> Optional[int]:
    """Numeric id from an admin path segment, or None for anything but ASCII digits."""
    if not mock_id.isascii() or not mock_id.isdigit():
        return None
    return int(mock_id)


@dataclass
class MockConfig:
    """Configuration for mock server behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 0  # 0 = OS-assigned ephemeral port
    log_level: str = "warning"
    access_log: bool = False

    # Admin API
    admin_prefix: str = "/__admin__"

    # Request recording
    recording_enabled: bool = False  # Record incoming requests for inspection
    recording_limit: int = 1000  # Maximum number of requests to record (0 = unlimited)

    # Lifecycle
    startup_timeout: float = 5.0  # Seconds to wait for the server to accept connections
    shutdown_timeout: float = 5.0  # Seconds to wait for the server thread on stop

    def __post_init__(self):
        self.admin_prefix = URLMatcher.normalize_prefix(self.admin_prefix)
        self.log_level = self.log_level.lower()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level {self.log_level!r}, expected one of {', '.join(LOG_LEVELS)}")

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides: Any) -> 'MockConfig':
        """
        Create config from MOCKWIRE_* environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            **overrides: Explicit values taking precedence over the environment

        Returns:
            MockConfig instance
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        if env.get('MOCKWIRE_HOST'):
            values['host'] = env['MOCKWIRE_HOST']
        if env.get('MOCKWIRE_PORT'):
            values['port'] = int(env['MOCKWIRE_PORT'])
        if env.get('MOCKWIRE_ADMIN_PREFIX'):
            values['admin_prefix'] = env['MOCKWIRE_ADMIN_PREFIX']
        if env.get('MOCKWIRE_LOG_LEVEL'):
            values['log_level'] = env['MOCKWIRE_LOG_LEVEL'].lower()
        if env.get('MOCKWIRE_RECORDING'):
            values['recording_enabled'] = _env_flag(env['MOCKWIRE_RECORDING'])

        values.update(overrides)
        return cls(**values)


@dataclass
class MockMetrics:
    """Track mock server metrics."""

    total_requests: int = 0
    matched_requests: int = 0
    unmatched_requests: int = 0
    start_time: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        uptime_seconds = (datetime.now() - datetime.fromisoformat(self.start_time)).total_seconds()
        return {
            'total_requests': self.total_requests,
            'matched_requests': self.matched_requests,
            'unmatched_requests': self.unmatched_requests,
            'match_rate': round((self.matched_requests / self.total_requests * 100) if self.total_requests > 0 else 0, 2),
            'uptime_seconds': round(uptime_seconds, 2),
            'start_time': self.start_time
        }


class _BackgroundServer(uvicorn.Server):
    """uvicorn server that can run outside the main thread."""

    def install_signal_handlers(self):
        # Signals belong to the host process, not to a test fixture
        pass


class MockServer:
    """
    Ephemeral mock HTTP server for tests.

    Each instance owns its own registry and port; nothing is shared between
    instances, so servers can run side by side in one process.

    Example:
        with MockServer() as server:
            search = server.mock('GET', '/search').expect_query_param('q', 'metallica').return_status(204).create()

            response = httpx.get(server.url('/search?q=metallica'))

            assert response.status_code == 204
            search.assert_hits(1)

        # Or over the raw admin API
        server = MockServer(MockConfig(admin_prefix='/__mocks__'))
        server.start()
        httpx.post(server.url('/__mocks__/mocks'), json={'method': 'GET', 'response': {'status': 200}})
        server.stop()
    """

    def __init__(self, config: Optional[MockConfig] = None):
        """
        Initialize mock server.

        Args:
            config: Optional MockConfig for server behavior
        """
        self.config = config or MockConfig()
        self.logger = logging.getLogger("mockwire.mock")
        self._reset_state()

        self._server: Optional[_BackgroundServer] = None
        self._thread: Optional[threading.Thread] = None
        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None
        self._client = None

        # Setup FastAPI app
        self.app = self._create_app()

    def _reset_state(self):
        """Start with no mocks, no recordings and fresh metrics."""
        self.registry = MockRegistry()
        self.matcher = RequestMatcher(self.registry)
        self.metrics = MockMetrics()
        self.recorded_requests: List[Dict[str, Any]] = []  # Store recorded requests

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes."""
        app = FastAPI(
            title="mockwire",
            description="Mock HTTP server programmed through an admin API",
            version="1.0.0",
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )
        prefix = self.config.admin_prefix

        @app.get(f"{prefix}/ping")
        async def ping():
            """Readiness probe."""
            return JSONResponse(content={'status': 'ok'})

        @app.post(f"{prefix}/mocks")
        async def create_mock(request: Request):
            """Validate and store a mock definition."""
            raw = await request.body()
            try:
                definition = MockDefinition.from_dict(json.loads(raw))
            except ValueError as e:
                # ConfigurationError, JSONDecodeError and UnicodeDecodeError are all ValueErrors
                self.logger.warning(f"Rejected mock definition: {e}")
                return JSONResponse(
                    content={'error': 'invalid_mock_definition', 'detail': str(e)},
                    status_code=422
                )

            mock_id = self.registry.create(definition)
            return JSONResponse(content={'mock_id': mock_id}, status_code=201)

        @app.get(f"{prefix}/mocks")
        async def list_mocks():
            """List all active mocks with their call counts."""
            mocks = [
                {'call_count': call_count, 'mock': definition.to_dict()}
                for call_count, definition in self.registry.list()
            ]
            return JSONResponse(content={'total': len(mocks), 'mocks': mocks})

        @app.delete(f"{prefix}/mocks")
        async def clear_mocks():
            """Delete all mocks."""
            count = self.registry.clear()
            return JSONResponse(content={'status': 'cleared', 'deleted_count': count})

        @app.get(f"{prefix}/mocks/{{mock_id}}")
        async def describe_mock(mock_id: str):
            """Get a mock and its call count."""
            numeric_id = _parse_mock_id(mock_id)
            try:
                if numeric_id is None:
                    raise MockNotFoundError(mock_id)
                call_count, definition = self.registry.describe(numeric_id)
            except MockNotFoundError:
                return JSONResponse(
                    content={'error': 'mock_not_found', 'mock_id': mock_id},
                    status_code=404
                )
            return JSONResponse(content={'call_count': call_count, 'mock': definition.to_dict()})

        @app.delete(f"{prefix}/mocks/{{mock_id}}")
        async def delete_mock(mock_id: str):
            """Delete a mock. Unknown ids are accepted."""
            numeric_id = _parse_mock_id(mock_id)
            if numeric_id is None:
                self.logger.debug(f"Delete of non-numeric mock id {mock_id!r} ignored")
                return JSONResponse(content={'status': 'deleted', 'mock_id': mock_id})

            self.registry.delete(numeric_id)
            return JSONResponse(content={'status': 'deleted', 'mock_id': numeric_id})

        @app.get(f"{prefix}/metrics")
        async def get_metrics():
            """Get server metrics."""
            return JSONResponse(content=self.metrics.to_dict())

        @app.get(f"{prefix}/recordings")
        async def get_recordings():
            """Get all recorded requests."""
            return JSONResponse(content={
                'total': len(self.recorded_requests),
                'limit': self.config.recording_limit,
                'recording_enabled': self.config.recording_enabled,
                'recordings': self.recorded_requests
            })

        @app.delete(f"{prefix}/recordings")
        async def clear_recordings():
            """Clear all recorded requests."""
            count = len(self.recorded_requests)
            self.recorded_requests.clear()
            return JSONResponse(content={
                'status': 'cleared',
                'cleared_count': count
            })

        # Main catch-all route for mocking. A plain Starlette route with no
        # method list accepts every method, including extension methods.
        app.add_route("/{path:path}", self._handle_request, methods=None, include_in_schema=False)

        return app

    async def _handle_request(self, request: Request) -> Response:
        """
        Handle incoming request and serve mock response.

        Args:
            request: FastAPI Request object

        Returns:
            Response configured on the winning mock, or the fallback response
        """
        path = request.url.path

        # Admin paths never reach the matcher
        if URLMatcher.has_prefix(path, self.config.admin_prefix):
            return JSONResponse(
                content={'error': 'unknown_admin_endpoint', 'method': request.method, 'path': path},
                status_code=404
            )

        self.metrics.total_requests += 1

        body = await request.body()
        incoming = IncomingRequest.from_parts(
            method=request.method,
            path=path,
            query_string=request.url.query,
            headers=request.headers.items(),
            body=body
        )

        self.logger.debug(f"Incoming: {incoming.method} {request.url}")

        match_result = self.matcher.match_request(incoming)

        if match_result.matched:
            self.metrics.matched_requests += 1
            spec = match_result.response
            if spec.delay_ms > 0:
                await asyncio.sleep(spec.delay_ms / 1000)
            response = self._create_response(match_result)
        else:
            self.metrics.unmatched_requests += 1
            self.logger.warning(f"No match found for {incoming.method} {path}")
            response = JSONResponse(
                content={
                    'error': 'No mock matched the request',
                    'method': incoming.method,
                    'path': path
                },
                status_code=FALLBACK_STATUS
            )

        if self.config.recording_enabled:
            self._record_request(incoming, str(request.url), match_result, response.status_code)

        return response

    def _create_response(self, match_result: MatchResult) -> Response:
        """
        Create FastAPI Response from the matched mock's response spec.

        Args:
            match_result: Successful match result

        Returns:
            FastAPI Response carrying the configured status, headers and body
        """
        spec = match_result.response
        response = Response(content=spec.body or b"", status_code=spec.status)

        for name, value in spec.headers:
            if name.lower() in _SKIPPED_RESPONSE_HEADERS:
                continue
            response.headers.append(name, value)

        return response

    def _record_request(
        self,
        incoming: IncomingRequest,
        url: str,
        match_result: MatchResult,
        response_status: int
    ):
        """
        Record a request for later inspection via the admin API.

        Args:
            incoming: Parsed request
            url: Full request URL
            match_result: Outcome of matching
            response_status: Status code sent back
        """
        # Apply FIFO eviction when the limit is reached (0 = unlimited)
        if self.config.recording_limit > 0 and len(self.recorded_requests) >= self.config.recording_limit:
            self.recorded_requests.pop(0)

        self.recorded_requests.append({
            'timestamp': datetime.now().isoformat(),
            'method': incoming.method,
            'url': url,
            'path': incoming.path,
            'headers': dict(incoming.headers),
            'body': incoming.text,
            'matched': match_result.matched,
            'mock_id': match_result.mock.id if match_result.mock else None,
            'response_status': response_status
        })

    def load_mocks(self, path: str) -> List[int]:
        """
        Create mocks from a YAML or JSON file.

        The file holds either a list of mock definitions or a mapping with a
        'mocks' list. Every definition is validated before any is stored.

        Args:
            path: Path to the mock file

        Returns:
            Ids of the created mocks, in file order

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigurationError: If the file or any definition is malformed
        """
        mock_file = Path(path)
        if not mock_file.exists():
            raise FileNotFoundError(f"Mock file not found: {mock_file}")

        with open(mock_file, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {mock_file}: {e}") from e

        if isinstance(data, dict):
            data = data.get('mocks')
        if not isinstance(data, list):
            raise ConfigurationError(
                f"Unexpected format in {mock_file}. Expected a list of mocks or a mapping with a 'mocks' list"
            )

        definitions = [MockDefinition.from_dict(item) for item in data]
        mock_ids = [self.registry.create(definition) for definition in definitions]

        self.logger.info(f"Loaded {len(mock_ids)} mocks from {mock_file}")
        return mock_ids

    def start(self) -> 'MockServer':
        """
        Bind the listen socket and serve in a background thread.

        Returns:
            self, for chaining

        Raises:
            BindError: If the configured address cannot be bound
            ServerStartupError: If the server is not ready within startup_timeout
        """
        if self._thread is not None:
            raise RuntimeError("Mock server is already running")

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as e:
            sock.close()
            raise BindError(f"Cannot bind {self.config.host}:{self.config.port}: {e}") from e

        self._socket = sock
        self._address = sock.getsockname()[:2]

        uvicorn_config = uvicorn.Config(
            self.app,
            host=self._address[0],
            port=self._address[1],
            log_level=self.config.log_level,
            log_config=None,
            access_log=self.config.access_log,
            lifespan="off"
        )
        self._server = _BackgroundServer(uvicorn_config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={'sockets': [sock]},
            name=f"mockwire-{self._address[1]}",
            daemon=True
        )
        self._thread.start()

        deadline = time.monotonic() + self.config.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise ServerStartupError(f"Mock server on port {self._address[1]} did not start")
            time.sleep(0.01)

        self.logger.info(f"Mock server listening on {self.base_url} (admin: {self.config.admin_prefix})")
        return self

    def stop(self):
        """
        Stop the server and release its port. Safe to call repeatedly.

        Stored mocks, call counts, metrics and recordings are discarded, so a
        restarted instance begins empty.
        """
        if self._thread is None:
            return

        port = self._address[1] if self._address else None
        self._server.should_exit = True
        self._thread.join(timeout=self.config.shutdown_timeout)
        if self._thread.is_alive():
            self.logger.warning(f"Mock server thread on port {port} did not exit within {self.config.shutdown_timeout}s")

        if self._socket is not None:
            self._socket.close()
        if self._client is not None:
            self._client.close()

        self._server = None
        self._thread = None
        self._socket = None
        self._address = None
        self._client = None
        self._reset_state()
        self.logger.info(f"Mock server on port {port} stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) pair."""
        if self._address is None:
            raise RuntimeError("Mock server is not running")
        return self._address

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def base_url(self) -> str:
        host, port = self.address
        return f"http://{host}:{port}"

    def url(self, path: str = "/") -> str:
        """Absolute URL for a path on this server."""
        if not path.startswith('/'):
            path = '/' + path
        return f"{self.base_url}{path}"

    @property
    def client(self):
        """Admin API client bound to this server."""
        from ..client import MockClient

        if self._client is None:
            self._client = MockClient(self.base_url, admin_prefix=self.config.admin_prefix)
        return self._client

    def mock(self, method: str, path: Optional[str] = None):
        """
        Start building a mock that will be sent to this server.

        Args:
            method: HTTP method the mock answers
            path: Optional exact path expectation

        Returns:
            MockBuilder whose create() stores the mock through the admin API
        """
        from ..client import MockBuilder

        return MockBuilder(method, path, client=self.client)

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app

    def __enter__(self) -> 'MockServer':
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


def create_mock_server(
    host: str = "127.0.0.1",
    port: int = 0,
    admin_prefix: str = "/__admin__",
    log_level: str = "warning",
    recording_enabled: bool = False,
    recording_limit: int = 1000
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        host: Host to bind to
        port: Port to bind to (0 = OS-assigned)
        admin_prefix: Path prefix of the admin API
        log_level: Log level for mockwire and uvicorn
        recording_enabled: Enable request recording
        recording_limit: Maximum requests to record (0 = unlimited)

    Returns:
        Configured (not yet started) MockServer instance

    Example:
        server = create_mock_server(recording_enabled=True).start()
    """
    config = MockConfig(
        host=host,
        port=port,
        admin_prefix=admin_prefix,
        log_level=log_level,
        recording_enabled=recording_enabled,
        recording_limit=recording_limit
    )

    return MockServer(config=config)
