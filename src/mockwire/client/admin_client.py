"""
mockwire Admin Client

httpx-based client for the admin API of a running mock server.
"""

import logging
from typing import Any, Dict, Union

import httpx

from ..mock.errors import ConfigurationError, MockClientError, MockNotFoundError
from .builder import MockBuilder

logger = logging.getLogger("mockwire.client")


class MockHandle:
    """Reference to a mock stored on a server."""

    def __init__(self, client: 'MockClient', mock_id: int):
        self.client = client
        self.id = mock_id

    def times_called(self) -> int:
        """Current call count of this mock."""
        return self.client.describe(self.id)['call_count']

    def assert_hits(self, expected: int):
        """Assert the mock was called exactly expected times."""
        actual = self.times_called()
        assert actual == expected, f"Mock {self.id} was called {actual} time(s), expected {expected}"

    def delete(self):
        self.client.delete(self.id)

    def __repr__(self) -> str:
        return f"MockHandle(id={self.id}, server={self.client.base_url!r})"


class MockClient:
    """
    Client for creating, inspecting and deleting mocks over HTTP.

    Example:
        with MockClient('http://127.0.0.1:50123') as client:
            handle = client.create(MockBuilder('GET', '/health').return_status(204))
            ...
            assert handle.times_called() == 1
    """

    def __init__(self, base_url: str, admin_prefix: str = "/__admin__", timeout: float = 10.0):
        """
        Initialize admin client.

        Args:
            base_url: Server base URL, e.g. http://127.0.0.1:50123
            admin_prefix: Path prefix of the admin API
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.admin_prefix = '/' + admin_prefix.strip('/')
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout)

    def _path(self, suffix: str) -> str:
        return f"{self.admin_prefix}{suffix}"

    @staticmethod
    def _unexpected(response: httpx.Response) -> MockClientError:
        return MockClientError(
            f"Admin API answered {response.status_code} for {response.request.method} {response.request.url}",
            status_code=response.status_code,
            body=response.text
        )

    def create(self, mock: Union[MockBuilder, Dict[str, Any]]) -> MockHandle:
        """
        Store a mock on the server.

        Args:
            mock: MockBuilder or raw definition dictionary

        Returns:
            MockHandle for the new mock

        Raises:
            ConfigurationError: If the server rejected the definition (422)
            MockClientError: On any other unexpected status
        """
        payload = mock.to_dict() if isinstance(mock, MockBuilder) else mock
        response = self._http.post(self._path('/mocks'), json=payload)

        if response.status_code == 422:
            raise ConfigurationError(response.json().get('detail', response.text))
        if response.status_code != 201:
            raise self._unexpected(response)

        mock_id = response.json()['mock_id']
        logger.debug(f"Created mock {mock_id} on {self.base_url}")
        return MockHandle(self, mock_id)

    def describe(self, mock_id: int) -> Dict[str, Any]:
        """
        Get a mock and its call count.

        Raises:
            MockNotFoundError: If the server does not know the id
        """
        response = self._http.get(self._path(f'/mocks/{mock_id}'))
        if response.status_code == 404:
            raise MockNotFoundError(mock_id)
        if response.status_code != 200:
            raise self._unexpected(response)
        return response.json()

    def delete(self, mock_id: int):
        response = self._http.delete(self._path(f'/mocks/{mock_id}'))
        if response.status_code != 200:
            raise self._unexpected(response)

    def clear(self) -> int:
        """Delete all mocks, returning how many were removed."""
        response = self._http.delete(self._path('/mocks'))
        if response.status_code != 200:
            raise self._unexpected(response)
        return response.json()['deleted_count']

    def ping(self) -> bool:
        try:
            return self._http.get(self._path('/ping')).status_code == 200
        except httpx.TransportError:
            return False

    def close(self):
        self._http.close()

    def __enter__(self) -> 'MockClient':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
