"""
mockwire Errors

Exception types raised by the mock server, its registry and the admin client.
"""

from typing import Optional


class MockwireError(Exception):
    """Base class for all mockwire errors."""


class ConfigurationError(MockwireError, ValueError):
    """A mock definition is malformed and was not stored."""


class MockNotFoundError(MockwireError, KeyError):
    """No active mock exists under the requested id."""

    def __init__(self, mock_id: int):
        super().__init__(mock_id)
        self.mock_id = mock_id

    def __str__(self) -> str:
        return f"Mock {self.mock_id} not found"


class BindError(MockwireError, OSError):
    """The server could not bind its listen address."""


class ServerStartupError(MockwireError, RuntimeError):
    """The server did not become ready in time."""


class MockClientError(MockwireError):
    """The admin API answered with an unexpected status code."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
