"""
mockwire

Ephemeral in-process mock HTTP servers for tests.
"""

from .mock import (
    MockServer,
    MockConfig,
    MockDefinition,
    MockRegistry,
    ConfigurationError,
    MockNotFoundError,
    BindError,
)
from .client import MockBuilder, MockClient, MockHandle

__all__ = [
    'MockServer',
    'MockConfig',
    'MockDefinition',
    'MockRegistry',
    'ConfigurationError',
    'MockNotFoundError',
    'BindError',
    'MockBuilder',
    'MockClient',
    'MockHandle',
]

__version__ = '1.0.0'
