"""
mockwire Mock Server Module

Mock HTTP server functionality programmed at runtime.

This module provides:
- FastAPI-based mock server with an admin API
- Mock registry with exact call counting
- Rule-based request matching engine
"""

from .server import MockServer, MockConfig, MockMetrics, create_mock_server, FALLBACK_STATUS
from .matcher import RequestMatcher, MatchResult, IncomingRequest, evaluate, matches
from .models import MockDefinition, Expectation, ResponseSpec, EXPECTATION_KINDS
from .registry import MockRegistry, ReadWriteLock, CallCounter
from .errors import (
    MockwireError,
    ConfigurationError,
    MockNotFoundError,
    BindError,
    ServerStartupError,
    MockClientError
)

__all__ = [
    # Server
    'MockServer',
    'MockConfig',
    'MockMetrics',
    'create_mock_server',
    'FALLBACK_STATUS',

    # Matcher
    'RequestMatcher',
    'MatchResult',
    'IncomingRequest',
    'evaluate',
    'matches',

    # Models
    'MockDefinition',
    'Expectation',
    'ResponseSpec',
    'EXPECTATION_KINDS',

    # Registry
    'MockRegistry',
    'ReadWriteLock',
    'CallCounter',

    # Errors
    'MockwireError',
    'ConfigurationError',
    'MockNotFoundError',
    'BindError',
    'ServerStartupError',
    'MockClientError',
]

__version__ = '1.0.0'
