"""
mockwire Client Module

Building mock definitions and sending them to a running server.
"""

from .builder import MockBuilder
from .admin_client import MockClient, MockHandle

__all__ = [
    'MockBuilder',
    'MockClient',
    'MockHandle',
]
