"""
mockwire Common Utilities

Shared utilities and helpers used across mockwire modules.
"""

from .utils import safe_json_parse, json_equals, json_includes, UNPARSABLE
from .url_utils import URLMatcher

__all__ = [
    'safe_json_parse',
    'json_equals',
    'json_includes',
    'UNPARSABLE',
    'URLMatcher'
]
