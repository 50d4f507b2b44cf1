"""
mockwire URL Utilities

Query string decoding and admin prefix normalization.
"""

from urllib.parse import parse_qsl
from typing import Dict, List


class URLMatcher:
    """Handles URL parsing for request matching."""

    @staticmethod
    def parse_query(query: str) -> Dict[str, List[str]]:
        """
        Decode a raw query string into multi-valued parameters.

        Values are percent-decoded as UTF-8; blank values are kept so that
        ``?flag`` still counts as an occurrence of ``flag``.

        Args:
            query: Raw query string without the leading '?'

        Returns:
            Dict mapping parameter name to all of its values, in order
        """
        params: Dict[str, List[str]] = {}
        if not query:
            return params

        for name, value in parse_qsl(query, keep_blank_values=True, encoding='utf-8', errors='replace'):
            params.setdefault(name, []).append(value)

        return params

    @staticmethod
    def normalize_prefix(prefix: str) -> str:
        """
        Normalize an admin path prefix to '/name' form.

        Args:
            prefix: Prefix as configured, e.g. '__admin__/' or '/__admin__'

        Returns:
            Prefix with exactly one leading slash and no trailing slash
        """
        stripped = prefix.strip().strip('/')
        if not stripped:
            raise ValueError("Admin prefix must not be empty")
        return '/' + stripped

    @staticmethod
    def has_prefix(path: str, prefix: str) -> bool:
        """Check whether path is the prefix itself or lies below it."""
        return path == prefix or path.startswith(prefix + '/')
