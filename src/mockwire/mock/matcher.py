"""
mockwire Request Matcher

Rule-based matching engine selecting the mock that answers a request.

Features:
- Method matching plus AND-combined expectations per mock
- Path matching (exact, substring, regex search)
- Query parameter matching (multi-valued, percent-decoded)
- Header matching (case-insensitive names)
- Body matching (bytes, substring, regex, JSON exact and partial)
- Deterministic tie-break: the lowest-id matching mock wins
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..common import URLMatcher, json_equals, json_includes, safe_json_parse, UNPARSABLE
from .models import Expectation, MockDefinition, ResponseSpec
from .registry import MockRegistry

logger = logging.getLogger("mockwire.mock.matcher")


@dataclass
class IncomingRequest:
    """Parsed view of a request as seen by the expectation evaluators."""

    method: str
    path: str
    query: Dict[str, List[str]] = field(default_factory=dict)
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    @classmethod
    def from_parts(
        cls,
        method: str,
        path: str,
        query_string: str = "",
        headers: Optional[List[Tuple[str, str]]] = None,
        body: bytes = b""
    ) -> 'IncomingRequest':
        """
        Build a request from raw HTTP parts.

        Args:
            method: HTTP method
            path: Percent-decoded request path
            query_string: Raw query string (still percent-encoded)
            headers: Header (name, value) pairs in wire order
            body: Raw request body
        """
        return cls(
            method=method.upper(),
            path=path,
            query=URLMatcher.parse_query(query_string),
            headers=[(name.lower(), value) for name, value in (headers or [])],
            body=body or b""
        )

    def header_values(self, name: str) -> List[str]:
        """All values sent for a header name, compared case-insensitively."""
        lowered = name.lower()
        return [value for key, value in self.headers if key == lowered]

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')


@dataclass
class MatchResult:
    """Result of matching a request."""

    matched: bool
    mock: Optional[MockDefinition] = None
    reason: str = ""

    @property
    def response(self) -> Optional[ResponseSpec]:
        return self.mock.response if self.mock else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'matched': self.matched,
            'mock_id': self.mock.id if self.mock else None,
            'reason': self.reason
        }


def _parsed_body(request: IncomingRequest) -> Any:
    return safe_json_parse(request.body, default=UNPARSABLE)


def _json_equals(expectation: Expectation, request: IncomingRequest) -> bool:
    if expectation.value is UNPARSABLE:
        return False
    actual = _parsed_body(request)
    return actual is not UNPARSABLE and json_equals(expectation.value, actual)


def _json_includes(expectation: Expectation, request: IncomingRequest) -> bool:
    if expectation.value is UNPARSABLE:
        return False
    actual = _parsed_body(request)
    return actual is not UNPARSABLE and json_includes(expectation.value, actual)


EVALUATORS: Dict[str, Callable[[Expectation, IncomingRequest], bool]] = {
    'path_equals': lambda e, r: r.path == e.value,
    'path_contains': lambda e, r: e.value in r.path,
    'path_matches': lambda e, r: e.pattern.search(r.path) is not None,
    'query_param_equals': lambda e, r: e.value in r.query.get(e.name, []),
    'query_param_exists': lambda e, r: bool(r.query.get(e.name)),
    'header_equals': lambda e, r: e.value in r.header_values(e.name),
    'header_exists': lambda e, r: bool(r.header_values(e.name)),
    'body_equals': lambda e, r: r.body == e.value,
    'body_contains': lambda e, r: e.value in r.body,
    'body_matches': lambda e, r: e.pattern.search(r.text) is not None,
    'body_json_equals': _json_equals,
    'body_json_includes': _json_includes,
}


def evaluate(expectation: Expectation, request: IncomingRequest) -> bool:
    """
    Evaluate one expectation against a request.

    Evaluation failures count as "not satisfied" and never propagate.

    Args:
        expectation: Expectation to check
        request: Parsed incoming request

    Returns:
        True if the request satisfies the expectation
    """
    evaluator = EVALUATORS.get(expectation.kind)
    if evaluator is None:
        return False

    try:
        return bool(evaluator(expectation, request))
    except Exception as e:
        logger.debug(f"Expectation {expectation.kind} failed to evaluate: {e}")
        return False


def matches(definition: MockDefinition, request: IncomingRequest) -> bool:
    """Check the method and every expectation of a mock against a request."""
    if definition.method != request.method:
        return False
    return all(evaluate(e, request) for e in definition.expectations)


class RequestMatcher:
    """
    Matching engine over one server's registry.

    Mocks are scanned in creation order and the first one whose method and
    expectations all match wins. Its call counter is incremented before the
    result is returned.

    Example:
        matcher = RequestMatcher(registry)
        result = matcher.match_request(IncomingRequest.from_parts('GET', '/health'))

        if result.matched:
            print(f"Served by mock {result.mock.id}: {result.response.status}")
    """

    def __init__(self, registry: MockRegistry):
        """
        Initialize request matcher.

        Args:
            registry: Registry holding the active mocks
        """
        self.registry = registry

    def match_request(self, request: IncomingRequest) -> MatchResult:
        """
        Find the mock answering a request.

        Args:
            request: Parsed incoming request

        Returns:
            MatchResult with the winning mock, or matched=False
        """
        winner = self.registry.find_first(lambda definition: matches(definition, request))

        if winner is None:
            return MatchResult(matched=False, reason=f"No mock matched {request.method} {request.path}")

        logger.debug(f"Mock {winner.id} matched {request.method} {request.path}")
        return MatchResult(matched=True, mock=winner, reason=f"Matched mock {winner.id}")
