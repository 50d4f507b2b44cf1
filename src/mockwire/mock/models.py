"""
mockwire Mock Models

Data model for mock definitions and their JSON wire format.

A mock pairs an HTTP method and an ordered list of expectations with a canned
response. Definitions arrive as JSON through the admin API (or as YAML through
MockServer.load_mocks) and are validated here before the registry ever sees
them; anything malformed raises ConfigurationError.
"""

import base64
import binascii
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Pattern, Tuple

from ..common import safe_json_parse, UNPARSABLE
from .errors import ConfigurationError


# Expectation kinds grouped by the fields they require
PATH_KINDS = ('path_equals', 'path_contains', 'path_matches')
QUERY_KINDS = ('query_param_equals', 'query_param_exists')
HEADER_KINDS = ('header_equals', 'header_exists')
BODY_KINDS = ('body_equals', 'body_contains', 'body_matches')
JSON_KINDS = ('body_json_equals', 'body_json_includes')

EXPECTATION_KINDS = PATH_KINDS + QUERY_KINDS + HEADER_KINDS + BODY_KINDS + JSON_KINDS

_NAMED_KINDS = QUERY_KINDS + HEADER_KINDS
_PATTERN_KINDS = ('path_matches', 'body_matches')
_VALUELESS_KINDS = ('query_param_exists', 'header_exists')
_BYTES_KINDS = ('body_equals', 'body_contains')

# RFC 7230 token and field-value grammar; characters above \xff cannot be
# encoded on the wire
_HEADER_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_HEADER_VALUE = re.compile(r"(?:[\x21-\x7e\x80-\xff]+(?:[ \t]+[\x21-\x7e\x80-\xff]+)*)?")


def _require_str(data: Dict[str, Any], key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ConfigurationError(f"{context}: '{key}' must be a string")
    return value


def _decode_base64(value: Any, context: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {context}: {e}") from e


def _validate_header(name: Any, value: Any):
    if not isinstance(name, str) or not _HEADER_NAME.fullmatch(name):
        raise ConfigurationError(f"Invalid response header name: {name!r}")
    if not isinstance(value, str):
        raise ConfigurationError(f"Header {name!r} values must be strings")
    if not _HEADER_VALUE.fullmatch(value):
        raise ConfigurationError(f"Invalid value for response header {name!r}: {value!r}")


@dataclass(frozen=True)
class Expectation:
    """
    One predicate over an incoming request.

    The kind decides which of the other fields are used:
    - path_*: value
    - body_equals/body_contains: value holds bytes, given on the wire as
      UTF-8 'value' text or as 'value_base64'
    - *_matches: pattern (compiled regex)
    - query_param_* and header_*: name, plus value for the *_equals kinds
    - body_json_*: value holds the parsed JSON document (UNPARSABLE if the
      configured text was not valid JSON), text keeps the original JSON text
    """

    kind: str
    name: Optional[str] = None
    value: Any = None
    pattern: Optional[Pattern] = None
    text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'Expectation':
        """
        Create Expectation from its wire dictionary.

        Raises:
            ConfigurationError: If the kind is unknown or a field is missing
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Expectation must be a JSON object")

        kind = data.get('kind')
        if kind not in EXPECTATION_KINDS:
            raise ConfigurationError(f"Unknown expectation kind: {kind!r}")

        context = f"Expectation '{kind}'"
        name = _require_str(data, 'name', context) if kind in _NAMED_KINDS else None

        if kind in _PATTERN_KINDS:
            source = _require_str(data, 'pattern', context)
            try:
                compiled = re.compile(source)
            except re.error as e:
                raise ConfigurationError(f"{context}: invalid pattern {source!r}: {e}") from e
            return cls(kind=kind, pattern=compiled)

        if kind in JSON_KINDS:
            if 'text' in data:
                text = _require_str(data, 'text', context)
                return cls(kind=kind, value=safe_json_parse(text, default=UNPARSABLE), text=text)
            if 'value' not in data:
                raise ConfigurationError(f"{context}: 'value' or 'text' is required")
            return cls(kind=kind, value=data['value'])

        if kind in _VALUELESS_KINDS:
            return cls(kind=kind, name=name)

        if kind in _BYTES_KINDS:
            if 'value' in data and 'value_base64' in data:
                raise ConfigurationError(f"{context}: 'value' and 'value_base64' are mutually exclusive")
            if 'value_base64' in data:
                return cls(kind=kind, value=_decode_base64(data['value_base64'], f"{context} 'value_base64'"))
            return cls(kind=kind, value=_require_str(data, 'value', context).encode('utf-8'))

        return cls(kind=kind, name=name, value=_require_str(data, 'value', context))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        data: Dict[str, Any] = {'kind': self.kind}
        if self.name is not None:
            data['name'] = self.name
        if self.pattern is not None:
            data['pattern'] = self.pattern.pattern
        elif self.text is not None:
            data['text'] = self.text
        elif isinstance(self.value, bytes):
            try:
                data['value'] = self.value.decode('utf-8')
            except UnicodeDecodeError:
                data['value_base64'] = base64.b64encode(self.value).decode('ascii')
        elif self.kind not in _VALUELESS_KINDS:
            data['value'] = self.value
        return data


@dataclass(frozen=True)
class ResponseSpec:
    """Canned response returned when a mock matches."""

    status: int = 200
    headers: Tuple[Tuple[str, str], ...] = ()
    body: Optional[bytes] = None
    delay_ms: int = 0

    def get_all(self, name: str) -> List[str]:
        """Get every value of a header, comparing names case-insensitively."""
        lowered = name.lower()
        return [v for k, v in self.headers if k.lower() == lowered]

    @classmethod
    def from_dict(cls, data: Any) -> 'ResponseSpec':
        """
        Create ResponseSpec from its wire dictionary.

        Raises:
            ConfigurationError: On a bad status, header, body or delay
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError("'response' must be a JSON object")

        status = data.get('status', 200)
        if isinstance(status, bool) or not isinstance(status, int) or not 100 <= status <= 599:
            raise ConfigurationError(f"Invalid response status: {status!r}")

        headers: List[Tuple[str, str]] = []
        raw_headers = data.get('headers') or {}
        if not isinstance(raw_headers, dict):
            raise ConfigurationError("'response.headers' must be a JSON object")
        for header_name, header_value in raw_headers.items():
            values = header_value if isinstance(header_value, list) else [header_value]
            for value in values:
                _validate_header(header_name, value)
                headers.append((header_name, value))

        if 'body' in data and 'body_base64' in data:
            raise ConfigurationError("'body' and 'body_base64' are mutually exclusive")

        body = None
        if data.get('body') is not None:
            if not isinstance(data['body'], str):
                raise ConfigurationError("'response.body' must be a string")
            body = data['body'].encode('utf-8')
        elif data.get('body_base64') is not None:
            body = _decode_base64(data['body_base64'], "'response.body_base64'")

        delay_ms = data.get('delay_ms', 0)
        if isinstance(delay_ms, bool) or not isinstance(delay_ms, int) or delay_ms < 0:
            raise ConfigurationError(f"Invalid response delay_ms: {delay_ms!r}")

        return cls(status=status, headers=tuple(headers), body=body, delay_ms=delay_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary (binary bodies are base64 encoded)."""
        headers: Dict[str, List[str]] = {}
        for name, value in self.headers:
            headers.setdefault(name, []).append(value)

        data: Dict[str, Any] = {
            'status': self.status,
            'headers': headers,
            'delay_ms': self.delay_ms
        }
        if self.body is not None:
            try:
                data['body'] = self.body.decode('utf-8')
            except UnicodeDecodeError:
                data['body_base64'] = base64.b64encode(self.body).decode('ascii')
        return data


@dataclass(frozen=True)
class MockDefinition:
    """
    A stored rule pairing request expectations with a canned response.

    The id is None until the registry assigns one.
    """

    method: str
    expectations: Tuple[Expectation, ...] = ()
    response: ResponseSpec = field(default_factory=ResponseSpec)
    id: Optional[int] = None

    def with_id(self, mock_id: int) -> 'MockDefinition':
        """Copy of this definition carrying the given id."""
        return replace(self, id=mock_id)

    @classmethod
    def from_dict(cls, data: Any) -> 'MockDefinition':
        """
        Create MockDefinition from its wire dictionary.

        Example:
            definition = MockDefinition.from_dict({
                'method': 'GET',
                'expectations': [{'kind': 'path_equals', 'value': '/health'}],
                'response': {'status': 204}
            })

        Raises:
            ConfigurationError: If any part of the definition is malformed
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Mock definition must be a JSON object")

        method = data.get('method')
        if not isinstance(method, str) or not method.strip():
            raise ConfigurationError("'method' must be a non-empty string")

        raw_expectations = data.get('expectations') or []
        if not isinstance(raw_expectations, list):
            raise ConfigurationError("'expectations' must be a JSON array")

        return cls(
            method=method.strip().upper(),
            expectations=tuple(Expectation.from_dict(e) for e in raw_expectations),
            response=ResponseSpec.from_dict(data.get('response'))
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire dictionary."""
        data: Dict[str, Any] = {
            'method': self.method,
            'expectations': [e.to_dict() for e in self.expectations],
            'response': self.response.to_dict()
        }
        if self.id is not None:
            data['id'] = self.id
        return data
