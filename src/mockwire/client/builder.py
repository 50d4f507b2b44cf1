"""
mockwire Mock Builder

Side-effect-free construction of mock definitions.

A builder only assembles the JSON document understood by the admin API;
nothing touches the network until create() hands it to a MockClient.
"""

import base64
import json
import re
from typing import Any, Dict, List, Optional, Union

from ..mock.errors import ConfigurationError


class MockBuilder:
    """
    Chainable builder for one mock definition.

    Example:
        builder = (
            MockBuilder('POST', '/users')
            .expect_header('Content-Type', 'application/json')
            .expect_json_body_partial('{"child": {"name": "Fred"}}')
            .return_status(201)
            .return_json_body({'id': 1})
        )
        payload = builder.to_dict()
    """

    def __init__(self, method: str, path: Optional[str] = None, client: Optional[Any] = None):
        """
        Initialize builder.

        Args:
            method: HTTP method the mock answers
            path: Optional exact path expectation
            client: MockClient used by create()
        """
        self.method = method.upper()
        self.expectations: List[Dict[str, Any]] = []
        self.response: Dict[str, Any] = {'status': 200, 'headers': {}}
        self.client = client

        if path is not None:
            self.expect_path(path)

    def _expect(self, kind: str, **fields: Any) -> 'MockBuilder':
        self.expectations.append({'kind': kind, **fields})
        return self

    @staticmethod
    def _pattern(pattern: Union[str, 're.Pattern']) -> str:
        return pattern.pattern if isinstance(pattern, re.Pattern) else pattern

    # Expectations

    def expect_path(self, path: str) -> 'MockBuilder':
        return self._expect('path_equals', value=path)

    def expect_path_contains(self, substring: str) -> 'MockBuilder':
        return self._expect('path_contains', value=substring)

    def expect_path_matches(self, pattern: Union[str, 're.Pattern']) -> 'MockBuilder':
        return self._expect('path_matches', pattern=self._pattern(pattern))

    def expect_query_param(self, name: str, value: str) -> 'MockBuilder':
        return self._expect('query_param_equals', name=name, value=value)

    def expect_query_param_exists(self, name: str) -> 'MockBuilder':
        return self._expect('query_param_exists', name=name)

    def expect_header(self, name: str, value: str) -> 'MockBuilder':
        return self._expect('header_equals', name=name, value=value)

    def expect_header_exists(self, name: str) -> 'MockBuilder':
        return self._expect('header_exists', name=name)

    @staticmethod
    def _body_fields(body: Union[str, bytes]) -> Dict[str, str]:
        if isinstance(body, bytes):
            return {'value_base64': base64.b64encode(body).decode('ascii')}
        return {'value': body}

    def expect_body(self, body: Union[str, bytes]) -> 'MockBuilder':
        """Expect the exact body (bytes are sent as base64)."""
        return self._expect('body_equals', **self._body_fields(body))

    def expect_body_contains(self, substring: Union[str, bytes]) -> 'MockBuilder':
        return self._expect('body_contains', **self._body_fields(substring))

    def expect_body_matches(self, pattern: Union[str, 're.Pattern']) -> 'MockBuilder':
        return self._expect('body_matches', pattern=self._pattern(pattern))

    def expect_json_body(self, document: Any) -> 'MockBuilder':
        """Expect a body structurally equal to document (JSON text is accepted as str)."""
        if isinstance(document, str):
            return self._expect('body_json_equals', text=document)
        return self._expect('body_json_equals', value=document)

    def expect_json_body_partial(self, document: Any) -> 'MockBuilder':
        """Expect a body that includes document (JSON text is accepted as str)."""
        if isinstance(document, str):
            return self._expect('body_json_includes', text=document)
        return self._expect('body_json_includes', value=document)

    # Response

    def return_status(self, status: int) -> 'MockBuilder':
        self.response['status'] = status
        return self

    def return_header(self, name: str, value: str) -> 'MockBuilder':
        self.response['headers'].setdefault(name, []).append(value)
        return self

    def return_body(self, body: Union[str, bytes]) -> 'MockBuilder':
        self.response.pop('body', None)
        self.response.pop('body_base64', None)
        if isinstance(body, bytes):
            self.response['body_base64'] = base64.b64encode(body).decode('ascii')
        else:
            self.response['body'] = body
        return self

    def return_json_body(self, document: Any) -> 'MockBuilder':
        return self.return_body(json.dumps(document))

    def return_delay(self, delay_ms: int) -> 'MockBuilder':
        self.response['delay_ms'] = delay_ms
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Build the admin API payload."""
        return {
            'method': self.method,
            'expectations': [dict(e) for e in self.expectations],
            'response': {**self.response, 'headers': dict(self.response['headers'])}
        }

    def create(self):
        """
        Store the mock on the bound server.

        Returns:
            MockHandle for the created mock

        Raises:
            ConfigurationError: If the builder has no client, or the server rejected it
        """
        if self.client is None:
            raise ConfigurationError("Builder is not bound to a server; use MockClient.create(builder)")
        return self.client.create(self)
