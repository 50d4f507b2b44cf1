"""
Tests for mockwire Client

Tests the side-effect-free MockBuilder and the httpx admin client against a
live server.
"""

import re

import httpx
import pytest

from mockwire import MockServer
from mockwire.client import MockBuilder, MockClient, MockHandle
from mockwire.mock.errors import ConfigurationError, MockNotFoundError


@pytest.fixture
def server():
    """Mock server listening on an ephemeral port."""
    with MockServer() as running:
        yield running


class TestMockBuilder:
    """Test MockBuilder payload construction."""

    def test_minimal(self):
        """Test a builder with only method and path."""
        payload = MockBuilder('get', '/health').to_dict()

        assert payload == {
            'method': 'GET',
            'expectations': [{'kind': 'path_equals', 'value': '/health'}],
            'response': {'status': 200, 'headers': {}}
        }

    def test_without_path(self):
        assert MockBuilder('POST').to_dict()['expectations'] == []

    def test_expectations_in_order(self):
        """Test chained expectations keep their order."""
        payload = (
            MockBuilder('POST', '/test')
            .expect_path_contains('test')
            .expect_path_matches(re.compile('te.t'))
            .expect_query_param('q', 'überschall')
            .expect_query_param_exists('q')
            .expect_header('Content-Type', 'application/json')
            .expect_header_exists('User-Agent')
            .expect_body('{"number":5}')
            .expect_body_contains('number')
            .expect_body_matches(r'(\d+)')
            .expect_json_body({'number': 5})
            .expect_json_body_partial('{"number": 5}')
            .to_dict()
        )

        kinds = [e['kind'] for e in payload['expectations']]
        assert kinds == [
            'path_equals', 'path_contains', 'path_matches', 'query_param_equals',
            'query_param_exists', 'header_equals', 'header_exists', 'body_equals',
            'body_contains', 'body_matches', 'body_json_equals', 'body_json_includes'
        ]
        assert payload['expectations'][2] == {'kind': 'path_matches', 'pattern': 'te.t'}
        assert payload['expectations'][10] == {'kind': 'body_json_equals', 'value': {'number': 5}}
        assert payload['expectations'][11] == {'kind': 'body_json_includes', 'text': '{"number": 5}'}

    def test_response(self):
        """Test response configuration."""
        payload = (
            MockBuilder('GET', '/users')
            .return_status(201)
            .return_header('Set-Cookie', 'a=1')
            .return_header('Set-Cookie', 'b=2')
            .return_json_body({'name': 'Hans'})
            .return_delay(10)
            .to_dict()
        )

        assert payload['response'] == {
            'status': 201,
            'headers': {'Set-Cookie': ['a=1', 'b=2']},
            'body': '{"name": "Hans"}',
            'delay_ms': 10
        }

    def test_binary_body_expectation(self):
        payload = MockBuilder('PUT').expect_body(b'\x00\xff').expect_body_contains('ok').to_dict()

        assert payload['expectations'] == [
            {'kind': 'body_equals', 'value_base64': 'AP8='},
            {'kind': 'body_contains', 'value': 'ok'}
        ]

    def test_binary_body_replaces_text_body(self):
        payload = MockBuilder('GET').return_body('text').return_body(b'\x00\x01').to_dict()

        assert 'body' not in payload['response']
        assert payload['response']['body_base64'] == 'AAE='

    def test_to_dict_is_a_copy(self):
        """Test building does not leak mutable state."""
        builder = MockBuilder('GET').return_header('X-A', '1')
        payload = builder.to_dict()
        payload['response']['headers']['X-B'] = ['2']

        assert 'X-B' not in builder.to_dict()['response']['headers']

    def test_create_requires_client(self):
        with pytest.raises(ConfigurationError):
            MockBuilder('GET', '/health').create()


class TestMockClient:
    """Test the admin client round trip."""

    def test_simple_mock(self, server):
        """Test creating, hitting and counting a mock."""
        search = (
            server.mock('GET', '/search')
            .expect_query_param('query', 'metallica')
            .return_status(204)
            .create()
        )

        response = httpx.get(server.url('/search?query=metallica'))

        assert isinstance(search, MockHandle)
        assert response.status_code == 204
        assert search.times_called() == 1
        search.assert_hits(1)

    def test_assert_hits_failure(self, server):
        handle = server.mock('GET', '/never').create()

        with pytest.raises(AssertionError, match='called 0 time'):
            handle.assert_hits(1)

    def test_explicit_delete(self, server):
        """Test a deleted mock falls back to 500."""
        health = server.mock('GET', '/health').return_status(205).create()

        assert httpx.get(server.url('/health')).status_code == 205
        assert health.times_called() == 1

        health.delete()
        health.delete()

        assert httpx.get(server.url('/health')).status_code == 500
        with pytest.raises(MockNotFoundError):
            health.times_called()

    def test_exact_json_body(self, server):
        users = (
            server.mock('POST', '/users')
            .expect_header('Content-Type', 'application/json')
            .expect_json_body({'name': 'Fred'})
            .return_status(201)
            .return_header('Content-Type', 'application/json')
            .return_json_body({'name': 'Hans'})
            .create()
        )

        response = httpx.post(server.url('/users'), json={'name': 'Fred'})

        assert response.status_code == 201
        assert response.json() == {'name': 'Hans'}
        users.assert_hits(1)

    def test_matching_features(self, server):
        """Test every expectation kind through the whole stack."""
        handle = (
            server.mock('POST', '/test')
            .expect_path_contains('test')
            .expect_query_param('myQueryParam', 'überschall')
            .expect_query_param_exists('myQueryParam')
            .expect_path_matches(r'test')
            .expect_header('Content-Type', 'application/json')
            .expect_header_exists('User-Agent')
            .expect_body('{"number":5}')
            .expect_body_contains('number')
            .expect_body_matches(r'(\d+)')
            .expect_json_body({'number': 5})
            .return_status(200)
            .create()
        )

        response = httpx.post(
            server.url('/test?myQueryParam=%C3%BCberschall'),
            content=b'{"number":5}',
            headers={'Content-Type': 'application/json', 'User-Agent': 'mockwire-test'}
        )

        assert response.status_code == 200
        handle.assert_hits(1)

    def test_binary_body(self, server):
        """Test exact byte matching of a non-UTF-8 body."""
        upload = server.mock('PUT', '/upload').expect_body(b'\x00\xff\xfe').return_status(204).create()

        assert httpx.put(server.url('/upload'), content=b'\x00\xff\xfe').status_code == 204
        assert httpx.put(server.url('/upload'), content=b'\x00\xff').status_code == 500
        upload.assert_hits(1)

    def test_partial_json_body(self, server):
        handle = (
            server.mock('POST', '/users')
            .expect_json_body_partial('{"child": {"some_attribute": "Fred"}}')
            .return_status(201)
            .create()
        )

        response = httpx.post(
            server.url('/users'),
            json={'child': {'some_attribute': 'Fred'}, 'some_other_value': 'Flintstone'}
        )

        assert response.status_code == 201
        handle.assert_hits(1)

    def test_first_created_mock_wins(self, server):
        first = server.mock('GET').expect_path_contains('users').return_status(200).create()
        second = server.mock('GET', '/users').return_status(201).create()

        assert httpx.get(server.url('/users')).status_code == 200
        first.assert_hits(1)
        second.assert_hits(0)

    def test_rejected_definition(self, server):
        """Test a 422 surfaces as ConfigurationError."""
        with pytest.raises(ConfigurationError, match='invalid pattern'):
            server.mock('GET').expect_path_matches('(').create()

        assert len(server.registry) == 0

    def test_raw_definition_and_clear(self, server):
        with MockClient(server.base_url) as client:
            client.create({'method': 'GET', 'response': {'status': 202}})
            client.create({'method': 'POST', 'response': {'status': 203}})

            assert client.ping() is True
            assert client.clear() == 2
            assert len(server.registry) == 0

    def test_describe(self, server):
        handle = server.mock('GET', '/health').create()

        data = server.client.describe(handle.id)

        assert data['call_count'] == 0
        assert data['mock']['method'] == 'GET'

    def test_ping_unreachable(self):
        """Test ping reports an unreachable server instead of raising."""
        server = MockServer().start()
        base_url = server.base_url
        server.stop()

        with MockClient(base_url, timeout=2) as client:
            assert client.ping() is False
