"""
Tests for mockwire common utilities

Tests the JSON comparator (exact and partial), safe JSON parsing and the
URL helpers used by the matching engine.
"""

import pytest

from mockwire.common import (
    safe_json_parse,
    json_equals,
    json_includes,
    UNPARSABLE,
    URLMatcher
)


class TestSafeJsonParse:
    """Test safe_json_parse() function."""

    def test_parse_text(self):
        """Test parsing JSON text."""
        assert safe_json_parse('{"a": 1}') == {'a': 1}

    def test_parse_bytes(self):
        """Test parsing UTF-8 JSON bytes."""
        assert safe_json_parse('{"name": "Jürgen"}'.encode('utf-8')) == {'name': 'Jürgen'}

    def test_invalid_returns_default(self):
        """Test invalid JSON returns the default instead of raising."""
        assert safe_json_parse('{not json', default=UNPARSABLE) is UNPARSABLE
        assert safe_json_parse(b'\xff\xfe\x00garbage', default=UNPARSABLE) is UNPARSABLE

    def test_empty_returns_default(self):
        """Test empty input returns the default."""
        assert safe_json_parse('', default='empty') == 'empty'
        assert safe_json_parse(None) is None

    def test_null_is_not_unparsable(self):
        """Test JSON null parses to None, distinct from the sentinel."""
        assert safe_json_parse('null', default=UNPARSABLE) is None


class TestJsonEquals:
    """Test exact structural JSON equality."""

    def test_key_order_ignored(self):
        """Test object key order does not matter."""
        assert json_equals({'a': 1, 'b': 2}, {'b': 2, 'a': 1})

    def test_numeric_formatting_ignored(self):
        """Test numerically equal values compare equal."""
        assert json_equals({'n': 5}, {'n': 5.0})
        assert json_equals(safe_json_parse('[1e2]'), safe_json_parse('[100]'))

    def test_type_mismatch(self):
        """Test values of different types are not equal."""
        assert not json_equals({'n': 5}, {'n': '5'})
        assert not json_equals([1], {'0': 1})
        assert not json_equals(None, 0)

    def test_bool_is_not_number(self):
        """Test booleans never equal numbers."""
        assert not json_equals(True, 1)
        assert not json_equals(0, False)
        assert json_equals(True, True)

    def test_extra_key_not_equal(self):
        """Test an extra key makes documents unequal."""
        assert not json_equals({'a': 1}, {'a': 1, 'b': 2})

    def test_nested_structures(self):
        """Test nested objects and arrays."""
        expected = {'user': {'tags': ['a', 'b'], 'age': 30}}

        assert json_equals(expected, {'user': {'age': 30.0, 'tags': ['a', 'b']}})
        assert not json_equals(expected, {'user': {'age': 30, 'tags': ['b', 'a']}})

    def test_array_length_mismatch(self):
        """Test arrays of different lengths are not equal."""
        assert not json_equals([1, 2], [1, 2, 3])


class TestJsonIncludes:
    """Test partial JSON inclusion."""

    def test_partial_nested_match(self):
        """Test the expected sub-document is found in a larger document."""
        expected = {'child': {'some_attribute': 'Fred'}}
        actual = {'some_other_value': 'Flintstone', 'child': {'some_attribute': 'Fred'}}

        assert json_includes(expected, actual)

    def test_partial_nested_mismatch(self):
        """Test a differing nested value is not included."""
        expected = {'child': {'some_attribute': 'Fred'}}
        actual = {'child': {'some_attribute': 'Wilma'}}

        assert not json_includes(expected, actual)

    def test_missing_key(self):
        """Test a missing expected key fails."""
        assert not json_includes({'a': 1}, {'b': 1})

    def test_recursion_into_nested_objects(self):
        """Test extra keys at any depth are ignored."""
        expected = {'a': {'b': {'c': 1}}}
        actual = {'a': {'x': 0, 'b': {'c': 1.0, 'd': 2}}, 'y': []}

        assert json_includes(expected, actual)

    def test_arrays_need_full_equality(self):
        """Test arrays are compared as a whole, not element-wise."""
        assert json_includes({'items': [1, 2]}, {'items': [1, 2], 'other': 3})
        assert not json_includes({'items': [1]}, {'items': [1, 2]})
        assert not json_includes({'items': [{'id': 1}]}, {'items': [{'id': 1, 'name': 'x'}]})

    def test_empty_object_includes_any_object(self):
        """Test the empty object is included in every object."""
        assert json_includes({}, {'a': 1})
        assert not json_includes({}, [])

    def test_scalar_falls_back_to_equality(self):
        """Test non-object expected values use exact equality."""
        assert json_includes(5, 5.0)
        assert not json_includes('a', 'b')


class TestURLMatcher:
    """Test URL helper functions."""

    def test_parse_query_multi_valued(self):
        """Test repeated parameters keep every value in order."""
        params = URLMatcher.parse_query('tag=a&tag=b&limit=10')

        assert params == {'tag': ['a', 'b'], 'limit': ['10']}

    def test_parse_query_percent_decoding(self):
        """Test values are percent-decoded as UTF-8."""
        params = URLMatcher.parse_query('myQueryParam=%C3%BCberschall&q=a+b')

        assert params['myQueryParam'] == ['überschall']
        assert params['q'] == ['a b']

    def test_parse_query_blank_values_kept(self):
        """Test parameters without values still count."""
        assert URLMatcher.parse_query('flag&empty=') == {'flag': [''], 'empty': ['']}

    def test_parse_empty_query(self):
        """Test empty query string."""
        assert URLMatcher.parse_query('') == {}

    @pytest.mark.parametrize('prefix', ['__admin__', '/__admin__', '/__admin__/', ' __admin__/ '])
    def test_normalize_prefix(self, prefix):
        """Test admin prefix normalization."""
        assert URLMatcher.normalize_prefix(prefix) == '/__admin__'

    def test_normalize_empty_prefix(self):
        """Test an empty prefix is rejected."""
        with pytest.raises(ValueError):
            URLMatcher.normalize_prefix('/')

    def test_has_prefix(self):
        """Test prefix membership respects path segments."""
        assert URLMatcher.has_prefix('/__admin__', '/__admin__')
        assert URLMatcher.has_prefix('/__admin__/mocks/1', '/__admin__')
        assert not URLMatcher.has_prefix('/__admin__x/mocks', '/__admin__')
        assert not URLMatcher.has_prefix('/users', '/__admin__')
