"""
mockwire Common Utilities

JSON parsing and comparison helpers shared by the matching engine and the
admin protocol.
"""

import json
from numbers import Number
from typing import Any, Union


# Returned by safe_json_parse when callers need to tell "invalid" from "null"
UNPARSABLE = object()


def safe_json_parse(json_string: Union[str, bytes, None], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON text (str or UTF-8 bytes) to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(request.body, default=UNPARSABLE)
        if body is UNPARSABLE:
            ...
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a JSON number
    return isinstance(value, Number) and not isinstance(value, bool)


def json_equals(expected: Any, actual: Any) -> bool:
    """
    Structural equality of two parsed JSON documents.

    Object key order is ignored, numbers compare by value (``1 == 1.0``) and
    any type mismatch is a non-match. Never raises.

    Args:
        expected: Expected JSON value
        actual: Actual JSON value

    Returns:
        True if both documents are structurally equal
    """
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and expected == actual

    if _is_number(expected) or _is_number(actual):
        return _is_number(expected) and _is_number(actual) and expected == actual

    if isinstance(expected, dict):
        if not isinstance(actual, dict) or expected.keys() != actual.keys():
            return False
        return all(json_equals(value, actual[key]) for key, value in expected.items())

    if isinstance(expected, list):
        if not isinstance(actual, list) or len(expected) != len(actual):
            return False
        return all(json_equals(e, a) for e, a in zip(expected, actual))

    return type(expected) is type(actual) and expected == actual


def json_includes(expected: Any, actual: Any) -> bool:
    """
    Partial inclusion of one JSON document in another.

    Every key of an expected object must be present in the actual object with
    an included value, recursively. Anything that is not an object (arrays
    included) falls back to full structural equality.

    Example:
        json_includes({"child": {"a": 1}}, {"other": 2, "child": {"a": 1, "b": 3}})  # True
    """
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return False
        return all(
            key in actual and json_includes(value, actual[key])
            for key, value in expected.items()
        )

    return json_equals(expected, actual)
