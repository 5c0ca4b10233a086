"""
Configuration Values
--------------------
The value model for configuration snapshots and strict deep equality over it.

A configuration value is whatever a JSON decoder produces: null, booleans,
numbers, strings, lists and string-keyed dicts. Every consumer dispatches on
the closed ``ValueKind`` enum returned by ``value_kind`` instead of sprinkling
isinstance checks around.
"""

from enum import Enum
from typing import Any, Dict, List, Union

from infraudit.core.drift.errors import UnsupportedValueError

ConfigValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


class ValueKind(str, Enum):
    """The closed set of shapes a configuration value can take."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def value_kind(value: ConfigValue) -> ValueKind:
    """
    Classify a configuration value.

    Args:
        value: A decoded configuration value

    Returns:
        The ValueKind of the value

    Raises:
        UnsupportedValueError: If the value is not part of the JSON value model
    """
    if value is None:
        return ValueKind.NULL
    # bool must be checked before int, it is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    if isinstance(value, dict):
        return ValueKind.MAPPING
    raise UnsupportedValueError(value)


def values_equal(a: ConfigValue, b: ConfigValue) -> bool:
    """
    Compare two configuration values for strict deep equality.

    Values of different kinds are never equal, so the string "1" differs from
    the number 1 and True differs from 1. Numbers compare by value. Sequences
    compare element-wise in order, mappings compare by key set and value
    regardless of key order.

    Args:
        a: First value
        b: Second value

    Returns:
        True if both values are equal
    """
    kind_a = value_kind(a)
    kind_b = value_kind(b)

    if kind_a != kind_b:
        return False

    if kind_a == ValueKind.NULL:
        return True

    if kind_a == ValueKind.SEQUENCE:
        if len(a) != len(b):
            return False
        return all(values_equal(x, y) for x, y in zip(a, b))

    if kind_a == ValueKind.MAPPING:
        if set(a.keys()) != set(b.keys()):
            return False
        return all(values_equal(a[key], b[key]) for key in a)

    # BOOL, NUMBER, STRING
    return a == b
