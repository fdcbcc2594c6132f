"""JSON value helpers shared by the evaluator and the delta engine."""

from __future__ import annotations
from typing import Any


def is_number(value: Any) -> bool:
    """True for ints and floats; booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def type_name(value: Any) -> str:
    """JSON-ish type name used in error messages."""
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def strict_equals(left: Any, right: Any) -> bool:
    """Equality that never treats booleans as numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


def to_text(value: Any) -> str:
    """Render a value the way a string membership test sees it."""
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_truthy(value: Any) -> bool:
    """
    Truthiness of a bare expression value.

    Lists and objects count as true even when empty; NaN, zero, the
    empty string, false and missing values are false.
    """
    if isinstance(value, (list, dict)):
        return True
    if isinstance(value, float) and value != value:
        return False
    return bool(value)
