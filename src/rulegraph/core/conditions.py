"""Condition evaluation against target objects.

Field paths are dotted names with optional list indexes:

```
properties.encryption.enabled
tags[0]
resources[1].name
```

A path that cannot be followed resolves to MISSING. Every operator fails on
MISSING except ``exists: false``. Comparisons between incompatible types fail
instead of raising.
"""

import operator as op
import re
from collections.abc import Callable, Hashable, Mapping, Sequence
from functools import lru_cache, partial
from typing import Any

from ..models.rules import Expression


class _Missing:
    """Sentinel for a field path that does not resolve."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_SEGMENT = re.compile(r"([^.\[\]]*)((?:\[-?\d+\])*)")
_INDEX = re.compile(r"\[(-?\d+)\]")


@lru_cache(maxsize=1024)
def parse_path(path: str) -> tuple[str | int, ...]:
    """
    Split a field path into keys and list indexes.

    Args:
        path: Field path, e.g. ``resources[1].name``

    Returns:
        Tuple of str keys and int indexes

    Raises:
        ValueError: If the path is empty or malformed
    """
    if not path or not path.strip():
        raise ValueError("Field path must not be empty")

    parts: list[str | int] = []
    for segment in path.split("."):
        matched = _SEGMENT.fullmatch(segment)
        if matched is None or (not matched.group(1) and not matched.group(2)):
            raise ValueError(f"Invalid field path: {path!r}")

        if matched.group(1):
            parts.append(matched.group(1))
        parts.extend(int(index) for index in _INDEX.findall(matched.group(2)))

    return tuple(parts)


def resolve_field(obj: Any, path: str) -> Any:
    """
    Follow a field path through nested mappings and sequences.

    Args:
        obj: Target object
        path: Field path

    Returns:
        The value at the path, or MISSING
    """
    current = obj
    for part in parse_path(path):
        if isinstance(part, int):
            if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
                if -len(current) <= part < len(current):
                    current = current[part]
                    continue
            return MISSING

        if isinstance(current, Mapping) and part in current:
            current = current[part]
            continue
        return MISSING

    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _equals(actual: Any, expected: Any) -> bool:
    # bool is an int subclass; True must not equal 1
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return bool(actual == expected)


def _ordered(compare: Callable[[Any, Any], bool], actual: Any, expected: Any) -> bool:
    if _is_number(actual) and _is_number(expected):
        return compare(actual, expected)
    if isinstance(actual, str) and isinstance(expected, str):
        return compare(actual, expected)
    return False


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, Mapping):
        return isinstance(expected, Hashable) and expected in actual
    if isinstance(actual, Sequence) and not isinstance(actual, bytes):
        return any(_equals(item, expected) for item in actual)
    return False


def _compare(operator: str, actual: Any, operand: Any) -> bool:
    """
    Apply a comparison operator to a resolved (non-MISSING) value.

    Args:
        operator: Python attribute name of the operator on Expression
        actual: Value from the target object
        operand: Value from the rule

    Returns:
        True if the comparison passes, False otherwise
    """
    if operator == "equals":
        return _equals(actual, operand)
    if operator == "not_equals":
        return not _equals(actual, operand)
    if operator == "greater":
        return _ordered(op.gt, actual, operand)
    if operator == "greater_or_equals":
        return _ordered(op.ge, actual, operand)
    if operator == "less":
        return _ordered(op.lt, actual, operand)
    if operator == "less_or_equals":
        return _ordered(op.le, actual, operand)
    if operator == "in_":
        return any(_equals(actual, item) for item in operand)
    if operator == "not_in":
        return not any(_equals(actual, item) for item in operand)
    if operator == "contains":
        return _contains(actual, operand)
    if operator == "starts_with":
        return isinstance(actual, str) and actual.startswith(operand)
    if operator == "ends_with":
        return isinstance(actual, str) and actual.endswith(operand)
    if operator == "match":
        return isinstance(actual, str) and re.search(operand, actual) is not None

    raise ValueError(f"Unknown operator: {operator}")


def evaluate(expression: Expression, obj: Any) -> bool:
    """
    Evaluate an expression against a target object.

    Args:
        expression: Validated expression
        obj: Target object (usually a dict)

    Returns:
        True if the object satisfies the expression
    """
    if expression.all_of is not None:
        return all(evaluate(item, obj) for item in expression.all_of)
    if expression.any_of is not None:
        return any(evaluate(item, obj) for item in expression.any_of)
    if expression.not_ is not None:
        return not evaluate(expression.not_, obj)

    if expression.field is None:
        raise ValueError("Expression has no field, allOf, anyOf or not clause")

    operator = expression.operator
    actual = resolve_field(obj, expression.field)

    if operator == "exists":
        return (actual is not MISSING) == bool(expression.exists)
    if actual is MISSING:
        return False
    return _compare(operator, actual, expression.operand)  # type: ignore[arg-type]


def compile_expression(expression: Expression) -> Callable[[Any], bool]:
    """
    Bind an expression into a predicate over target objects.

    Field paths are parsed once here so malformed paths fail at load time.

    Raises:
        ValueError: If a field path in the expression is malformed
    """
    _check_paths(expression)
    return partial(evaluate, expression)


def _check_paths(expression: Expression) -> None:
    for child in (expression.all_of or []) + (expression.any_of or []):
        _check_paths(child)
    if expression.not_ is not None:
        _check_paths(expression.not_)
    if expression.field is not None:
        parse_path(expression.field)
