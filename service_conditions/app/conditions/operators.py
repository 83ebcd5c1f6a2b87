"""
Comparison operators and value coercion.

Comparisons never raise. Equality is loose: absent values equal the empty
string, numeric-looking values compare as numbers and everything else
compares as case-insensitive text. Ordering operators coerce both sides to
Decimal and fall back to 0.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from .diagnostics import Diagnostics
from .models import Operator

ZERO = Decimal("0")

MULTI_VALUE_TYPES = (list, tuple, set, frozenset)


def is_multi_valued(value: Any) -> bool:
    return isinstance(value, MULTI_VALUE_TYPES)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse ``value`` as a finite Decimal, or return None."""
    if isinstance(value, bool):
        return Decimal(int(value))

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    if isinstance(value, int):
        return Decimal(value)

    if isinstance(value, float):
        number = Decimal(str(value))
        return number if number.is_finite() else None

    if isinstance(value, str):
        text = value.strip()
        # "1_000" is text, not a number
        if not text or "_" in text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
        return number if number.is_finite() else None

    return None


def coerce_number(
    value: Any,
    operator: str,
    diagnostics: Optional[Diagnostics] = None,
    node_id: Optional[str] = None,
) -> Decimal:
    """Numeric view of ``value``; anything unparsable becomes 0."""
    number = to_decimal(value)
    if number is not None:
        return number

    # Absence is not a coercion, it is simply nothing
    if value is not None and value != "" and diagnostics is not None:
        diagnostics.coercion(operator, value, node_id)

    return ZERO


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).casefold()


def loose_equals(left: Any, right: Any) -> bool:
    """Type-tolerant scalar equality."""
    if left is None:
        left = ""
    if right is None:
        right = ""

    left_number = to_decimal(left)
    right_number = to_decimal(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number

    return _text(left) == _text(right)


def _intersects(left: Any, right: Any) -> bool:
    return any(loose_equals(a, b) for a in left for b in right)


def _options(value: Any) -> List[Any]:
    """Normalize an "is one of" operand: lists pass through, text splits on commas."""
    if is_multi_valued(value):
        return list(value)
    if value is None or value == "":
        return []
    return [part.strip() for part in str(value).split(",")]


def _equals(actual: Any, expected: Any) -> bool:
    if is_multi_valued(expected):
        if is_multi_valued(actual):
            return _intersects(actual, expected)
        return False

    if is_multi_valued(actual):
        return any(loose_equals(item, expected) for item in actual)

    return loose_equals(actual, expected)


def _contains(actual: Any, expected: Any) -> bool:
    if is_multi_valued(expected):
        if is_multi_valued(actual):
            return _intersects(actual, expected)
        return any(_text(needle) in _text(actual) for needle in expected)

    if is_multi_valued(actual):
        return any(loose_equals(item, expected) for item in actual)

    return _text(expected) in _text(actual)


def _is_one_of(actual: Any, expected: Any) -> bool:
    options = _options(expected)
    if is_multi_valued(actual):
        return _intersects(actual, options)
    return any(loose_equals(actual, option) for option in options)


def compare_numbers(operator: Operator, actual: Decimal, expected: Decimal) -> bool:
    if operator == Operator.GREATER_OR_EQUAL:
        return actual >= expected
    elif operator == Operator.LESS_OR_EQUAL:
        return actual <= expected
    elif operator == Operator.GREATER_THAN:
        return actual > expected
    elif operator == Operator.LESS_THAN:
        return actual < expected
    elif operator == Operator.EQUALS:
        return actual == expected
    elif operator == Operator.NOT_EQUALS:
        return actual != expected
    raise ValueError(f"Operator {operator.value} does not compare numbers")


def compare(
    operator: Operator,
    actual: Any,
    expected: Any,
    diagnostics: Optional[Diagnostics] = None,
    node_id: Optional[str] = None,
) -> bool:
    """Apply ``operator`` to ``(actual, expected)``."""
    if operator.is_ordering:
        return compare_numbers(
            operator,
            coerce_number(actual, operator.value, diagnostics, node_id),
            coerce_number(expected, operator.value, diagnostics, node_id),
        )

    if operator in (Operator.EQUALS, Operator.NOT_EQUALS):
        result = _equals(actual, expected)
    elif operator in (Operator.CONTAINS, Operator.NOT_CONTAINS):
        result = _contains(actual, expected)
    else:
        result = _is_one_of(actual, expected)

    return not result if operator.is_negated else result
