"""
Condition tree evaluation.

``evaluate`` is the single entry point: it dispatches on the node variant
and recurses depth first. Failures inside the tree never propagate; they
turn the offending subtree into ``False`` and are reported through
:class:`Diagnostics`.
"""

from decimal import Decimal, Overflow, localcontext
from typing import Any, Iterable, List, Optional, Sequence

from shared.errors import ConfigurationError
from .diagnostics import Diagnostics
from .models import (
    Aggregator, ConditionNode, LeafCondition, CombineNode,
    ExistentialCombineNode, AggregateCombineNode, InvalidNode, Operator
)
from .operators import ZERO, coerce_number, compare, compare_numbers
from .subjects import Subject, as_subject


NUMERIC_OPERATORS = frozenset([
    Operator.EQUALS,
    Operator.NOT_EQUALS,
    Operator.GREATER_OR_EQUAL,
    Operator.LESS_OR_EQUAL,
    Operator.GREATER_THAN,
    Operator.LESS_THAN,
])

_MISSING = object()


def evaluate(node: ConditionNode, subject: Any, diagnostics: Optional[Diagnostics] = None) -> bool:
    """Decide whether ``subject`` satisfies the tree rooted at ``node``."""
    if diagnostics is None:
        diagnostics = Diagnostics()
    return _evaluate(node, as_subject(subject), diagnostics)


def evaluate_combine(
    aggregator: Aggregator,
    children: Sequence[ConditionNode],
    subject: Subject,
    diagnostics: Diagnostics,
) -> bool:
    """
    Fold ``children`` against one subject.

    ALL stops at the first failing child and is vacuously true; ANY stops
    at the first passing child and is vacuously false.
    """
    if aggregator == Aggregator.ALL:
        for child in children:
            if not _evaluate(child, subject, diagnostics):
                return False
        return True

    for child in children:
        if _evaluate(child, subject, diagnostics):
            return True
    return False


def _evaluate(node: ConditionNode, subject: Subject, diagnostics: Diagnostics) -> bool:
    if isinstance(node, LeafCondition):
        return _evaluate_leaf(node, subject, diagnostics)

    if isinstance(node, CombineNode):
        result = evaluate_combine(node.aggregator, node.children, subject, diagnostics)
        return result if node.value else not result

    if isinstance(node, ExistentialCombineNode):
        return _evaluate_existential(node, subject, diagnostics)

    if isinstance(node, AggregateCombineNode):
        return _evaluate_aggregate(node, subject, diagnostics)

    if isinstance(node, InvalidNode):
        diagnostics.configuration_error(node.error, node.type_tag)
        return False

    diagnostics.configuration_error(
        ConfigurationError(f"Unsupported condition node {type(node).__name__}"),
        getattr(node, "type_tag", None)
    )
    return False


def _evaluate_leaf(node: LeafCondition, subject: Subject, diagnostics: Diagnostics) -> bool:
    actual = _resolve(subject, node.attribute, node, diagnostics)
    if actual is _MISSING:
        return False
    return compare(node.operator, actual, node.value, diagnostics, node.id)


def _evaluate_existential(node: ExistentialCombineNode, subject: Subject, diagnostics: Diagnostics) -> bool:
    items = _items(subject, node, diagnostics)
    if items is None:
        return False

    # any() stops at the first match, which settles both FOUND and NOT FOUND
    found = any(
        evaluate_combine(node.aggregator, node.children, as_subject(item), diagnostics)
        for item in items
    )
    return found if node.value else not found


def _evaluate_aggregate(node: AggregateCombineNode, subject: Subject, diagnostics: Diagnostics) -> bool:
    if not node.children:
        diagnostics.configuration_error(
            ConfigurationError(
                "Subselection requires at least one filter condition",
                details={"attribute": node.attribute},
                node_id=node.id
            ),
            node.type_tag
        )
        return False

    if node.operator not in NUMERIC_OPERATORS:
        diagnostics.configuration_error(
            ConfigurationError(
                f"Operator {node.operator.value} cannot compare a total",
                details={"operator": node.operator.value},
                node_id=node.id
            ),
            node.type_tag
        )
        return False

    items = _items(subject, node, diagnostics)
    if items is None:
        return False

    values: List[Decimal] = []
    for item in items:
        item_subject = as_subject(item)
        if not evaluate_combine(node.aggregator, node.children, item_subject, diagnostics):
            continue
        value = _resolve(item_subject, node.attribute, node, diagnostics)
        if value is _MISSING:
            return False
        values.append(coerce_number(value, node.operator.value, diagnostics, node.id))

    total = _total(values)
    if total is None:
        diagnostics.configuration_error(
            ConfigurationError(
                f"Total of '{node.attribute}' is out of range",
                details={"attribute": node.attribute, "items": len(values)},
                node_id=node.id
            ),
            node.type_tag
        )
        return False

    threshold = coerce_number(node.value, node.operator.value, diagnostics, node.id)
    return compare_numbers(node.operator, total, threshold)


def _total(values: Iterable[Decimal]) -> Optional[Decimal]:
    """Exact sum of ``values``; None when it exceeds the decimal exponent range."""
    with localcontext() as ctx:
        ctx.clear_flags()
        ctx.traps[Overflow] = False
        total = sum(values, ZERO)
        if ctx.flags[Overflow]:
            return None
    return total


def _resolve(subject: Subject, attribute: str, node: ConditionNode, diagnostics: Diagnostics) -> Any:
    """Read an attribute through the host resolver; _MISSING when the resolver fails."""
    try:
        return subject.get_attribute(attribute)
    except Exception as e:
        diagnostics.configuration_error(
            ConfigurationError(
                f"Could not read attribute '{attribute}'",
                details={"attribute": attribute, "error": str(e)},
                node_id=node.id
            ),
            node.type_tag
        )
        return _MISSING


def _items(subject: Subject, node: ConditionNode, diagnostics: Diagnostics) -> Optional[List[Any]]:
    """The subject's item collection; empty when it has none, None when fetching fails."""
    get_items = getattr(subject, "get_items", None)
    if get_items is None:
        return []
    try:
        return list(get_items() or [])
    except Exception as e:
        diagnostics.configuration_error(
            ConfigurationError(
                "Could not read the subject's items",
                details={"error": str(e)},
                node_id=node.id
            ),
            node.type_tag
        )
        return None
