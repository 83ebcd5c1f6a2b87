"""
Plain-text rendering of condition trees, for logs and admin previews.
"""

from typing import Any, List

from .models import (
    ConditionNode, LeafCondition, CombineNode, ExistentialCombineNode,
    AggregateCombineNode, InvalidNode, Operator
)

OPERATOR_NAMES = {
    Operator.EQUALS: "is",
    Operator.NOT_EQUALS: "is not",
    Operator.GREATER_OR_EQUAL: "equals or greater than",
    Operator.LESS_OR_EQUAL: "equals or less than",
    Operator.GREATER_THAN: "greater than",
    Operator.LESS_THAN: "less than",
    Operator.CONTAINS: "contains",
    Operator.NOT_CONTAINS: "does not contain",
    Operator.IS_ONE_OF: "is one of",
    Operator.IS_NOT_ONE_OF: "is not one of",
}

INDENT = "   "


def _value_name(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(str(v) for v in value)
    if value is None:
        return "..."
    return str(value)


def describe_node(node: ConditionNode) -> str:
    """One-line description of ``node`` alone."""
    if isinstance(node, LeafCondition):
        return f"{node.attribute} {OPERATOR_NAMES[node.operator]} {_value_name(node.value)}"

    if isinstance(node, CombineNode):
        return "If {} of these conditions are {}:".format(
            node.aggregator.value.upper(),
            "TRUE" if node.value else "FALSE"
        )

    if isinstance(node, ExistentialCombineNode):
        return "If an item is {} with {} of these conditions true:".format(
            "FOUND" if node.value else "NOT FOUND",
            node.aggregator.value.upper()
        )

    if isinstance(node, AggregateCombineNode):
        return "If total {} {} {} for a subselection of items matching {} of these conditions:".format(
            node.attribute,
            OPERATOR_NAMES[node.operator],
            _value_name(node.value),
            node.aggregator.value.upper()
        )

    if isinstance(node, InvalidNode):
        return f"Invalid condition ({node.type_tag or 'no type'}): {node.error.message}"

    return repr(node)


def describe(node: ConditionNode, level: int = 0) -> str:
    """Indented multi-line description of the whole tree."""
    lines: List[str] = []
    _collect(node, level, lines)
    return "\n".join(lines)


def _collect(node: ConditionNode, level: int, lines: List[str]) -> None:
    lines.append(INDENT * level + describe_node(node))
    for child in getattr(node, "children", ()):
        _collect(child, level + 1, lines)
