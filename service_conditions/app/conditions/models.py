"""
Condition tree data models.
"""

from typing import Any, Optional, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum

from shared.errors import ConfigurationError


class Operator(str, Enum):
    """Comparison operators, keyed by their persisted symbol."""
    EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    CONTAINS = "{}"
    NOT_CONTAINS = "!{}"
    IS_ONE_OF = "()"
    IS_NOT_ONE_OF = "!()"

    @property
    def is_negated(self) -> bool:
        return self in (Operator.NOT_EQUALS, Operator.NOT_CONTAINS, Operator.IS_NOT_ONE_OF)

    @property
    def is_ordering(self) -> bool:
        return self in (
            Operator.GREATER_OR_EQUAL,
            Operator.LESS_OR_EQUAL,
            Operator.GREATER_THAN,
            Operator.LESS_THAN,
        )


class Aggregator(str, Enum):
    """How a combinator folds its children."""
    ALL = "all"
    ANY = "any"


class NodeKind(str, Enum):
    """Variant of a condition node."""
    LEAF = "leaf"
    COMBINE = "combine"
    EXISTENTIAL = "existential"
    AGGREGATE = "aggregate"


@dataclass(frozen=True)
class LeafCondition:
    """Compares one subject attribute against a literal value."""
    type_tag: str
    attribute: str
    operator: Operator
    value: Any = None
    id: str = "1"


@dataclass(frozen=True)
class CombineNode:
    """
    ALL/ANY over child nodes.

    ``value`` is the negation flag: when False the folded result is
    inverted.
    """
    type_tag: str
    aggregator: Aggregator = Aggregator.ALL
    value: bool = True
    children: Tuple["ConditionNode", ...] = field(default_factory=tuple)
    id: str = "1"


@dataclass(frozen=True)
class ExistentialCombineNode:
    """
    FOUND / NOT FOUND over the subject's items.

    ``value`` True means at least one item must satisfy the children,
    False means none may.
    """
    type_tag: str
    aggregator: Aggregator = Aggregator.ALL
    value: bool = True
    children: Tuple["ConditionNode", ...] = field(default_factory=tuple)
    id: str = "1"


@dataclass(frozen=True)
class AggregateCombineNode:
    """Sums ``attribute`` over the items passing ``children`` and compares the total."""
    type_tag: str
    attribute: str
    operator: Operator
    value: Any = None
    aggregator: Aggregator = Aggregator.ALL
    children: Tuple["ConditionNode", ...] = field(default_factory=tuple)
    id: str = "1"


@dataclass(frozen=True)
class InvalidNode:
    """Stand-in for a persisted node that could not be built. Never matches."""
    type_tag: Optional[str]
    error: ConfigurationError
    raw: Any = None
    id: str = "1"


ConditionNode = Union[
    LeafCondition,
    CombineNode,
    ExistentialCombineNode,
    AggregateCombineNode,
    InvalidNode,
]

COMBINATOR_NODES = (CombineNode, ExistentialCombineNode, AggregateCombineNode)
