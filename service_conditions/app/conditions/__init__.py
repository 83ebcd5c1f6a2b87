"""
Condition tree package.

Defines the node model and the evaluation engine shared by every
rule-owning entity (payment restrictions, price rules, customer segments).
A tree is built from leaf comparisons and three combinators: plain ALL/ANY
combinations, FOUND / NOT FOUND quantifiers over a subject's items, and
subselections that total an item attribute over the items passing a
filter.

Modules of interest:
- models: Node variants, operators and aggregators.
- evaluator: Depth-first evaluation with the shared combine fold.
- operators: Loose comparisons and never-failing numeric coercion.
- codec: Portable dict, JSON and legacy XML round trips.
- registry: Host-supplied mapping of type tags to node variants.
- describe: Plain-text rendering of a tree.

Evaluation is read-only, so one decoded tree can be evaluated against many
subjects concurrently.
"""

from .codec import TreeCodec
from .describe import describe
from .diagnostics import Diagnostics
from .evaluator import evaluate, evaluate_combine
from .models import (
    Aggregator, AggregateCombineNode, CombineNode, ConditionNode,
    ExistentialCombineNode, InvalidNode, LeafCondition, NodeKind, Operator
)
from .registry import NodeType, NodeTypeRegistry, default_registry
from .subjects import MappingSubject, ObjectSubject, Subject, as_subject

__all__ = [
    "Aggregator",
    "AggregateCombineNode",
    "CombineNode",
    "ConditionNode",
    "Diagnostics",
    "ExistentialCombineNode",
    "InvalidNode",
    "LeafCondition",
    "MappingSubject",
    "NodeKind",
    "NodeType",
    "NodeTypeRegistry",
    "ObjectSubject",
    "Operator",
    "Subject",
    "TreeCodec",
    "as_subject",
    "default_registry",
    "describe",
    "evaluate",
    "evaluate_combine",
]
