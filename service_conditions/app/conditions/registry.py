"""
Node type registry.

Maps the ``type`` tag stored with every persisted node to the variant it
builds plus that variant's construction parameters. The engine defines no
attribute vocabulary of its own; hosts register theirs.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from shared.logging import get_logger
from .models import NodeKind

DEFAULT_ROOT_TYPE = "combine"


@dataclass(frozen=True)
class NodeType:
    """How to build a node persisted under one type tag."""
    type_tag: str
    kind: NodeKind
    label: Optional[str] = None
    attributes: Optional[FrozenSet[str]] = None

    def allows_attribute(self, attribute: Optional[str]) -> bool:
        """Whether ``attribute`` is in this type's vocabulary (any, when unrestricted)."""
        if self.attributes is None:
            return True
        return attribute in self.attributes


class NodeTypeRegistry:
    """String-keyed table of node types."""

    def __init__(self, root_type: str = DEFAULT_ROOT_TYPE):
        self.logger = get_logger("conditions.registry")
        self.root_type = root_type
        self._types: Dict[str, NodeType] = {}

    def register(
        self,
        type_tag: str,
        kind: NodeKind,
        label: Optional[str] = None,
        attributes: Optional[Iterable[str]] = None,
    ) -> NodeType:
        """Register (or replace) a type tag."""
        node_type = NodeType(
            type_tag=type_tag,
            kind=kind,
            label=label,
            attributes=frozenset(attributes) if attributes is not None else None
        )
        if type_tag in self._types:
            self.logger.info("Node type replaced", type_tag=type_tag, kind=kind.value)
        self._types[type_tag] = node_type
        return node_type

    def unregister(self, type_tag: str) -> bool:
        """Remove a type tag."""
        if type_tag in self._types:
            del self._types[type_tag]
            return True
        return False

    def resolve(self, type_tag: Optional[str]) -> Optional[NodeType]:
        """Look up a type tag; None when unknown."""
        if not type_tag:
            return None
        return self._types.get(type_tag)

    def types_of_kind(self, kind: NodeKind) -> List[NodeType]:
        return [t for t in self._types.values() if t.kind == kind]

    def __contains__(self, type_tag: str) -> bool:
        return type_tag in self._types

    def __len__(self) -> int:
        return len(self._types)


def default_registry() -> NodeTypeRegistry:
    """Registry with generic, vocabulary-free tags for every variant."""
    registry = NodeTypeRegistry()
    registry.register("combine", NodeKind.COMBINE, label="Conditions combination")
    registry.register("found", NodeKind.EXISTENTIAL, label="Product found in cart")
    registry.register("subselect", NodeKind.AGGREGATE, label="Products subselection")
    registry.register("attribute", NodeKind.LEAF, label="Attribute")
    return registry
