"""
Condition tree serialization.

Every format goes through the same portable shape::

    {"type": ..., "attribute": ..., "operator": ..., "value": ...,
     "aggregator": ..., "conditions": [...]}

JSON is the persisted format. XML is kept for importing and exporting
legacy rules; it is parsed into the portable shape first, so both formats
share one builder.
"""

import json
import xml.etree.ElementTree as ElementTree
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from shared.config import get_config
from shared.errors import ConfigurationError, DeserializationError
from shared.logging import get_logger
from .models import (
    Aggregator, ConditionNode, LeafCondition, CombineNode,
    ExistentialCombineNode, AggregateCombineNode, InvalidNode, NodeKind, Operator
)
from .registry import NodeType, NodeTypeRegistry

XML_FIELDS = ("type", "attribute", "operator", "value", "aggregator")

TRUE_FLAGS = frozenset(["1", "true", "yes"])
FALSE_FLAGS = frozenset(["0", "false", "no", ""])


class TreeCodec:
    """Converts condition trees to and from their persisted forms."""

    def __init__(self, registry: NodeTypeRegistry):
        self.registry = registry
        self.logger = get_logger("conditions.codec")

    # Portable shape

    def to_portable(self, node: ConditionNode) -> Dict[str, Any]:
        """Emit the portable dict for ``node`` and its subtree, preserving child order."""
        if isinstance(node, LeafCondition):
            return {
                "type": node.type_tag,
                "attribute": node.attribute,
                "operator": node.operator.value,
                "value": node.value,
            }

        if isinstance(node, CombineNode):
            return {
                "type": node.type_tag,
                "aggregator": node.aggregator.value,
                "value": node.value,
                "conditions": [self.to_portable(child) for child in node.children],
            }

        if isinstance(node, ExistentialCombineNode):
            return {
                "type": node.type_tag,
                "attribute": None,
                "operator": None,
                "aggregator": node.aggregator.value,
                "value": node.value,
                "conditions": [self.to_portable(child) for child in node.children],
            }

        if isinstance(node, AggregateCombineNode):
            return {
                "type": node.type_tag,
                "attribute": node.attribute,
                "operator": node.operator.value,
                "value": node.value,
                "aggregator": node.aggregator.value,
                "conditions": [self.to_portable(child) for child in node.children],
            }

        if isinstance(node, InvalidNode):
            # Hand back what was stored so a bad node is not silently rewritten
            if isinstance(node.raw, Mapping):
                return dict(node.raw)
            return {"type": node.type_tag}

        raise TypeError(f"Not a condition node: {type(node).__name__}")

    def from_portable(self, data: Any, node_id: str = "1") -> ConditionNode:
        """
        Build a node from its portable dict.

        Never raises: anything that cannot be built becomes an
        :class:`InvalidNode` that evaluates to False.
        """
        if not isinstance(data, Mapping):
            return self._invalid(
                None,
                ConfigurationError(
                    "Condition node must be an object",
                    details={"received": type(data).__name__},
                    node_id=node_id
                ),
                data,
                node_id
            )

        type_tag = data.get("type")
        node_type = self.registry.resolve(type_tag)
        if node_type is None:
            return self._invalid(
                type_tag,
                ConfigurationError(
                    f"Unknown condition type '{type_tag}'",
                    details={"type": type_tag},
                    node_id=node_id
                ),
                data,
                node_id
            )

        try:
            return self._build(node_type, data, node_id)
        except ConfigurationError as e:
            return self._invalid(type_tag, e, data, node_id)

    def _build(self, node_type: NodeType, data: Mapping[str, Any], node_id: str) -> ConditionNode:
        kind = node_type.kind

        if kind == NodeKind.LEAF:
            return LeafCondition(
                type_tag=node_type.type_tag,
                attribute=self._parse_attribute(node_type, data, node_id),
                operator=self._parse_operator(data.get("operator"), node_id),
                value=data.get("value"),
                id=node_id
            )

        children = self._build_children(data, node_id)
        aggregator = self._parse_aggregator(data.get("aggregator"), node_id)

        if kind == NodeKind.COMBINE:
            return CombineNode(
                type_tag=node_type.type_tag,
                aggregator=aggregator,
                value=self._parse_flag(data.get("value"), node_id),
                children=children,
                id=node_id
            )

        if kind == NodeKind.EXISTENTIAL:
            return ExistentialCombineNode(
                type_tag=node_type.type_tag,
                aggregator=aggregator,
                value=self._parse_flag(data.get("value"), node_id),
                children=children,
                id=node_id
            )

        return AggregateCombineNode(
            type_tag=node_type.type_tag,
            attribute=self._parse_attribute(node_type, data, node_id),
            operator=self._parse_operator(data.get("operator"), node_id),
            value=data.get("value"),
            aggregator=aggregator,
            children=children,
            id=node_id
        )

    def _build_children(self, data: Mapping[str, Any], node_id: str) -> tuple:
        raw = data.get("conditions")
        if raw is None:
            return ()
        if isinstance(raw, Mapping):
            # Legacy payloads key children by position
            raw = list(raw.values())
        if not isinstance(raw, (list, tuple)):
            raise ConfigurationError(
                "Child conditions must be a list",
                details={"received": type(raw).__name__},
                node_id=node_id
            )
        return tuple(
            self.from_portable(child, f"{node_id}--{position}")
            for position, child in enumerate(raw, start=1)
        )

    def _invalid(self, type_tag: Optional[str], error: ConfigurationError, raw: Any, node_id: str) -> InvalidNode:
        self.logger.warning("Invalid condition node", node_id=node_id, type_tag=type_tag, error=error.message)
        return InvalidNode(type_tag=type_tag, error=error, raw=raw, id=node_id)

    # Field parsing

    def _parse_attribute(self, node_type: NodeType, data: Mapping[str, Any], node_id: str) -> str:
        attribute = data.get("attribute")
        if not isinstance(attribute, str) or not attribute:
            raise ConfigurationError(
                f"Condition type '{node_type.type_tag}' requires an attribute",
                node_id=node_id
            )
        if not node_type.allows_attribute(attribute):
            raise ConfigurationError(
                f"Attribute '{attribute}' is not available for '{node_type.type_tag}'",
                details={"attribute": attribute},
                node_id=node_id
            )
        return attribute

    def _parse_operator(self, value: Any, node_id: str) -> Operator:
        try:
            return Operator(value)
        except ValueError:
            raise ConfigurationError(
                f"Unknown operator {value!r}",
                details={"operator": value},
                node_id=node_id
            )

    def _parse_aggregator(self, value: Any, node_id: str) -> Aggregator:
        if value is None or value == "":
            return Aggregator.ALL
        try:
            return Aggregator(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown aggregator {value!r}",
                details={"aggregator": value},
                node_id=node_id
            )

    def _parse_flag(self, value: Any, node_id: str) -> bool:
        if value is None:
            return True
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float, Decimal)):
            return value != 0
        text = str(value).strip().lower()
        if text in TRUE_FLAGS:
            return True
        if text in FALSE_FLAGS:
            return False
        raise ConfigurationError(
            f"Combination flag {value!r} is not a boolean",
            details={"value": value},
            node_id=node_id
        )

    # JSON

    def empty_root(self) -> CombineNode:
        """Root for a rule with no conditions: an ALL that always matches."""
        return CombineNode(type_tag=self.registry.root_type)

    def dumps(self, node: ConditionNode) -> str:
        """Serialize ``node`` to JSON text."""
        return json.dumps(self.to_portable(node), default=_json_default)

    def loads(self, text: Optional[str]) -> ConditionNode:
        """Decode JSON text. Raises DeserializationError when the text is not JSON."""
        if text is None or not text.strip():
            return self.empty_root()

        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as e:
            raise DeserializationError(
                "Conditions are not valid JSON",
                details={"error": str(e)}
            ) from e

        if data is None:
            return self.empty_root()

        return self._root(data)

    # Legacy XML

    def to_xml(self, node: ConditionNode) -> str:
        """Serialize ``node`` to legacy XML."""
        element = _portable_to_element(self.to_portable(node))
        return ElementTree.tostring(element, encoding="unicode")

    def from_xml(self, text: str) -> ConditionNode:
        """Decode legacy XML. Raises DeserializationError when the text is not XML."""
        try:
            root = ElementTree.fromstring(text)
        except ElementTree.ParseError as e:
            raise DeserializationError(
                "Conditions are not valid XML",
                details={"error": str(e)}
            ) from e

        try:
            data = _element_to_portable(root)
        except ValueError as e:
            raise DeserializationError(
                "Conditions hold a malformed typed value",
                details={"error": str(e)}
            ) from e
        except RecursionError as e:
            raise DeserializationError("Conditions are nested too deeply") from e

        return self._root(data)

    def _root(self, data: Any) -> ConditionNode:
        try:
            return self.from_portable(data)
        except RecursionError as e:
            raise DeserializationError("Conditions are nested too deeply") from e

    # Format selection

    def encode(self, node: ConditionNode, fmt: Optional[str] = None) -> str:
        """Serialize in ``fmt`` (json or xml), defaulting to the configured export format."""
        fmt = fmt or get_config().export_format
        if fmt == "xml":
            return self.to_xml(node)
        if fmt == "json":
            return self.dumps(node)
        raise ValueError(f"Unsupported conditions format: {fmt}")

    def decode(self, text: Optional[str]) -> ConditionNode:
        """Decode persisted text, detecting legacy XML by its leading '<'."""
        if text is not None and text.lstrip().startswith("<"):
            self.logger.debug("Decoding legacy XML conditions")
            return self.from_xml(text)
        return self.loads(text)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _portable_to_element(data: Mapping[str, Any], tag: str = "condition") -> ElementTree.Element:
    element = ElementTree.Element(tag)

    for key in XML_FIELDS:
        value = data.get(key)
        if value is None:
            continue
        field_element = ElementTree.SubElement(element, key)
        if isinstance(value, (list, tuple, set, frozenset)):
            field_element.set("list", "1")
            for item in value:
                _write_value(ElementTree.SubElement(field_element, "item"), item)
        else:
            _write_value(field_element, value)

    children = data.get("conditions")
    if children:
        conditions = ElementTree.SubElement(element, "conditions")
        for child in children:
            if isinstance(child, Mapping):
                conditions.append(_portable_to_element(child))

    return element


def _write_value(element: ElementTree.Element, value: Any) -> None:
    """Write ``value`` as text, marking non-string scalars with a ``type`` attribute."""
    if value is None:
        element.set("type", "null")
    elif isinstance(value, bool):
        element.set("type", "bool")
        element.text = "1" if value else "0"
    elif isinstance(value, int):
        element.set("type", "int")
        element.text = str(value)
    elif isinstance(value, float):
        element.set("type", "float")
        element.text = repr(value)
    else:
        element.text = str(value)


def _element_to_portable(element: ElementTree.Element) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    for child in element:
        if child.tag == "conditions":
            data["conditions"] = [
                _element_to_portable(condition)
                for condition in child
                if condition.tag == "condition"
            ]
        elif child.tag in XML_FIELDS:
            data[child.tag] = _element_value(child)

    return data


def _element_value(element: ElementTree.Element) -> Any:
    if element.get("list"):
        items: List[Any] = [_read_value(item) for item in element if item.tag == "item"]
        return items
    return _read_value(element)


def _read_value(element: ElementTree.Element) -> Any:
    """Inverse of _write_value. Untyped elements, as in legacy exports, read as text."""
    kind = element.get("type")
    text = element.text or ""
    if kind == "null":
        return None
    if kind == "bool":
        return text.strip().lower() in TRUE_FLAGS
    if kind == "int":
        return int(text)
    if kind == "float":
        return float(text)
    return text
