"""
Unit tests for condition tree serialization and the node type registry.
"""

import json
import pytest
from decimal import Decimal

from service_conditions.app.conditions.codec import TreeCodec
from service_conditions.app.conditions.evaluator import evaluate
from service_conditions.app.conditions.models import (
    Aggregator, AggregateCombineNode, CombineNode, ExistentialCombineNode,
    InvalidNode, LeafCondition, NodeKind, Operator
)
from service_conditions.app.conditions.registry import NodeTypeRegistry, default_registry
from shared.errors import ConfigurationError, DeserializationError
from shared.test_helpers import SampleDataFactory, combine, found, leaf, subselect


LEGACY_XML = """
<condition>
  <type>combine</type>
  <aggregator>all</aggregator>
  <value>1</value>
  <conditions>
    <condition>
      <type>attribute</type>
      <attribute>country_id</attribute>
      <operator>()</operator>
      <value list="1"><item>US</item><item>CA</item></value>
    </condition>
    <condition>
      <type>found</type>
      <aggregator>all</aggregator>
      <value>0</value>
      <conditions>
        <condition>
          <type>attribute</type>
          <attribute>sku</attribute>
          <operator>==</operator>
          <value>GIFT-CARD</value>
        </condition>
      </conditions>
    </condition>
  </conditions>
</condition>
"""


@pytest.fixture
def codec():
    """Codec over the generic node types."""
    return TreeCodec(default_registry())


@pytest.fixture
def tree(codec):
    """A tree using every node variant."""
    return codec.from_portable(combine([
        leaf("country_id", "()", ["US", "CA"]),
        combine([leaf("base_subtotal", ">=", 100), leaf("total_qty", ">", 10)], aggregator="any", value=False),
        found([leaf("color", "==", "red")]),
        subselect("qty", ">=", 5, [leaf("color", "==", "red")]),
    ]))


def subjects():
    carts = [
        SampleDataFactory.create_cart(),
        SampleDataFactory.create_cart(country_id="DE"),
        SampleDataFactory.create_cart(base_subtotal=20),
        SampleDataFactory.create_cart(items=[]),
        {},
    ]
    return carts


class TestFromPortable:
    """Test cases for building nodes from the portable shape."""

    def test_builds_every_variant(self, tree):
        """Test each type tag becomes its variant."""
        assert isinstance(tree, CombineNode)
        leaf_node, nested, quantifier, total = tree.children
        assert isinstance(leaf_node, LeafCondition)
        assert leaf_node.operator == Operator.IS_ONE_OF
        assert isinstance(nested, CombineNode)
        assert nested.aggregator == Aggregator.ANY
        assert nested.value is False
        assert isinstance(quantifier, ExistentialCombineNode)
        assert isinstance(total, AggregateCombineNode)
        assert total.attribute == "qty"

    def test_assigns_path_ids(self, tree):
        """Test ids follow the position path from the root."""
        assert tree.id == "1"
        assert [child.id for child in tree.children] == ["1--1", "1--2", "1--3", "1--4"]
        assert [child.id for child in tree.children[1].children] == ["1--2--1", "1--2--2"]
        assert tree.children[3].children[0].id == "1--4--1"

    def test_unknown_type_becomes_invalid_node(self, codec):
        """Test an unregistered type tag does not raise."""
        node = codec.from_portable({"type": "unknown_type", "conditions": []})

        assert isinstance(node, InvalidNode)
        assert node.type_tag == "unknown_type"
        assert isinstance(node.error, ConfigurationError)
        assert evaluate(node, {}) is False

    def test_missing_type_becomes_invalid_node(self, codec):
        """Test a node without a type tag is invalid."""
        assert isinstance(codec.from_portable({"attribute": "sku"}), InvalidNode)

    def test_non_object_child_becomes_invalid_node(self, codec):
        """Test scalar children are invalid without breaking their siblings."""
        node = codec.from_portable(combine([leaf("sku", "==", "A"), "garbage"]))

        assert isinstance(node, CombineNode)
        assert isinstance(node.children[1], InvalidNode)
        assert node.children[1].id == "1--2"

    @pytest.mark.parametrize("data", [
        leaf("sku", "~=", "A"),
        leaf("", "==", "A"),
        combine(aggregator="most"),
        combine(value="maybe"),
        {"type": "combine", "conditions": "sku"},
    ])
    def test_malformed_fields_become_invalid_node(self, codec, data):
        """Test bad operators, attributes, aggregators and flags."""
        node = codec.from_portable(data)

        assert isinstance(node, InvalidNode)
        assert node.raw == data

    @pytest.mark.parametrize("flag,expected", [
        (None, True),
        (True, True),
        (False, False),
        (1, True),
        (0, False),
        ("1", True),
        ("0", False),
        ("TRUE", True),
        ("false", False),
        ("", False),
    ])
    def test_combination_flag_parsing(self, codec, flag, expected):
        """Test the stored negation flag accepts legacy spellings."""
        node = codec.from_portable({"type": "combine", "value": flag})
        assert node.value is expected

    def test_aggregator_defaults_to_all(self, codec):
        """Test a missing aggregator means ALL."""
        node = codec.from_portable({"type": "combine", "aggregator": "ANY"})
        assert node.aggregator == Aggregator.ANY
        assert codec.from_portable({"type": "combine"}).aggregator == Aggregator.ALL

    def test_children_keyed_by_position(self, codec):
        """Test legacy payloads with children keyed by position."""
        node = codec.from_portable({
            "type": "combine",
            "conditions": {"1": leaf("sku", "==", "A"), "2": leaf("sku", "==", "B")},
        })
        assert [child.value for child in node.children] == ["A", "B"]

    def test_attribute_vocabulary(self):
        """Test attributes outside a type's vocabulary are rejected."""
        registry = default_registry()
        registry.register("address", NodeKind.LEAF, attributes=["country_id"])
        codec = TreeCodec(registry)

        assert isinstance(codec.from_portable(leaf("country_id", "==", "US", "address")), LeafCondition)
        node = codec.from_portable(leaf("favorite_color", "==", "red", "address"))
        assert isinstance(node, InvalidNode)
        assert node.error.details["attribute"] == "favorite_color"


class TestPortableRoundTrip:
    """Test cases for re-encoding a tree."""

    def test_round_trip_preserves_shape(self, codec, tree):
        """Test decode(encode(t)) encodes identically."""
        portable = codec.to_portable(tree)
        assert codec.to_portable(codec.from_portable(portable)) == portable

    def test_round_trip_preserves_meaning(self, codec, tree):
        """Test the rebuilt tree decides every subject the same way."""
        rebuilt = codec.from_portable(codec.to_portable(tree))
        for subject in subjects():
            assert evaluate(rebuilt, subject) == evaluate(tree, subject)

    def test_existential_has_no_attribute(self, codec, tree):
        """Test FOUND nodes carry no attribute or operator."""
        portable = codec.to_portable(tree.children[2])
        assert portable["attribute"] is None
        assert portable["operator"] is None

    def test_invalid_node_keeps_stored_data(self, codec):
        """Test an invalid node is written back unchanged."""
        raw = {"type": "legacy/thing", "attribute": "x", "value": 1}
        assert codec.to_portable(codec.from_portable(raw)) == raw


class TestJson:
    """Test cases for the persisted JSON format."""

    def test_dumps_loads(self, codec, tree):
        """Test JSON text decodes to an equivalent tree."""
        text = codec.dumps(tree)

        assert json.loads(text)["type"] == "combine"
        rebuilt = codec.loads(text)
        for subject in subjects():
            assert evaluate(rebuilt, subject) == evaluate(tree, subject)

    def test_decimal_values_are_written_as_text(self, codec):
        """Test Decimal thresholds serialize."""
        node = LeafCondition(type_tag="attribute", attribute="weight", operator=Operator.LESS_THAN, value=Decimal("2.5"))
        assert json.loads(codec.dumps(node))["value"] == "2.5"

    @pytest.mark.parametrize("text", [None, "", "   ", "null"])
    def test_empty_text_is_an_empty_root(self, codec, text):
        """Test rules without conditions always match."""
        root = codec.loads(text)

        assert isinstance(root, CombineNode)
        assert root.children == ()
        assert evaluate(root, {}) is True

    def test_malformed_json_raises(self, codec):
        """Test text that is not JSON is a deserialization error."""
        with pytest.raises(DeserializationError) as exc_info:
            codec.loads('{"type": "combine", ')

        assert exc_info.value.code == "DESERIALIZATION_ERROR"

    @pytest.mark.parametrize("text", [
        "[" * 100000 + "]" * 100000,
        '{"type": "combine", "conditions": [' * 2000 + '{"type": "combine"}' + "]}" * 2000,
    ])
    def test_deeply_nested_json_raises(self, codec, text):
        """Test nesting beyond the interpreter's depth is a deserialization error."""
        with pytest.raises(DeserializationError):
            codec.loads(text)

    def test_valid_json_with_bad_nodes_does_not_raise(self, codec):
        """Test structural problems stay inside the tree."""
        node = codec.loads('{"type": "unknown_type"}')
        assert isinstance(node, InvalidNode)


class TestXml:
    """Test cases for the legacy XML format."""

    def test_reads_legacy_xml(self, codec):
        """Test a hand-written legacy tree."""
        root = codec.from_xml(LEGACY_XML)

        assert isinstance(root, CombineNode)
        country, gift_card = root.children
        assert country.value == ["US", "CA"]
        assert isinstance(gift_card, ExistentialCombineNode)
        assert gift_card.value is False

        cart = {"country_id": "CA", "items": [{"sku": "BOOK"}]}
        assert evaluate(root, cart) is True
        cart["items"].append({"sku": "GIFT-CARD"})
        assert evaluate(root, cart) is False

    def test_xml_round_trip(self, codec, tree):
        """Test XML text decodes to an equivalent tree."""
        text = codec.to_xml(tree)

        assert text.startswith("<condition>")
        assert '<value list="1">' in text
        rebuilt = codec.from_xml(text)
        for subject in subjects():
            assert evaluate(rebuilt, subject) == evaluate(tree, subject)

    def test_negation_flag_written_as_digit(self, codec):
        """Test booleans use the legacy 1/0 spelling."""
        text = codec.to_xml(CombineNode(type_tag="combine", value=False))
        assert '<value type="bool">0</value>' in text

    @pytest.mark.parametrize("data,payloads", [
        (
            leaf("is_subscribed", "==", True),
            [{"is_subscribed": "true"}, {"is_subscribed": "1"}, {"is_subscribed": "0"}, {}],
        ),
        (
            leaf("tagline", "{}", False),
            [{"tagline": "false start"}, {"tagline": "0 to 60"}, {"tagline": "none"}],
        ),
        (
            leaf("category_ids", "==", [None, 3]),
            [{"category_ids": [""]}, {"category_ids": ["None"]}, {"category_ids": [3]}, {"category_ids": [4]}],
        ),
        (
            leaf("qty", "{}", 5),
            [{"qty": "15"}, {"qty": 5}, {"qty": "50"}, {"qty": 4}],
        ),
        (
            leaf("weight", "==", 2.5),
            [{"weight": "2.50"}, {"weight": 2.5}, {"weight": "2,5"}],
        ),
    ])
    def test_typed_values_survive_round_trip(self, codec, data, payloads):
        """Test booleans, numbers and nulls keep their type through XML."""
        node = codec.from_portable(data)
        rebuilt = codec.from_xml(codec.to_xml(node))

        assert codec.to_portable(rebuilt) == codec.to_portable(node)
        for payload in payloads:
            assert evaluate(rebuilt, payload) == evaluate(node, payload)

    def test_typed_value_is_read_back_typed(self, codec):
        """Test the type attribute restores the scalar."""
        node = codec.from_xml(
            "<condition><type>attribute</type><attribute>is_subscribed</attribute>"
            "<operator>==</operator><value type=\"bool\">1</value></condition>"
        )
        assert node.value is True

    def test_malformed_typed_value_raises(self, codec):
        """Test a typed value that cannot be read is a deserialization error."""
        with pytest.raises(DeserializationError):
            codec.from_xml(
                "<condition><type>attribute</type><attribute>qty</attribute>"
                "<operator>&gt;=</operator><value type=\"int\">many</value></condition>"
            )

    def test_malformed_xml_raises(self, codec):
        """Test text that is not XML is a deserialization error."""
        with pytest.raises(DeserializationError):
            codec.from_xml("<condition><type>combine</type>")


class TestFormatSelection:
    """Test cases for encode/decode."""

    def test_decode_detects_xml(self, codec):
        """Test leading '<' selects the XML reader."""
        assert isinstance(codec.decode("\n  " + LEGACY_XML), CombineNode)
        assert isinstance(codec.decode('{"type": "combine"}'), CombineNode)

    def test_encode_formats(self, codec, tree):
        """Test explicit formats."""
        assert codec.encode(tree, "xml").startswith("<condition>")
        assert json.loads(codec.encode(tree, "json"))["type"] == "combine"

    def test_encode_defaults_to_configured_format(self, codec, tree):
        """Test the default format is JSON."""
        assert json.loads(codec.encode(tree))["type"] == "combine"

    def test_encode_unknown_format(self, codec, tree):
        """Test unsupported formats are rejected."""
        with pytest.raises(ValueError):
            codec.encode(tree, "yaml")


class TestNodeTypeRegistry:
    """Test cases for the type tag registry."""

    def test_default_registry(self):
        """Test the generic tags."""
        registry = default_registry()

        assert len(registry) == 4
        assert "combine" in registry
        assert registry.resolve("found").kind == NodeKind.EXISTENTIAL
        assert registry.resolve("missing") is None
        assert registry.resolve(None) is None

    def test_register_and_unregister(self):
        """Test hosts can extend the registry."""
        registry = NodeTypeRegistry(root_type="root")
        registry.register("root", NodeKind.COMBINE)
        registry.register("product", NodeKind.LEAF, label="Product", attributes=["sku"])

        assert [t.type_tag for t in registry.types_of_kind(NodeKind.LEAF)] == ["product"]
        assert registry.resolve("product").allows_attribute("sku")
        assert not registry.resolve("product").allows_attribute("color")
        assert registry.unregister("product") is True
        assert registry.unregister("product") is False

    def test_empty_root_uses_root_type(self):
        """Test empty conditions decode to the registry's root tag."""
        registry = NodeTypeRegistry(root_type="root")
        registry.register("root", NodeKind.COMBINE)

        assert TreeCodec(registry).loads("").type_tag == "root"
