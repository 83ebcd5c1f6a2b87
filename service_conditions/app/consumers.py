"""
Rule types that own condition trees.

Each consumer states what a rule with undecodable conditions answers:
payment restrictions fail closed (the restriction applies), price rules
and customer segments fail open toward "no discount" and "not a member".
"""

from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence

from .conditions.models import NodeKind
from .conditions.operators import coerce_number
from .conditions.registry import NodeTypeRegistry
from .rule import DeserializationPolicy, Rule

CART_ATTRIBUTES = (
    "base_subtotal",
    "total_qty",
    "weight",
    "payment_method",
    "shipping_method",
    "postcode",
    "region_id",
    "country_id",
    "customer_group_id",
)

SUBSELECT_ATTRIBUTES = ("qty", "base_row_total")

CUSTOMER_ATTRIBUTES = (
    "email",
    "firstname",
    "lastname",
    "group_id",
    "gender",
    "dob",
    "created_at",
    "lifetime_sales",
    "number_of_orders",
)


def cart_registry() -> NodeTypeRegistry:
    """Type tags for conditions over a cart and its line items."""
    registry = NodeTypeRegistry(root_type="salesrule/rule_condition_combine")
    registry.register("salesrule/rule_condition_combine", NodeKind.COMBINE, "Conditions combination")
    registry.register("salesrule/rule_condition_address", NodeKind.LEAF, "Cart Attribute", CART_ATTRIBUTES)
    registry.register("salesrule/rule_condition_product_found", NodeKind.EXISTENTIAL, "Product attribute combination")
    registry.register(
        "salesrule/rule_condition_product_subselect",
        NodeKind.AGGREGATE,
        "Products subselection",
        SUBSELECT_ATTRIBUTES
    )
    # Product attributes are merchant-defined, so the vocabulary stays open
    registry.register("salesrule/rule_condition_product", NodeKind.LEAF, "Product Attribute")
    return registry


def segment_registry() -> NodeTypeRegistry:
    """Type tags for conditions over a customer and their orders."""
    registry = NodeTypeRegistry(root_type="customersegmentation/segment_condition_combine")
    registry.register("customersegmentation/segment_condition_combine", NodeKind.COMBINE, "Conditions combination")
    registry.register(
        "customersegmentation/segment_condition_customer_attributes",
        NodeKind.LEAF,
        "Customer Attributes",
        CUSTOMER_ATTRIBUTES
    )
    registry.register("customersegmentation/segment_condition_order_found", NodeKind.EXISTENTIAL, "Orders")
    registry.register("customersegmentation/segment_condition_order_attributes", NodeKind.LEAF, "Order Attributes")
    registry.register("customersegmentation/segment_condition_order_subselect", NodeKind.AGGREGATE, "Order totals")
    return registry


class PaymentRestriction(Rule):
    """Hides payment methods from carts that match its conditions."""

    deserialization_policy = DeserializationPolicy.MATCH

    def __init__(
        self,
        rule_id: str,
        name: str = "",
        conditions_serialized: Optional[str] = None,
        payment_methods: Sequence[str] = (),
        is_active: bool = True,
        **kwargs: Any,
    ):
        kwargs.setdefault("registry", cart_registry())
        super().__init__(rule_id, name, conditions_serialized, **kwargs)
        self.payment_methods = list(payment_methods)
        self.is_active = is_active

    def restricts(self, method_code: str, cart: Any) -> bool:
        """Whether this restriction removes ``method_code`` for ``cart``."""
        if not self.is_active or method_code not in self.payment_methods:
            return False
        return self.validate(cart)


def available_payment_methods(
    method_codes: Iterable[str],
    restrictions: Iterable[PaymentRestriction],
    cart: Any,
) -> List[str]:
    """The payment methods no restriction removes for ``cart``, in the order given."""
    restrictions = list(restrictions)
    return [
        code for code in method_codes
        if not any(restriction.restricts(code, cart) for restriction in restrictions)
    ]


class PriceRule(Rule):
    """Cart price rule granting a fixed discount when its conditions match."""

    deserialization_policy = DeserializationPolicy.NO_MATCH

    def __init__(
        self,
        rule_id: str,
        name: str = "",
        conditions_serialized: Optional[str] = None,
        discount_amount: Any = 0,
        **kwargs: Any,
    ):
        kwargs.setdefault("registry", cart_registry())
        super().__init__(rule_id, name, conditions_serialized, **kwargs)
        self.discount_amount = coerce_number(discount_amount, "discount")

    def discount_for(self, cart: Any) -> Decimal:
        """The discount ``cart`` earns from this rule; 0 when it does not qualify."""
        if self.validate(cart):
            return self.discount_amount
        return Decimal("0")


class CustomerSegment(Rule):
    """Customer segment whose members are the customers matching its conditions."""

    deserialization_policy = DeserializationPolicy.NO_MATCH

    def __init__(self, rule_id: str, name: str = "", conditions_serialized: Optional[str] = None, **kwargs: Any):
        kwargs.setdefault("registry", segment_registry())
        super().__init__(rule_id, name, conditions_serialized, **kwargs)

    def matching_customers(self, customers: Iterable[Any]) -> List[Any]:
        """Members of this segment among ``customers``."""
        return [customer for customer in customers if self.validate(customer)]
