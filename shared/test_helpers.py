"""
Test helper functions and factory methods for the rule conditions engine.
"""

from typing import Dict, Any, List, Optional

from prometheus_client import CollectorRegistry

from shared.metrics import ConditionMetrics


def create_isolated_metrics(service_name: str = "conditions-test") -> ConditionMetrics:
    """Metrics collector on its own registry, so counts start from zero."""
    return ConditionMetrics(service_name, registry=CollectorRegistry())


def leaf(attribute: str, operator: str, value: Any, type_tag: str = "attribute") -> Dict[str, Any]:
    """Portable leaf condition."""
    return {"type": type_tag, "attribute": attribute, "operator": operator, "value": value}


def combine(
    conditions: Optional[List[Dict[str, Any]]] = None,
    aggregator: str = "all",
    value: Any = True,
    type_tag: str = "combine",
) -> Dict[str, Any]:
    """Portable combination."""
    return {
        "type": type_tag,
        "aggregator": aggregator,
        "value": value,
        "conditions": conditions or [],
    }


def found(
    conditions: List[Dict[str, Any]],
    value: Any = True,
    aggregator: str = "all",
    type_tag: str = "found",
) -> Dict[str, Any]:
    """Portable FOUND / NOT FOUND quantifier."""
    return {
        "type": type_tag,
        "attribute": None,
        "operator": None,
        "aggregator": aggregator,
        "value": value,
        "conditions": conditions,
    }


def subselect(
    attribute: str,
    operator: str,
    value: Any,
    conditions: List[Dict[str, Any]],
    aggregator: str = "all",
    type_tag: str = "subselect",
) -> Dict[str, Any]:
    """Portable subselection total."""
    return {
        "type": type_tag,
        "attribute": attribute,
        "operator": operator,
        "value": value,
        "aggregator": aggregator,
        "conditions": conditions,
    }


class SampleDataFactory:
    """Factory for creating test subjects."""

    @staticmethod
    def create_cart(items: Optional[List[Dict[str, Any]]] = None, **attributes: Any) -> Dict[str, Any]:
        cart = {
            "id": "quote-1",
            "base_subtotal": 120.0,
            "total_qty": 4,
            "country_id": "US",
            "payment_method": "checkmo",
            "customer_group_id": 1,
        }
        cart.update(attributes)
        cart["items"] = items if items is not None else SampleDataFactory.create_cart_items()
        return cart

    @staticmethod
    def create_cart_items() -> List[Dict[str, Any]]:
        return [
            {"sku": "TSHIRT-RED", "color": "red", "category_ids": [3, 7], "qty": 3, "base_row_total": 45.0},
            {"sku": "JEANS-BLUE", "color": "blue", "category_ids": [4], "qty": 10, "base_row_total": 60.0},
            {"sku": "CAP-RED", "color": "red", "category_ids": [3, 9], "qty": 2, "base_row_total": 15.0},
        ]

    @staticmethod
    def create_customers() -> List[Dict[str, Any]]:
        return [
            {
                "id": 1,
                "email": "ada@example.com",
                "group_id": 1,
                "lifetime_sales": "1250.00",
                "items": [
                    {"increment_id": "100000001", "status": "complete", "grand_total": 800},
                    {"increment_id": "100000002", "status": "complete", "grand_total": 450},
                ],
            },
            {
                "id": 2,
                "email": "grace@example.org",
                "group_id": 2,
                "lifetime_sales": "90.00",
                "items": [
                    {"increment_id": "100000003", "status": "canceled", "grand_total": 90},
                ],
            },
            {
                "id": 3,
                "email": "linus@example.com",
                "group_id": 1,
                "lifetime_sales": None,
                "items": [],
            },
        ]
