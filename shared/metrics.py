"""
Shared metrics configuration for the rule conditions engine.
"""

import threading
from typing import Dict, Any, Optional

from prometheus_client import Counter, CollectorRegistry


class ConditionMetrics:
    """Counters for condition evaluation and its out-of-band diagnostics."""

    def __init__(self, service_name: str = "conditions", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up engine metrics."""
        self._metrics["rule_evaluations_total"] = Counter(
            "rule_evaluations_total",
            "Total rule evaluations",
            ["service", "result"],
            registry=self.registry
        )

        self._metrics["configuration_errors_total"] = Counter(
            "condition_configuration_errors_total",
            "Total misconfigured condition nodes encountered",
            ["service", "type_tag"],
            registry=self.registry
        )

        self._metrics["coercions_total"] = Counter(
            "condition_coercions_total",
            "Total attribute values coerced to a neutral default",
            ["service", "operator"],
            registry=self.registry
        )

        self._metrics["deserialization_errors_total"] = Counter(
            "rule_deserialization_errors_total",
            "Total persisted rule trees that failed to decode",
            ["service", "policy"],
            registry=self.registry
        )

    def record_evaluation(self, matched: bool):
        """Record a completed rule evaluation."""
        self._metrics["rule_evaluations_total"].labels(
            service=self.service_name,
            result="match" if matched else "no_match"
        ).inc()

    def record_configuration_error(self, type_tag: Optional[str]):
        """Record a misconfigured node."""
        self._metrics["configuration_errors_total"].labels(
            service=self.service_name,
            type_tag=type_tag or "unknown"
        ).inc()

    def record_coercion(self, operator: str):
        """Record a coerced attribute value."""
        self._metrics["coercions_total"].labels(
            service=self.service_name,
            operator=operator
        ).inc()

    def record_deserialization_error(self, policy: str):
        """Record a persisted tree that failed to decode."""
        self._metrics["deserialization_errors_total"].labels(
            service=self.service_name,
            policy=policy
        ).inc()

    def get_sample_value(self, name: str, labels: Dict[str, str]) -> float:
        """Read back a counter value; 0.0 when the series does not exist yet."""
        labels = dict(labels, service=self.service_name)
        value = self.registry.get_sample_value(name, labels)
        return value or 0.0


_metrics_collector: Optional[ConditionMetrics] = None
_collector_lock = threading.Lock()


def get_metrics_collector(service_name: str = "conditions") -> ConditionMetrics:
    """Get or create the process-wide metrics collector."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is None:
            _metrics_collector = ConditionMetrics(service_name)
        return _metrics_collector
