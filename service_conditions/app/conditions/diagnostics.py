"""
Out-of-band diagnostics raised while building or evaluating a tree.
"""

from typing import Any, List, Optional

from shared.config import get_config
from shared.errors import CoercionWarning, ConfigurationError, EngineException
from shared.logging import get_logger
from shared.metrics import ConditionMetrics, get_metrics_collector


class Diagnostics:
    """Collects the errors and warnings of one evaluation without raising them."""

    def __init__(self, metrics: Optional[ConditionMetrics] = None, log_coercions: Optional[bool] = None):
        config = get_config()
        self.logger = get_logger("conditions.diagnostics")
        self.entries: List[EngineException] = []
        if metrics is None and config.enable_metrics:
            metrics = get_metrics_collector()
        self.metrics = metrics
        self.log_coercions = config.log_coercions if log_coercions is None else log_coercions

    @property
    def errors(self) -> List[ConfigurationError]:
        return [e for e in self.entries if isinstance(e, ConfigurationError)]

    @property
    def warnings(self) -> List[CoercionWarning]:
        return [e for e in self.entries if isinstance(e, CoercionWarning)]

    def configuration_error(self, error: ConfigurationError, type_tag: Optional[str] = None) -> None:
        """Report a node that cannot be evaluated as configured."""
        self.entries.append(error)
        self.logger.error(
            "Misconfigured condition node",
            node_id=error.node_id,
            type_tag=type_tag,
            error=error.message,
            details=error.details
        )
        if self.metrics:
            self.metrics.record_configuration_error(type_tag)

    def coercion(self, operator: str, value: Any, node_id: Optional[str] = None) -> None:
        """Report a value replaced by a neutral default."""
        warning = CoercionWarning(
            f"Value {value!r} is not numeric, compared as 0",
            details={"operator": operator, "value": repr(value)},
            node_id=node_id
        )
        self.entries.append(warning)
        log = self.logger.warning if self.log_coercions else self.logger.debug
        log("Coerced condition value", node_id=node_id, operator=operator, value=repr(value))
        if self.metrics:
            self.metrics.record_coercion(operator)

    def extend(self, other: "Diagnostics") -> None:
        self.entries.extend(other.entries)

    def __len__(self) -> int:
        return len(self.entries)
