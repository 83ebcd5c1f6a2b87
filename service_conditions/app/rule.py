"""
Rule owner: persisted condition text plus its lazily decoded tree.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from shared.config import get_config
from shared.errors import CoercionWarning, DeserializationError, EngineException
from shared.logging import bind_rule_context, clear_context, get_logger
from shared.metrics import ConditionMetrics, get_metrics_collector
from .conditions.codec import TreeCodec
from .conditions.describe import describe
from .conditions.diagnostics import Diagnostics
from .conditions.evaluator import evaluate
from .conditions.models import ConditionNode
from .conditions.registry import NodeTypeRegistry, default_registry
from .conditions.subjects import subject_identity


class DeserializationPolicy(str, Enum):
    """What a rule answers when its stored conditions cannot be decoded."""
    MATCH = "match"
    NO_MATCH = "no_match"
    RAISE = "raise"


@dataclass
class EvaluationResult:
    """Result of evaluating one rule against one subject."""
    matched: bool
    diagnostics: List[EngineException] = field(default_factory=list)
    evaluation_time_ms: float = 0.0
    deserialization_failed: bool = False

    @property
    def errors(self) -> List[EngineException]:
        return [d for d in self.diagnostics if not isinstance(d, CoercionWarning)]

    @property
    def warnings(self) -> List[CoercionWarning]:
        return [d for d in self.diagnostics if isinstance(d, CoercionWarning)]


class Rule:
    """
    A rule-owning entity's conditions.

    The stored text is decoded on first use and the tree is cached until
    the text is replaced. Subclasses pick a ``deserialization_policy``;
    the base class raises so that no consumer inherits a silent default.
    """

    deserialization_policy = DeserializationPolicy.RAISE

    def __init__(
        self,
        rule_id: str,
        name: str = "",
        conditions_serialized: Optional[str] = None,
        registry: Optional[NodeTypeRegistry] = None,
        policy: Optional[DeserializationPolicy] = None,
        metrics: Optional[ConditionMetrics] = None,
    ):
        self.rule_id = rule_id
        self.name = name
        self.registry = registry if registry is not None else default_registry()
        self.codec = TreeCodec(self.registry)
        if metrics is None and get_config().enable_metrics:
            metrics = get_metrics_collector()
        self.metrics = metrics
        if policy is not None:
            self.deserialization_policy = policy
        self.logger = get_logger("conditions.rule")
        self._conditions_serialized = conditions_serialized
        self._conditions: Optional[ConditionNode] = None
        self._decode_error: Optional[DeserializationError] = None

    @property
    def conditions_serialized(self) -> Optional[str]:
        return self._conditions_serialized

    @conditions_serialized.setter
    def conditions_serialized(self, text: Optional[str]):
        self._conditions_serialized = text
        self.invalidate()

    def invalidate(self):
        """Drop the decoded tree; the next evaluation decodes the stored text again."""
        self._conditions = None
        self._decode_error = None

    def get_conditions(self) -> ConditionNode:
        """The decoded root. Raises DeserializationError when the stored text is malformed."""
        if self._conditions is not None:
            return self._conditions
        if self._decode_error is not None:
            raise self._decode_error

        try:
            self._conditions = self.codec.decode(self._conditions_serialized)
        except DeserializationError as e:
            e.details.setdefault("rule_id", self.rule_id)
            self._decode_error = e
            raise

        return self._conditions

    def set_conditions(self, root: ConditionNode):
        """Replace the tree and its stored text together."""
        self._conditions_serialized = self.codec.dumps(root)
        self._conditions = root
        self._decode_error = None

    def validate(self, subject: Any) -> bool:
        """Whether ``subject`` satisfies this rule."""
        return self.evaluate(subject).matched

    def evaluate(self, subject: Any) -> EvaluationResult:
        """Evaluate against ``subject`` and return the decision with its diagnostics."""
        start_time = time.time()
        diagnostics = Diagnostics(metrics=self.metrics)
        bind_rule_context(rule_id=self.rule_id, subject_id=subject_identity(subject))

        try:
            try:
                root = self.get_conditions()
            except DeserializationError as e:
                return self._on_deserialization_error(e, start_time)

            matched = evaluate(root, subject, diagnostics)

            if diagnostics.errors:
                self.logger.warning(
                    "Rule evaluated with configuration errors",
                    name=self.name,
                    errors=[error.message for error in diagnostics.errors]
                )

            if diagnostics.metrics:
                diagnostics.metrics.record_evaluation(matched)

            return EvaluationResult(
                matched=matched,
                diagnostics=list(diagnostics.entries),
                evaluation_time_ms=(time.time() - start_time) * 1000
            )
        finally:
            clear_context()

    def _on_deserialization_error(self, error: DeserializationError, start_time: float) -> EvaluationResult:
        policy = self.deserialization_policy
        self.logger.error(
            "Rule conditions could not be decoded",
            name=self.name,
            policy=policy.value,
            error=error.message
        )
        if self.metrics:
            self.metrics.record_deserialization_error(policy.value)

        if policy == DeserializationPolicy.RAISE:
            raise error

        return EvaluationResult(
            matched=policy == DeserializationPolicy.MATCH,
            diagnostics=[error],
            evaluation_time_ms=(time.time() - start_time) * 1000,
            deserialization_failed=True
        )

    def describe(self) -> str:
        """Plain-text rendering of the conditions."""
        try:
            return describe(self.get_conditions())
        except DeserializationError as e:
            return f"Invalid conditions: {e.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "conditions_serialized": self._conditions_serialized,
            "deserialization_policy": self.deserialization_policy.value,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rule_id={self.rule_id!r}, name={self.name!r})"

