"""
Shared error handling for the rule conditions engine.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error payload, used for logs and diagnostics."""

    code: str
    message: str
    node_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class EngineException(Exception):
    """Base exception for the conditions engine."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, node_id: Optional[str] = None):
        self.message = message
        self.details = details or {}
        self.node_id = node_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            node_id=self.node_id,
            details=self.details
        )


class ConfigurationError(EngineException):
    """A persisted node that cannot be built or evaluated as configured."""

    code = "CONFIGURATION_ERROR"


class DeserializationError(EngineException):
    """Persisted conditions text that is not valid JSON or XML."""

    code = "DESERIALIZATION_ERROR"


class CoercionWarning(EngineException):
    """
    An attribute value that could not be coerced for its operator.

    Never raised; collected as a diagnostic while the value is replaced by
    a neutral default.
    """

    code = "COERCION_WARNING"
