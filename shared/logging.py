"""
Structured logging for the rule conditions engine.

Every event is rendered as one JSON line carrying the logger name, level,
an ISO timestamp and, while a rule is being evaluated, the ``rule_id`` and
``subject_id`` bound through :func:`bind_rule_context`.
"""

import sys
import logging
from contextvars import ContextVar
from typing import Any, Dict, List, Optional, TextIO

import structlog

rule_id_var: ContextVar[Optional[str]] = ContextVar('rule_id', default=None)
subject_id_var: ContextVar[Optional[str]] = ContextVar('subject_id', default=None)


def configure_logging(service_name: str, log_level: str = "info", stream: TextIO = sys.stdout) -> None:
    """Route structlog through stdlib logging and render JSON lines to ``stream``."""
    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=_processors(),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=stream, level=level)
    logging.getLogger(service_name).setLevel(level)


def _processors() -> List[Any]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        add_component,
        add_rule_context,
        structlog.processors.JSONRenderer(sort_keys=True),
    ]


def add_component(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Split ``conditions.codec`` into service ``conditions`` and component ``codec``."""
    service, _, component = event_dict.get("logger", "").partition(".")
    if component:
        event_dict["service"] = service
        event_dict["component"] = component
    return event_dict


def add_rule_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the rule and subject under evaluation."""
    rule_id = rule_id_var.get()
    if rule_id:
        event_dict["rule_id"] = rule_id

    subject_id = subject_id_var.get()
    if subject_id:
        event_dict["subject_id"] = subject_id

    return event_dict


def bind_rule_context(rule_id: Optional[str] = None, subject_id: Optional[str] = None):
    """Tag subsequent log events with the rule being evaluated."""
    if rule_id:
        rule_id_var.set(rule_id)
    if subject_id:
        subject_id_var.set(subject_id)


def clear_context():
    """Forget the bound rule and subject."""
    rule_id_var.set(None)
    subject_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
