"""
Shared utilities for the rule conditions engine.

This package aggregates common building blocks consumed by the engine and
its consumers:

- config: Engine configuration via pydantic-settings
- logging: Structured logging with rule correlation
- metrics: Prometheus counters for evaluations and diagnostics
- errors: Canonical error types and responses

Do not import from service_* packages into shared/.
"""
