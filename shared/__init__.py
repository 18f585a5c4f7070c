"""
Shared utilities for the console data-sync layer.

This package aggregates common building blocks consumed by the sync layer:

- config: Settings via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses

Do not import from console_sync into shared/.
"""
