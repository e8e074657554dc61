"""
Custom exceptions for the metrics module.
"""

from typing import Iterable


class MetricsException(Exception):
    """Base exception for metrics module."""
    pass


class MetricsConfigError(MetricsException):
    """Exception raised when the dimension table cannot be loaded."""
    pass


class MetricStoreError(MetricsException):
    """Exception raised by store adapters for misconfiguration."""
    pass


class UnknownDimensionError(MetricsException, ValueError):
    """Exception raised for a breakdown dimension with no config row."""

    def __init__(self, dimension: str, allowed: Iterable[str]):
        self.dimension = dimension
        self.allowed = sorted(allowed)
        super().__init__(
            f"Unknown breakdown dimension: {dimension!r}. "
            f"Allowed: {', '.join(self.allowed)}"
        )


class UnknownMetricKeyError(MetricsException, ValueError):
    """Exception raised for an unsupported metric key."""

    def __init__(self, metric_key: str, allowed: Iterable[str]):
        self.metric_key = metric_key
        self.allowed = sorted(allowed)
        super().__init__(
            f"Unknown metric key: {metric_key!r}. "
            f"Allowed: {', '.join(self.allowed)}"
        )
