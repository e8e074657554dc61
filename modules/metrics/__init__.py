"""
Dimensional Metrics Module.

Aggregates per-user-per-day AI coding assistant usage records into dashboard
queries: summaries, daily trends, dimensional breakdowns, period comparisons,
volatility and multi-entity comparisons.

Quick Start:
    >>> from modules.metrics import MetricsService, MetricsFilter
    >>> from modules.metrics.storage import InMemoryMetricStore
    >>> service = MetricsService(InMemoryMetricStore(records))
    >>> breakdown = await service.get_breakdown("ide", MetricsFilter(segment="Backend"))
    >>> breakdown[0]["name"]
    'vscode'

Architecture:
    - Config-driven: breakdown dimensions are rows in config/metrics/dimensions.yaml
    - Two-stage pipeline: explode nested collections, then group (pure, no I/O)
    - Store-agnostic: MetricStore adapters for memory and SQLAlchemy

Components:
    - MetricsService: Aggregation engine (public API)
    - MetricsFilter / MatchQueryBuilder: Criteria and record predicate
    - DimensionRegistry: Dimension table
    - MetricStore: Record source
"""

from modules.metrics.config_loader import DimensionConfig, DimensionConfigLoader, DimensionRegistry
from modules.metrics.exceptions import (
    MetricsConfigError,
    MetricsException,
    MetricStoreError,
    UnknownDimensionError,
    UnknownMetricKeyError,
)
from modules.metrics.filters import CompareEntityConfig, MatchQuery, MatchQueryBuilder, MetricsFilter
from modules.metrics.metrics_service import MetricsService
from modules.metrics.models import (
    BreakdownDimension,
    BreakdownMetricKey,
    DimensionElement,
    MetricRecord,
    UsageCounters,
)

__all__ = [
    "MetricsService",
    "MetricsFilter",
    "CompareEntityConfig",
    "MatchQuery",
    "MatchQueryBuilder",
    "DimensionConfig",
    "DimensionConfigLoader",
    "DimensionRegistry",
    "BreakdownDimension",
    "BreakdownMetricKey",
    "DimensionElement",
    "MetricRecord",
    "UsageCounters",
    "MetricsException",
    "MetricsConfigError",
    "MetricStoreError",
    "UnknownDimensionError",
    "UnknownMetricKeyError",
]

__version__ = "1.0.0"
