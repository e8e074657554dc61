"""
Metric store adapters.

The engine reads records through MetricStore; pick the in-memory store for tests
and embedding, the SQLAlchemy store for the ``user_metrics`` table.
"""

from modules.metrics.storage.metric_store import InMemoryMetricStore, MetricStore
from modules.metrics.storage.sql_store import SQLAlchemyMetricStore

__all__ = [
    "MetricStore",
    "InMemoryMetricStore",
    "SQLAlchemyMetricStore",
]
