"""
Metric store abstraction.

Allows swapping the record source without changing engine code.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Mapping, Union

from modules.metrics.filters import MatchQuery
from modules.metrics.models import MetricRecord


class MetricStore(ABC):
    """
    Read-only source of MetricRecord values.

    Implementations return every record matching the query; I/O errors
    propagate to the caller unchanged.
    """

    @abstractmethod
    async def fetch(self, query: MatchQuery) -> List[MetricRecord]:
        """
        Fetch matching records.

        Args:
            query: Record predicate built by MatchQueryBuilder

        Returns:
            Matching records in a stable order
        """
        pass

    @abstractmethod
    async def distinct_features(self) -> List[str]:
        """
        Distinct feature keys across all records.

        Returns:
            Raw feature keys (prefix included)
        """
        pass


class InMemoryMetricStore(MetricStore):
    """
    In-memory metric store implementation.

    Simple, fast, holds whatever records it is given.
    Good for tests and embedding.
    """

    def __init__(self, records: Iterable[Union[MetricRecord, Mapping]] = ()):
        """
        Initialize in-memory store.

        Args:
            records: MetricRecord values or ingestion-shaped mappings
        """
        self._records: List[MetricRecord] = [
            record if isinstance(record, MetricRecord) else MetricRecord.from_mapping(record)
            for record in records
        ]

    async def fetch(self, query: MatchQuery) -> List[MetricRecord]:
        """Filter records in memory, ordered by day then user."""
        matched = [record for record in self._records if query.matches(record)]
        matched.sort(key=lambda r: (r.day, r.user_id))
        return matched

    async def distinct_features(self) -> List[str]:
        """Collect feature keys from memory."""
        features = {
            element.feature
            for record in self._records
            for element in record.totals_by_feature
            if element.feature
        }
        return sorted(features)

    def __len__(self) -> int:
        return len(self._records)
