"""
Explode-then-group aggregation pipeline.

Pure functions over in-memory MetricRecord sequences. Stage one flattens a nested
sub-total collection into rows tagged with their parent record; stage two groups
rows (or whole records) and folds their counters. Nothing here touches a store.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Set, Tuple, TypeVar

from modules.metrics.models import DimensionElement, MetricRecord, UsageCounters

K = TypeVar("K", bound=Hashable)

ElementPredicate = Callable[[DimensionElement], bool]


@dataclass(frozen=True)
class ExplodedRow:
    """One nested element paired with the record it came from."""
    record: MetricRecord
    element: DimensionElement

    @property
    def counters(self) -> UsageCounters:
        return self.element.counters


@dataclass
class GroupTotals:
    """Running totals for one group of records or exploded rows."""
    counters: UsageCounters = field(default_factory=UsageCounters)
    user_ids: Set[int] = field(default_factory=set)
    parent_keys: Set[Tuple[int, date]] = field(default_factory=set)
    agent_parents: Set[Tuple[int, date]] = field(default_factory=set)
    chat_parents: Set[Tuple[int, date]] = field(default_factory=set)
    days: Set[date] = field(default_factory=set)
    rows: int = 0

    def add(self, record: MetricRecord, counters: UsageCounters) -> None:
        parent_key = (record.user_id, record.day)
        self.counters = self.counters + counters
        self.user_ids.add(record.user_id)
        self.parent_keys.add(parent_key)
        if record.used_agent:
            self.agent_parents.add(parent_key)
        if record.used_chat:
            self.chat_parents.add(parent_key)
        self.days.add(record.day)
        self.rows += 1

    @property
    def active_users(self) -> int:
        return len(self.user_ids)

    @property
    def uses_agent(self) -> bool:
        return bool(self.agent_parents)

    @property
    def uses_chat(self) -> bool:
        return bool(self.chat_parents)

    @property
    def agent_usage_rate(self) -> float:
        """Share of parent records with the agent flag set."""
        return safe_divide(len(self.agent_parents), len(self.parent_keys))

    @property
    def chat_usage_rate(self) -> float:
        """Share of parent records with the chat flag set."""
        return safe_divide(len(self.chat_parents), len(self.parent_keys))


class GroupedTotals(Dict[K, GroupTotals]):
    """Group key -> totals, in first-seen key order."""

    def totals_for(self, key: K) -> GroupTotals:
        if key not in self:
            self[key] = GroupTotals()
        return self[key]


def safe_divide(numerator: float, denominator: float) -> float:
    if denominator:
        return numerator / denominator
    return 0


def explode(
    records: Iterable[MetricRecord],
    collection: str,
    element_predicate: Optional[ElementPredicate] = None
) -> List[ExplodedRow]:
    """
    Flatten a nested collection into rows tagged with their parent record.

    Args:
        records: Matching records
        collection: Sub-collection attribute name (e.g. ``totals_by_ide``)
        element_predicate: Optional filter applied to each element

    Returns:
        Exploded rows in record order, then element order
    """
    rows = []
    for record in records:
        for element in record.collection(collection):
            if element_predicate is None or element_predicate(element):
                rows.append(ExplodedRow(record=record, element=element))
    return rows


def group_records(
    records: Iterable[MetricRecord],
    key_fn: Callable[[MetricRecord], K]
) -> GroupedTotals[K]:
    """Group whole records, folding their top-level counters."""
    groups: GroupedTotals[K] = GroupedTotals()
    for record in records:
        groups.totals_for(key_fn(record)).add(record, record.counters)
    return groups


def group_rows(
    rows: Iterable[ExplodedRow],
    key_fn: Callable[[ExplodedRow], K]
) -> GroupedTotals[K]:
    """Group exploded rows, folding the element counters."""
    groups: GroupedTotals[K] = GroupedTotals()
    for row in rows:
        groups.totals_for(key_fn(row)).add(row.record, row.counters)
    return groups


def day_key(day: date) -> str:
    return day.isoformat()
