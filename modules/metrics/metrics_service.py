"""
Dimensional Metrics Aggregation Engine.

Answers the dashboard queries over per-user-per-day usage records: summaries,
daily trends, dimensional breakdowns, period-over-period deltas, day-to-day
volatility and multi-entity comparisons.

Every operation is a pure function of (filters, store contents). Store errors
propagate unchanged; an empty match yields a zeroed summary or an empty list.
"""

import asyncio
import statistics
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from modules.metrics.config_loader import DimensionConfig, DimensionRegistry
from modules.metrics.exceptions import UnknownMetricKeyError
from modules.metrics.filters import (
    CompareEntityConfig,
    MatchQuery,
    MatchQueryBuilder,
    MetricsFilter,
    day_instant,
    to_instant,
)
from modules.metrics.models import (
    COLLECTIONS,
    COUNTER_NAMES,
    BreakdownDimension,
    BreakdownMetricKey,
    MetricRecord,
)
from modules.metrics.pipeline import (
    GroupTotals,
    day_key,
    explode,
    group_records,
    group_rows,
    safe_divide,
)
from modules.metrics.storage import MetricStore
from shared.utils.config import settings
from shared.utils.logger import log_function_call, setup_logger

logger = setup_logger(__name__)

DimensionArg = Union[str, BreakdownDimension]
MetricKeyArg = Union[str, BreakdownMetricKey]

# Daily trends explode this dimension's collection when model/language is filtered
NESTED_TREND_DIMENSION = BreakdownDimension.LANGUAGE_MODEL

BREAKDOWN_METRIC_KEYS = frozenset(key.value for key in BreakdownMetricKey)

# Breakdown metric key -> summary field
SUMMARY_METRIC_FIELDS: Dict[str, str] = {
    **{name: f"total_{name}" for name in COUNTER_NAMES},
    BreakdownMetricKey.ACCEPTANCE_RATE.value: "acceptance_rate",
}

SUMMARY_NUMERIC_FIELDS = frozenset(
    [f"total_{name}" for name in COUNTER_NAMES]
    + ["active_users_count", "active_days", "acceptance_rate"]
)


def empty_summary() -> Dict[str, Any]:
    """Summary returned when no record matches."""
    summary: Dict[str, Any] = {f"total_{name}": 0 for name in COUNTER_NAMES}
    summary.update({
        "active_users_count": 0,
        "active_days": 0,
        "uses_agent": False,
        "uses_chat": False,
        "acceptance_rate": 0,
    })
    return summary


def change_pct(current: float, previous: float) -> float:
    """Relative change; 1 when growing from zero, 0 when both are zero."""
    if previous > 0:
        return (current - previous) / previous
    if current > 0:
        return 1
    return 0


def comparison_gap(value_a: float, value_b: float) -> float:
    """Percentage gap between the larger and smaller value."""
    high, low = max(value_a, value_b), min(value_a, value_b)
    if low > 0:
        return (high - low) / low * 100
    if high > 0:
        return 100
    return 0


class MetricsService:
    """
    Aggregation engine over a MetricStore.

    Features:
    - Config-driven breakdowns (dimension table in YAML)
    - Explode-then-group pipeline kept separate from the store
    - Concurrent fan-out for comparisons and multi-series trends

    Example:
        >>> service = MetricsService(InMemoryMetricStore(records))
        >>> summary = await service.get_summary(MetricsFilter(segment="Backend"))
        >>> summary["acceptance_rate"]
        0.42
    """

    def __init__(
        self,
        store: MetricStore,
        registry: Optional[DimensionRegistry] = None,
        query_builder: Optional[MatchQueryBuilder] = None,
        segment_prefix: Optional[str] = None
    ):
        """
        Initialize metrics service.

        Args:
            store: Record source
            registry: Dimension table (loaded from YAML when omitted)
            query_builder: Filter -> predicate builder
            segment_prefix: Prefix stripped from feature keys by get_segments
        """
        self.store = store
        self.registry = registry or DimensionRegistry.load()
        self.query_builder = query_builder or MatchQueryBuilder()
        self.segment_prefix = settings.SEGMENT_PREFIX if segment_prefix is None else segment_prefix

    # ==========================================================================
    # INTERNAL HELPERS
    # ==========================================================================

    async def _fetch(
        self,
        filters: Optional[MetricsFilter],
        nested_fields: Sequence[str] = ()
    ) -> Tuple[MatchQuery, List[MetricRecord]]:
        query = self.query_builder.build(filters, nested_fields=nested_fields)
        records = await self.store.fetch(query)
        return query, records

    def _dimension(self, dimension: DimensionArg) -> DimensionConfig:
        return self.registry.get(dimension)

    @staticmethod
    def _metric_key(metric_key: MetricKeyArg) -> str:
        name = metric_key.value if isinstance(metric_key, BreakdownMetricKey) else metric_key
        if name not in BREAKDOWN_METRIC_KEYS:
            raise UnknownMetricKeyError(str(name), BREAKDOWN_METRIC_KEYS)
        return name

    @staticmethod
    def _summary_field(metric_key: str) -> str:
        if metric_key in SUMMARY_NUMERIC_FIELDS:
            return metric_key
        if metric_key in SUMMARY_METRIC_FIELDS:
            return SUMMARY_METRIC_FIELDS[metric_key]
        raise UnknownMetricKeyError(
            metric_key, SUMMARY_NUMERIC_FIELDS | set(SUMMARY_METRIC_FIELDS)
        )

    @staticmethod
    def _trend_row(day: date, totals: GroupTotals) -> Dict[str, Any]:
        return {
            "date": day_key(day),
            "active_users": totals.active_users,
            **totals.counters.to_dict(),
            "acceptance_rate": totals.counters.acceptance_rate,
        }

    # ==========================================================================
    # SUMMARY & TRENDS
    # ==========================================================================

    async def get_summary(self, filters: Optional[MetricsFilter] = None) -> Dict[str, Any]:
        """
        Point-in-time KPIs over all matching records.

        Returns:
            Flat summary; all counters zero and flags false when nothing matches
        """
        log_function_call(logger, "get_summary", filters=filters)
        _, records = await self._fetch(filters)

        if not records:
            return empty_summary()

        totals = group_records(records, lambda record: None)[None]
        summary: Dict[str, Any] = {
            f"total_{name}": value for name, value in totals.counters.to_dict().items()
        }
        summary.update({
            "active_users_count": totals.active_users,
            "active_days": totals.rows,
            "uses_agent": totals.uses_agent,
            "uses_chat": totals.uses_chat,
            "acceptance_rate": totals.counters.acceptance_rate,
        })
        return summary

    async def get_daily_trends(self, filters: Optional[MetricsFilter] = None) -> List[Dict[str, Any]]:
        """
        Daily time series, ascending by day.

        With a model or language criterion the language x model collection is
        exploded and its element counters are summed instead of the record totals.
        """
        log_function_call(logger, "get_daily_trends", filters=filters)
        filters = filters or MetricsFilter()

        if filters.has_nested_criteria():
            config = self._dimension(NESTED_TREND_DIMENSION)
            query, records = await self._fetch(filters, nested_fields=config.filter_fields)
            rows = explode(records, config.collection, query.element_matches)
            groups = group_rows(rows, lambda row: row.record.day)
        else:
            _, records = await self._fetch(filters)
            groups = group_records(records, lambda record: record.day)

        return [self._trend_row(day, groups[day]) for day in sorted(groups)]

    # ==========================================================================
    # BREAKDOWNS
    # ==========================================================================

    async def get_breakdown(
        self,
        dimension: DimensionArg,
        filters: Optional[MetricsFilter] = None
    ) -> List[Dict[str, Any]]:
        """
        Aggregate rows for one dimension, sorted descending by interactions.

        Usage rates are shares of parent records, so groups drawn from the same
        records report the same rate.
        """
        log_function_call(logger, "get_breakdown", dimension=dimension, filters=filters)
        config = self._dimension(dimension)
        query, records = await self._fetch(filters, nested_fields=config.filter_fields)

        rows = explode(records, config.collection, query.element_matches)
        groups = group_rows(rows, lambda row: config.group_key(row.element))

        results = []
        for key, totals in groups.items():
            counters = totals.counters
            results.append({
                "name": config.display_name(key),
                **config.identity(key),
                **counters.to_dict(),
                "active_users_count": totals.active_users,
                "interactions_per_user": safe_divide(counters.interactions, totals.active_users),
                "loc_added_per_user": safe_divide(counters.loc_added, totals.active_users),
                "agent_usage_rate": totals.agent_usage_rate,
                "chat_usage_rate": totals.chat_usage_rate,
                "acceptance_rate": counters.acceptance_rate,
            })

        results.sort(key=lambda row: row["interactions"], reverse=True)
        return results

    async def get_breakdown_comparison(
        self,
        dimension: DimensionArg,
        metric_key: MetricKeyArg,
        current_filters: Optional[MetricsFilter],
        previous_filters: Optional[MetricsFilter]
    ) -> List[Dict[str, Any]]:
        """
        Period-over-period delta per breakdown row.

        Left join on display name: rows missing from the previous set compare
        against 0, rows only in the previous set are dropped.
        """
        log_function_call(
            logger, "get_breakdown_comparison",
            dimension=dimension, metric_key=metric_key,
            current=current_filters, previous=previous_filters,
        )
        config = self._dimension(dimension)
        metric = self._metric_key(metric_key)

        current, previous = await asyncio.gather(
            self.get_breakdown(config.dimension, current_filters),
            self.get_breakdown(config.dimension, previous_filters),
        )
        previous_by_name = {row["name"]: row[metric] for row in previous}

        results = []
        for row in current:
            current_value = row[metric]
            previous_value = previous_by_name.get(row["name"], 0)
            results.append({
                "name": row["name"],
                **{name: row.get(name) for name in config.identity_fields},
                "metric": metric,
                "current_value": current_value,
                "previous_value": previous_value,
                "delta": current_value - previous_value,
                "delta_pct": change_pct(current_value, previous_value),
            })
        return results

    async def get_breakdown_stability(
        self,
        dimension: DimensionArg,
        metric_key: MetricKeyArg,
        filters: Optional[MetricsFilter] = None
    ) -> List[Dict[str, Any]]:
        """
        Day-to-day volatility per breakdown row, most stable first.

        One value per (group, day) is computed first (rates included), then the
        population standard deviation and coefficient of variation across days.
        """
        log_function_call(
            logger, "get_breakdown_stability",
            dimension=dimension, metric_key=metric_key, filters=filters,
        )
        config = self._dimension(dimension)
        metric = self._metric_key(metric_key)
        query, records = await self._fetch(filters, nested_fields=config.filter_fields)

        rows = explode(records, config.collection, query.element_matches)
        daily = group_rows(rows, lambda row: (config.group_key(row.element), row.record.day))

        series: Dict[Tuple, List[float]] = {}
        for (key, _day), totals in daily.items():
            series.setdefault(key, []).append(totals.counters.value_of(metric))

        results = []
        for key, values in series.items():
            avg_value = statistics.fmean(values)
            stddev_value = statistics.pstdev(values)
            results.append({
                "name": config.display_name(key),
                **config.identity(key),
                "metric": metric,
                "avg_value": avg_value,
                "stddev_value": stddev_value,
                "coefficient_variation": safe_divide(stddev_value, avg_value),
                "days": len(values),
            })

        results.sort(key=lambda row: row["coefficient_variation"])
        return results

    # ==========================================================================
    # USERS
    # ==========================================================================

    async def get_users_list(self, filters: Optional[MetricsFilter] = None) -> List[Dict[str, Any]]:
        """
        Per-user totals, sorted descending by interactions.

        Nested collections are concatenated across the user's matching days
        (not aggregated) for ad-hoc analysis downstream. ``ide`` is the first IDE
        element of the user's latest record that has one; on multi-IDE days the
        pick follows element order and is not a frequency ranking.
        """
        log_function_call(logger, "get_users_list", filters=filters)
        _, records = await self._fetch(filters)

        by_user: Dict[str, List[MetricRecord]] = {}
        for record in records:
            by_user.setdefault(record.user_login, []).append(record)
        groups = group_records(records, lambda record: record.user_login)

        results = []
        for login, totals in groups.items():
            user_records = by_user[login]
            results.append({
                "user_login": login,
                "name": self._user_name(user_records),
                **totals.counters.to_dict(),
                "ide": self._representative_ide(user_records),
                "uses_agent": totals.uses_agent,
                "uses_chat": totals.uses_chat,
                **{
                    name: [
                        element.to_dict()
                        for record in user_records
                        for element in record.collection(name)
                    ]
                    for name in COLLECTIONS
                },
                "acceptance_rate": totals.counters.acceptance_rate,
            })

        results.sort(key=lambda row: row["interactions"], reverse=True)
        return results

    @staticmethod
    def _user_name(records: Sequence[MetricRecord]) -> str:
        for record in records:
            if record.user_name:
                return record.user_name
        return records[0].user_login

    @staticmethod
    def _representative_ide(records: Sequence[MetricRecord]) -> Optional[str]:
        for record in sorted(records, key=lambda r: r.day, reverse=True):
            for element in record.totals_by_ide:
                if element.ide:
                    return element.ide
        return None

    async def get_user_change(
        self,
        metric_key: MetricKeyArg,
        current_filters: Optional[MetricsFilter],
        previous_filters: Optional[MetricsFilter]
    ) -> List[Dict[str, Any]]:
        """Period-over-period delta per user, left-joined on login."""
        log_function_call(
            logger, "get_user_change", metric_key=metric_key,
            current=current_filters, previous=previous_filters,
        )
        metric = self._metric_key(metric_key)

        current, previous = await asyncio.gather(
            self.get_users_list(current_filters),
            self.get_users_list(previous_filters),
        )
        previous_by_login = {row["user_login"]: row[metric] for row in previous}

        results = []
        for row in current:
            current_value = row[metric]
            previous_value = previous_by_login.get(row["user_login"], 0)
            results.append({
                "user_login": row["user_login"],
                "name": row["name"],
                "metric": metric,
                "current_value": current_value,
                "previous_value": previous_value,
                "delta": current_value - previous_value,
                "delta_pct": change_pct(current_value, previous_value),
            })
        return results

    async def get_users_first_active(
        self,
        filters: Optional[MetricsFilter] = None,
        first_active_start: Any = None,
        first_active_end: Any = None
    ) -> List[Dict[str, Any]]:
        """
        Earliest matching day per user.

        Args:
            filters: Selects the source records
            first_active_start: Optional inclusive lower bound on the first day
            first_active_end: Optional inclusive upper bound on the first day

        Returns:
            Rows ordered by first day, then login
        """
        log_function_call(
            logger, "get_users_first_active", filters=filters,
            first_active_start=first_active_start, first_active_end=first_active_end,
        )
        window_start = to_instant(first_active_start)
        window_end = to_instant(first_active_end)
        _, records = await self._fetch(filters)

        first_seen: Dict[str, MetricRecord] = {}
        names: Dict[str, str] = {}
        for record in records:
            current = first_seen.get(record.user_login)
            if current is None or record.day < current.day:
                first_seen[record.user_login] = record
            if record.user_name and record.user_login not in names:
                names[record.user_login] = record.user_name

        results = []
        for login, record in first_seen.items():
            instant = day_instant(record.day)
            if window_start is not None and instant < window_start:
                continue
            if window_end is not None and instant > window_end:
                continue
            results.append({
                "user_login": login,
                "name": names.get(login, login),
                "first_day": day_key(record.day),
            })

        results.sort(key=lambda row: (row["first_day"], row["user_login"]))
        return results

    async def get_users_usage_rates(self, filters: Optional[MetricsFilter] = None) -> Dict[str, Any]:
        """Share of users that used agent mode, chat, or both on any matching day."""
        log_function_call(logger, "get_users_usage_rates", filters=filters)
        _, records = await self._fetch(filters)

        # Stage one: one row per user, flags OR-ed across days
        per_user = group_records(records, lambda record: record.user_id)

        # Stage two: fractions over users
        total_users = len(per_user)
        agent_users = sum(1 for totals in per_user.values() if totals.uses_agent)
        chat_users = sum(1 for totals in per_user.values() if totals.uses_chat)
        both_users = sum(
            1 for totals in per_user.values() if totals.uses_agent and totals.uses_chat
        )

        return {
            "total_users": total_users,
            "agent_user_rate": safe_divide(agent_users, total_users),
            "chat_user_rate": safe_divide(chat_users, total_users),
            "both_user_rate": safe_divide(both_users, total_users),
        }

    # ==========================================================================
    # MULTI-ENTITY COMPARISONS
    # ==========================================================================

    async def get_multi_series_trends(
        self,
        entities: Sequence[CompareEntityConfig],
        metric_key: MetricKeyArg,
        filters: Optional[MetricsFilter] = None
    ) -> List[Dict[str, Any]]:
        """
        One daily series per entity, outer-merged by day.

        A day without data for an entity omits that entity's key in the row;
        values are never zero-filled.
        """
        log_function_call(
            logger, "get_multi_series_trends",
            entities=[entity.label for entity in entities], metric_key=metric_key, filters=filters,
        )
        metric = self._metric_key(metric_key)
        base = filters or MetricsFilter()

        series = await asyncio.gather(*(
            self.get_daily_trends(base.merge_entity(entity))
            for entity in entities
        ))

        merged: Dict[str, Dict[str, Any]] = {}
        for entity, rows in zip(entities, series):
            for row in rows:
                merged.setdefault(row["date"], {"date": row["date"]})[entity.label] = row[metric]

        return [merged[day] for day in sorted(merged)]

    async def get_comparison_summary(
        self,
        entity_a: CompareEntityConfig,
        entity_b: CompareEntityConfig,
        metric_key: str,
        filters: Optional[MetricsFilter] = None
    ) -> Dict[str, Any]:
        """
        Head-to-head summary of two entities on one metric.

        Entity A counts as higher on an exact tie (unless both are zero); entity B
        only when strictly greater.
        """
        log_function_call(
            logger, "get_comparison_summary",
            entity_a=entity_a.label, entity_b=entity_b.label, metric_key=metric_key, filters=filters,
        )
        metric_name = metric_key.value if isinstance(metric_key, BreakdownMetricKey) else metric_key
        summary_field = self._summary_field(metric_name)
        base = filters or MetricsFilter()

        summary_a, summary_b = await asyncio.gather(
            self.get_summary(base.merge_entity(entity_a)),
            self.get_summary(base.merge_entity(entity_b)),
        )
        value_a = summary_a.get(summary_field) or 0
        value_b = summary_b.get(summary_field) or 0

        return {
            "metric": metric_name,
            "entityA": {
                "label": entity_a.label,
                "value": value_a,
                "isHigher": value_a >= value_b and value_a != 0,
            },
            "entityB": {
                "label": entity_b.label,
                "value": value_b,
                "isHigher": value_b > value_a,
            },
            "gap": comparison_gap(value_a, value_b),
        }

    # ==========================================================================
    # DISCOVERY
    # ==========================================================================

    async def get_segments(self) -> List[str]:
        """Distinct segment (team) names with the feature prefix stripped."""
        features = await self.store.distinct_features()
        prefix = self.segment_prefix
        segments = {
            feature[len(prefix):] if prefix and feature.startswith(prefix) else feature
            for feature in features
        }
        return sorted(segments)
