"""
Tests for the metrics aggregation engine.
"""
import pytest

from modules.metrics import (
    BreakdownDimension,
    BreakdownMetricKey,
    CompareEntityConfig,
    MetricsFilter,
    MetricsService,
    UnknownDimensionError,
    UnknownMetricKeyError,
)
from modules.metrics.metrics_service import change_pct, comparison_gap, empty_summary
from modules.metrics.storage import InMemoryMetricStore, MetricStore

from conftest import DAY_1, DAY_2, element, make_record

DAY_1_ONLY = MetricsFilter(start_date="2025-01-01", end_date="2025-01-01")
DAY_2_ONLY = MetricsFilter(start_date="2025-01-02", end_date="2025-01-02")


class FailingStore(MetricStore):
    async def fetch(self, query):
        raise ConnectionError("metric store unavailable")

    async def distinct_features(self):
        raise ConnectionError("metric store unavailable")


# ==============================================================================
# SUMMARY & TRENDS
# ==============================================================================

async def test_summary_totals(metrics_service):
    summary = await metrics_service.get_summary()

    assert summary["total_interactions"] == 35
    assert summary["total_suggestions"] == 30
    assert summary["total_acceptances"] == 10
    assert summary["total_loc_added"] == 30
    assert summary["active_users_count"] == 2
    assert summary["active_days"] == 3
    assert summary["uses_agent"] is True
    assert summary["uses_chat"] is True
    assert summary["acceptance_rate"] == pytest.approx(10 / 30)


async def test_summary_of_no_match_is_zeroed(metrics_service):
    summary = await metrics_service.get_summary(MetricsFilter(segment="Nobody"))
    assert summary == empty_summary()


async def test_summary_on_empty_store():
    service = MetricsService(InMemoryMetricStore())
    summary = await service.get_summary()

    assert summary["total_interactions"] == 0
    assert summary["acceptance_rate"] == 0
    assert summary["uses_agent"] is False


async def test_summary_segment_filter(metrics_service):
    summary = await metrics_service.get_summary(MetricsFilter(segment="backend"))

    assert summary["total_interactions"] == 30
    assert summary["active_users_count"] == 1
    assert summary["active_days"] == 2


async def test_daily_trends_ascending(metrics_service):
    trends = await metrics_service.get_daily_trends()

    assert [row["date"] for row in trends] == ["2025-01-01", "2025-01-02"]
    assert trends[1]["active_users"] == 2
    assert trends[1]["interactions"] == 25
    assert trends[1]["acceptance_rate"] == 0.5


async def test_daily_trends_use_nested_counters_for_model(metrics_service):
    gpt = await metrics_service.get_daily_trends(MetricsFilter(model="gpt-4o"))
    assert [(row["date"], row["interactions"]) for row in gpt] == [
        ("2025-01-01", 6),
        ("2025-01-02", 25),
    ]

    claude = await metrics_service.get_daily_trends(MetricsFilter(model="claude"))
    assert [(row["date"], row["interactions"]) for row in claude] == [("2025-01-01", 4)]


async def test_daily_trends_empty(metrics_service):
    assert await metrics_service.get_daily_trends(MetricsFilter(user_login="nobody")) == []


# ==============================================================================
# BREAKDOWNS
# ==============================================================================

async def test_breakdown_by_ide(metrics_service):
    rows = await metrics_service.get_breakdown("ide")

    assert [row["name"] for row in rows] == ["jetbrains", "vscode"]
    vscode = rows[1]
    assert vscode["ide"] == "vscode"
    assert vscode["interactions"] == 15
    assert vscode["active_users_count"] == 2
    assert vscode["interactions_per_user"] == 7.5
    assert vscode["agent_usage_rate"] == 0.5
    assert vscode["chat_usage_rate"] == 0
    assert rows[0]["chat_usage_rate"] == 1


async def test_breakdown_sorted_descending(metrics_service):
    for dimension in BreakdownDimension:
        rows = await metrics_service.get_breakdown(dimension)
        interactions = [row["interactions"] for row in rows]
        assert interactions == sorted(interactions, reverse=True)


async def test_breakdown_ties_keep_first_seen_order():
    store = InMemoryMetricStore([
        make_record(1, "alice", DAY_1, interactions=14, ides=[
            element(5, ide="zed"),
            element(9, ide="atom"),
        ]),
        make_record(2, "bob", DAY_1, interactions=5, ides=[element(5, ide="vim")]),
        make_record(3, "carol", DAY_2, interactions=5, ides=[element(5, ide="emacs")]),
    ])
    rows = await MetricsService(store).get_breakdown("ide")

    assert [row["name"] for row in rows] == ["atom", "zed", "vim", "emacs"]


async def test_breakdown_two_field_names(metrics_service):
    rows = await metrics_service.get_breakdown(BreakdownDimension.LANGUAGE_MODEL)

    assert [row["name"] for row in rows] == ["python | gpt-4o", "typescript | gpt-4o", "go | claude"]
    assert rows[0]["interactions"] == 26
    assert rows[0]["language"] == "python"
    assert rows[0]["model"] == "gpt-4o"


async def test_breakdown_model_filter_applies_to_elements(metrics_service):
    rows = await metrics_service.get_breakdown("language_model", MetricsFilter(model="gpt-4o"))
    assert "go | claude" not in [row["name"] for row in rows]


async def test_breakdown_unknown_dimension(metrics_service):
    with pytest.raises(UnknownDimensionError):
        await metrics_service.get_breakdown("os")


async def test_breakdown_comparison_with_itself_is_flat(metrics_service):
    rows = await metrics_service.get_breakdown_comparison("feature", "interactions", None, None)

    assert rows
    assert all(row["delta"] == 0 for row in rows)
    assert all(row["delta_pct"] == 0 for row in rows)


async def test_breakdown_comparison_left_join(metrics_service):
    rows = await metrics_service.get_breakdown_comparison(
        "ide", BreakdownMetricKey.INTERACTIONS, DAY_2_ONLY, DAY_1_ONLY
    )
    by_name = {row["name"]: row for row in rows}

    assert by_name["jetbrains"]["previous_value"] == 0
    assert by_name["jetbrains"]["delta_pct"] == 1
    assert by_name["vscode"]["current_value"] == 5
    assert by_name["vscode"]["delta"] == -5
    assert by_name["vscode"]["delta_pct"] == -0.5


async def test_breakdown_comparison_unknown_metric(metrics_service):
    with pytest.raises(UnknownMetricKeyError):
        await metrics_service.get_breakdown_comparison("ide", "lines", None, None)


async def test_breakdown_stability(metrics_service):
    rows = await metrics_service.get_breakdown_stability("ide", "interactions")

    assert [row["name"] for row in rows] == ["jetbrains", "vscode"]
    assert rows[0]["coefficient_variation"] == 0
    vscode = rows[1]
    assert vscode["days"] == 2
    assert vscode["avg_value"] == 7.5
    assert vscode["stddev_value"] == 2.5
    assert vscode["coefficient_variation"] == pytest.approx(1 / 3)


# ==============================================================================
# USERS
# ==============================================================================

async def test_users_list(metrics_service):
    users = await metrics_service.get_users_list()

    assert [user["user_login"] for user in users] == ["alice", "bob"]
    alice, bob = users
    assert alice["name"] == "Alice"
    assert alice["interactions"] == 30
    assert alice["ide"] == "jetbrains"
    assert len(alice["totals_by_ide"]) == 2
    assert alice["uses_agent"] and alice["uses_chat"]
    assert bob["name"] == "bob"
    assert bob["ide"] == "vscode"


async def test_user_change(metrics_service):
    rows = await metrics_service.get_user_change("interactions", DAY_2_ONLY, DAY_1_ONLY)
    by_login = {row["user_login"]: row for row in rows}

    assert by_login["alice"]["delta"] == 10
    assert by_login["alice"]["delta_pct"] == 1.0
    assert by_login["bob"]["previous_value"] == 0
    assert by_login["bob"]["delta_pct"] == 1


async def test_users_first_active(metrics_service):
    rows = await metrics_service.get_users_first_active()
    assert rows == [
        {"user_login": "alice", "name": "Alice", "first_day": "2025-01-01"},
        {"user_login": "bob", "name": "bob", "first_day": "2025-01-02"},
    ]

    window = await metrics_service.get_users_first_active(None, "2025-01-02", "2025-01-31")
    assert [row["user_login"] for row in window] == ["bob"]


async def test_users_usage_rates(metrics_service):
    rates = await metrics_service.get_users_usage_rates()
    assert rates == {
        "total_users": 2,
        "agent_user_rate": 0.5,
        "chat_user_rate": 0.5,
        "both_user_rate": 0.5,
    }


async def test_users_usage_rates_empty(metrics_service):
    rates = await metrics_service.get_users_usage_rates(MetricsFilter(user_login="nobody"))
    assert rates["total_users"] == 0
    assert rates["agent_user_rate"] == 0


# ==============================================================================
# MULTI-ENTITY COMPARISONS
# ==============================================================================

async def test_multi_series_is_sparse(metrics_service):
    entities = [
        CompareEntityConfig(label="Backend", segment="backend"),
        CompareEntityConfig(label="Frontend", segment="frontend"),
    ]
    rows = await metrics_service.get_multi_series_trends(entities, "interactions")

    assert rows == [
        {"date": "2025-01-01", "Backend": 10},
        {"date": "2025-01-02", "Backend": 20, "Frontend": 5},
    ]


async def test_comparison_summary(metrics_service):
    result = await metrics_service.get_comparison_summary(
        CompareEntityConfig(label="Backend", segment="Backend"),
        CompareEntityConfig(label="Frontend", segment="Frontend"),
        "total_interactions",
    )

    assert result["entityA"] == {"label": "Backend", "value": 30, "isHigher": True}
    assert result["entityB"] == {"label": "Frontend", "value": 5, "isHigher": False}
    assert result["gap"] == 500


async def test_comparison_summary_tie_favours_entity_a(metrics_service):
    same = CompareEntityConfig(label="Backend", segment="Backend")
    result = await metrics_service.get_comparison_summary(same, same, "interactions")

    assert result["entityA"]["isHigher"] is True
    assert result["entityB"]["isHigher"] is False
    assert result["gap"] == 0


async def test_comparison_summary_both_zero(metrics_service):
    nobody = CompareEntityConfig(label="Nobody", segment="Nobody")
    result = await metrics_service.get_comparison_summary(nobody, nobody, "total_interactions")

    assert result["entityA"]["isHigher"] is False
    assert result["entityB"]["isHigher"] is False
    assert result["gap"] == 0


async def test_comparison_summary_unknown_metric(metrics_service):
    entity = CompareEntityConfig(label="Backend", segment="Backend")
    with pytest.raises(UnknownMetricKeyError):
        await metrics_service.get_comparison_summary(entity, entity, "vibes")


# ==============================================================================
# DISCOVERY & ERRORS
# ==============================================================================

async def test_segments_strip_prefix(metrics_service):
    assert await metrics_service.get_segments() == ["Backend", "Backend_chat", "Frontend"]


async def test_store_errors_propagate():
    service = MetricsService(FailingStore())

    with pytest.raises(ConnectionError):
        await service.get_summary()
    with pytest.raises(ConnectionError):
        await service.get_segments()


def test_change_pct():
    assert change_pct(15, 10) == 0.5
    assert change_pct(5, 0) == 1
    assert change_pct(0, 0) == 0


def test_comparison_gap():
    assert comparison_gap(10, 5) == 100
    assert comparison_gap(0, 7) == 100
    assert comparison_gap(0, 0) == 0
