"""
Metrics API Endpoints.

Read-only dashboard queries over per-user daily usage records. Every route
accepts the common filter parameters (startDate, endDate, segment, userLogin,
model, language).
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from modules.metrics import BreakdownMetricKey, MetricsFilter, MetricsService
from src.api.dependencies import (
    get_metrics_service,
    parse_entities,
    parse_entity,
    parse_filters,
    resolve_dimension,
    with_comparison_window,
)

router = APIRouter(
    prefix="/metrics",
    tags=["metrics"],
    responses={
        400: {"description": "Invalid dimension, metric key or filter"},
        500: {"description": "Internal server error"}
    }
)

METRIC_KEY_DESCRIPTION = ", ".join(key.value for key in BreakdownMetricKey)


@router.get("/summary", summary="Point-in-time KPIs")
async def get_summary(
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    """Totals, distinct users, active days, flags and acceptance rate."""
    return await service.get_summary(filters)


@router.get("/trends", summary="Daily time series")
async def get_trends(
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    return await service.get_daily_trends(filters)


@router.get("/breakdown", summary="Aggregate by dimension")
async def get_breakdown(
    by: str = Query(..., description="model, ide, feature (alias: team), language_model, language_feature, model_feature"),
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    return await service.get_breakdown(resolve_dimension(by), filters)


@router.get("/breakdown/compare", summary="Period-over-period breakdown delta")
async def get_breakdown_comparison(
    by: str = Query(..., description="Breakdown dimension"),
    compareStart: str = Query(..., description="Start of the previous period"),
    compareEnd: str = Query(..., description="End of the previous period"),
    metricKey: str = Query(default="interactions", description=METRIC_KEY_DESCRIPTION),
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    """Compare the current filter against the same filter over the previous window."""
    previous = with_comparison_window(filters, compareStart, compareEnd)
    return await service.get_breakdown_comparison(
        resolve_dimension(by), metricKey, filters, previous
    )


@router.get("/breakdown/stability", summary="Day-to-day volatility by dimension")
async def get_breakdown_stability(
    by: str = Query(..., description="Breakdown dimension"),
    metricKey: str = Query(default="interactions", description=METRIC_KEY_DESCRIPTION),
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    return await service.get_breakdown_stability(resolve_dimension(by), metricKey, filters)


@router.get("/users", summary="Per-user totals")
async def get_users(
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    return await service.get_users_list(filters)


@router.get("/users/change", summary="Period-over-period delta per user")
async def get_users_change(
    compareStart: str = Query(..., description="Start of the previous period"),
    compareEnd: str = Query(..., description="End of the previous period"),
    metricKey: str = Query(default="interactions", description=METRIC_KEY_DESCRIPTION),
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    previous = with_comparison_window(filters, compareStart, compareEnd)
    return await service.get_user_change(metricKey, filters, previous)


@router.get("/users/first-active", summary="First active day per user")
async def get_users_first_active(
    firstActiveStart: Optional[str] = Query(default=None, description="Keep users first seen on or after"),
    firstActiveEnd: Optional[str] = Query(default=None, description="Keep users first seen on or before"),
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    return await service.get_users_first_active(filters, firstActiveStart, firstActiveEnd)


@router.get("/users/usage-rate", summary="Agent/chat adoption across users")
async def get_users_usage_rate(
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    return await service.get_users_usage_rates(filters)


@router.get("/segments", summary="Discover segments (teams)")
async def get_segments(
    service: MetricsService = Depends(get_metrics_service),
) -> List[str]:
    return await service.get_segments()


@router.get("/compare/summary", summary="Head-to-head comparison of two entities")
async def get_compare_summary(
    entityA: str = Query(..., description='JSON entity, e.g. {"label": "Backend", "segment": "Backend"}'),
    entityB: str = Query(..., description="JSON entity"),
    metricKey: str = Query(default="total_interactions", description="Summary field or metric key"),
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    return await service.get_comparison_summary(
        parse_entity(entityA, "entityA"),
        parse_entity(entityB, "entityB"),
        metricKey,
        filters,
    )


@router.get("/compare/trends", summary="Multi-series daily trends")
async def get_compare_trends(
    queries: str = Query(..., description="JSON list of entities"),
    metricKey: str = Query(default="interactions", description=METRIC_KEY_DESCRIPTION),
    filters: MetricsFilter = Depends(parse_filters),
    service: MetricsService = Depends(get_metrics_service),
) -> List[Dict[str, Any]]:
    """One series per entity merged by day; missing days omit the entity key."""
    return await service.get_multi_series_trends(parse_entities(queries), metricKey, filters)
