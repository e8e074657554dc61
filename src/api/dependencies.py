"""
Shared FastAPI dependencies.

The metrics service and snapshot cache are built once by the application
factory and live on ``app.state``; routes receive them through these providers.
"""

import json
from typing import List, Optional

from fastapi import HTTPException, Query, Request, status
from pydantic import TypeAdapter, ValidationError

from modules.metrics import CompareEntityConfig, MetricsFilter, MetricsService
from modules.snapshots import SnapshotCache

# Accepted aliases for the ``by`` breakdown parameter
DIMENSION_ALIASES = {"team": "feature"}

_entity_list_adapter = TypeAdapter(List[CompareEntityConfig])


def get_metrics_service(request: Request) -> MetricsService:
    """Metrics service owned by the running application."""
    return request.app.state.metrics_service


def get_snapshot_cache(request: Request) -> SnapshotCache:
    """Snapshot cache owned by the running application."""
    return request.app.state.snapshot_cache


def parse_filters(
    startDate: Optional[str] = Query(default=None, description="Inclusive start (ISO date or datetime)"),
    endDate: Optional[str] = Query(default=None, description="Inclusive end (ISO date or datetime)"),
    segment: Optional[str] = Query(default=None, description="Team/feature substring, case-insensitive"),
    userLogin: Optional[str] = Query(default=None, description="Exact user login"),
    model: Optional[str] = Query(default=None, description="Exact model name"),
    language: Optional[str] = Query(default=None, description="Exact language name"),
) -> MetricsFilter:
    """Build a MetricsFilter from the common query parameters."""
    try:
        return MetricsFilter(
            start_date=startDate,
            end_date=endDate,
            segment=segment,
            user_login=userLogin,
            model=model,
            language=language,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_filter", "message": str(e)},
        )


def resolve_dimension(by: str) -> str:
    """Map a ``by`` parameter to a dimension name."""
    return DIMENSION_ALIASES.get(by, by)


def with_comparison_window(filters: MetricsFilter, compare_start: str, compare_end: str) -> MetricsFilter:
    """Current filter moved to the comparison date window."""
    try:
        return filters.with_dates(compare_start, compare_end)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_compare_window", "message": str(e)},
        )


def parse_entity(raw: str, name: str) -> CompareEntityConfig:
    """Parse one JSON-encoded CompareEntityConfig query parameter."""
    try:
        return CompareEntityConfig.model_validate_json(raw)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": f"invalid_{name}", "message": str(e)},
        )


def parse_entities(raw: str) -> List[CompareEntityConfig]:
    """Parse the JSON-encoded ``queries`` list of CompareEntityConfig."""
    try:
        entities = _entity_list_adapter.validate_json(raw)
    except (ValidationError, json.JSONDecodeError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_queries", "message": str(e)},
        )
    if not entities:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_queries", "message": "At least one entity is required"},
        )
    return entities
