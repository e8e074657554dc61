"""
Snapshot API Endpoints.

Stores heavy result sets and serves them back sorted and paginated.
A missing, expired or evicted snapshot is a 404.
"""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from modules.snapshots import SnapshotCache
from src.api.config import get_api_settings
from src.api.dependencies import get_snapshot_cache
from src.api.v1.models.requests import SnapshotCreateRequest
from src.api.v1.models.responses import SnapshotCreatedResponse, SnapshotMetadataResponse

logger = logging.getLogger(__name__)

api_settings = get_api_settings()

router = APIRouter(
    prefix="/snapshots",
    tags=["snapshots"],
    responses={
        404: {"description": "Snapshot not found or expired"},
    }
)


def _not_found(snapshot_id: str) -> HTTPException:
    logger.warning(f"Snapshot {snapshot_id} not found or expired")
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "snapshot_not_found", "message": "Snapshot not found or expired"},
    )


@router.post(
    "",
    response_model=SnapshotCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store a result snapshot",
)
async def create_snapshot(
    request: SnapshotCreateRequest,
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    snapshot_id = cache.save_snapshot(request.payload, request.summary, request.config)
    return SnapshotCreatedResponse(id=snapshot_id)


@router.get("/{snapshot_id}", summary="Get snapshot data")
async def get_snapshot_data(
    snapshot_id: str,
    skip: Optional[int] = Query(default=None, ge=0),
    limit: Optional[int] = Query(default=None, gt=0, le=api_settings.MAX_PAGE_SIZE),
    sortKey: Optional[str] = Query(default=None),
    sortOrder: Literal["asc", "desc"] = Query(default="asc"),
    key: Optional[str] = Query(default=None, description="Property of a keyed payload to page"),
    cache: SnapshotCache = Depends(get_snapshot_cache),
) -> Any:
    """
    Get snapshot payload.

    Returns the payload as stored when no paging or sorting is requested,
    otherwise ``{"data": [...], "pagination": {"total", "skip", "limit"}}``.
    """
    try:
        data = cache.get_snapshot_data(
            snapshot_id,
            skip=skip,
            limit=limit,
            sort_key=sortKey,
            sort_order=sortOrder,
            key=key,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_page_request", "message": str(e)},
        )
    if data is None:
        raise _not_found(snapshot_id)

    logger.info(f"Served snapshot payload for {snapshot_id}")
    return data


@router.get(
    "/{snapshot_id}/meta",
    response_model=SnapshotMetadataResponse,
    summary="Get snapshot summary and config",
)
async def get_snapshot_metadata(
    snapshot_id: str,
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    entry = cache.get_snapshot(snapshot_id)
    if entry is None:
        raise _not_found(snapshot_id)

    return SnapshotMetadataResponse(
        id=entry.id,
        created_at=entry.created_at,
        summary=entry.summary,
        config=entry.config,
    )
