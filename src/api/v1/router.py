"""
API v1 router.

Combines all v1 endpoint routers.
"""

from fastapi import APIRouter

from src.api.v1.endpoints import metrics, snapshots

# Create main v1 router
api_router = APIRouter()

# V1 root endpoint
@api_router.get("/", tags=["info"])
async def api_v1_info():
    """
    API v1 information endpoint.

    Returns:
        API version and available endpoints
    """
    return {
        "title": "Copilot Usage Metrics API",
        "version": "1.0.0",
        "endpoints": {
            "metrics": "/api/v1/metrics",
            "snapshots": "/api/v1/snapshots",
            "health": "/health",
            "docs": "/docs"
        }
    }

# Include endpoint routers
api_router.include_router(metrics.router)
api_router.include_router(snapshots.router)
