"""
API response models.

Pydantic models for API responses.
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ErrorResponse(BaseModel):
    """
    Standard error response.
    """

    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[Any] = Field(default=None, description="Detailed error information")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "unknown_dimension",
                "message": "Unknown breakdown dimension: 'os'",
                "detail": {"allowed": ["feature", "ide", "language_feature", "language_model", "model", "model_feature"]},
                "timestamp": "2026-01-20T10:30:00Z"
            }
        }
    }


class SnapshotCreatedResponse(BaseModel):
    """Id of a newly stored snapshot."""

    id: str = Field(..., description="Opaque snapshot id")


class SnapshotMetadataResponse(BaseModel):
    """Snapshot metadata without the heavy payload."""

    id: str
    created_at: datetime
    summary: Dict[str, Any] = Field(default_factory=dict)
    config: Optional[Dict[str, Any]] = None
