"""
API request models.

Pydantic models for validating incoming API requests.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union


class SnapshotCreateRequest(BaseModel):
    """
    Snapshot creation request.

    Parks a heavy result set for later paginated retrieval.
    """

    payload: Union[List[Any], Dict[str, Any]] = Field(
        ...,
        description="Result rows, or a keyed object whose properties hold rows"
    )

    summary: Dict[str, Any] = Field(
        default_factory=dict,
        description="Small digest of the payload"
    )

    config: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Optional UI configuration rendered against the payload"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "payload": [{"name": "vscode", "interactions": 120}],
                "summary": {"rows": 1},
                "config": {"component": "SmartTable"}
            }
        }
    }
