"""
Response models for the status API.

All responses are read-only views of persisted task records.
"""

from typing import Any, Dict, List
from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = "ok"
    mode: str = "read-only"


class TaskListResponse(BaseModel):
    """All readable status records, newest first."""

    model_config = ConfigDict(extra="forbid")

    count: int
    tasks: List[Dict[str, Any]]
