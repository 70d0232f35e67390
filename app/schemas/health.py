"""
Health check schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Schema for health check response."""

    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    components: dict[str, str] = Field(
        default_factory=dict, description="Status of database, scheduler and email dispatcher"
    )
