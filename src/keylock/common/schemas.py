"""Shared Pydantic schemas for Keylock."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "keylock"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AdminResult(BaseModel):
    """Envelope returned by every administrative endpoint."""

    success: bool
    error: str | None = None
    message: str | None = None
