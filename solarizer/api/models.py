"""API response models."""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class HealthStatus(BaseModel):
    """Service health, including the state of the Solar.web session."""

    status: str  # "healthy", "degraded" or "unavailable"
    ready: bool
    has_credential: bool
    breaker_state: str
    breaker_retry_in: Optional[float] = None
    timestamp: datetime
    version: str
