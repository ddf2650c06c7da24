"""Health check schemas."""

from typing import Dict, List

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str
    database: str
    suppliers: List[str] = []
    services: Dict[str, str] = {}
