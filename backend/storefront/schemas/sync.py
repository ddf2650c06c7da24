"""Sync request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SyncFiltersRequest(BaseModel):
    """Stock and price filters of a sync request."""

    only_with_stock: bool = True
    min_stock: int = Field(1, ge=0)
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_price_range(self) -> "SyncFiltersRequest":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not be greater than max_price")
        return self


class SyncRequest(BaseModel):
    """Body of POST /sync.

    ``categories`` applies to suppliers that support category selection;
    omit it to use the stored selection, or pass ["all"].
    """

    source: Literal["syscom", "tecnosinergia", "both", "all"] = "both"
    categories: Optional[List[str]] = None
    filters: SyncFiltersRequest = Field(default_factory=SyncFiltersRequest)


class SyncErrorResponse(BaseModel):
    context: Dict[str, Any] = {}
    message: str


class SyncRunResponse(BaseModel):
    """Summary of a sync run; errors are reported in the body, not the status code."""

    source: str
    status: str
    categories_requested: List[str] = []
    filters: Dict[str, Any] = {}
    products_collected: int = 0
    products_with_stock: int = 0
    products_synced: int = 0
    errors: List[SyncErrorResponse] = []
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    per_source: Dict[str, "SyncRunResponse"] = {}


SyncRunResponse.model_rebuild()


class SyncLogResponse(BaseModel):
    """One row of api_sync_logs."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    source: str
    sync_type: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[Decimal] = None
    products_collected: int = 0
    products_with_stock: int = 0
    products_synced: int = 0
    errors: List[Dict[str, Any]] = []
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")


class SyncStatsResponse(BaseModel):
    period_days: int
    total_runs: int
    successful_runs: int
    failed_runs: int
    running_runs: int
    success_rate: float
    total_products_synced: int
    avg_duration_seconds: Optional[float] = None
    last_run_at: Optional[datetime] = None


class SyncStatusResponse(BaseModel):
    """Suppliers syncing right now and the latest logged run of each."""

    running: List[str] = []
    latest: Dict[str, Optional[SyncLogResponse]] = {}
