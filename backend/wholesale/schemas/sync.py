"""
Sync Pydantic schemas for reconciliation results and history.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncResult(BaseModel):
    """Counters for one reconciliation pass."""

    sync_run_id: Optional[str] = Field(None, alias="syncRunId")
    sync_type: str = Field(alias="syncType")
    mode: Optional[str] = None
    status: str = "running"
    total_processed: int = Field(0, alias="totalProcessed")
    created: int = 0
    updated: int = 0
    skipped: int = 0
    delisted: int = 0
    errors: int = 0
    error_messages: list[str] = Field(default_factory=list, alias="errorMessages")
    duration_ms: Optional[int] = Field(None, alias="durationMs")

    model_config = ConfigDict(populate_by_name=True)

    def record_error(self, message: str, limit: int = 100) -> None:
        self.errors += 1
        if len(self.error_messages) < limit:
            self.error_messages.append(message)


class PassResult(BaseModel):
    """Counters for an auxiliary pass (categories, groups, price lists)."""

    name: str
    created: int = 0
    updated: int = 0
    errors: int = 0
    error: Optional[str] = None


class CatalogSyncResult(BaseModel):
    """Product sync plus the auxiliary passes run alongside it."""

    products: SyncResult
    passes: list[PassResult] = Field(default_factory=list)


class SyncRunResponse(BaseModel):
    """Schema for sync history API responses."""

    id: str
    sync_type: str = Field(alias="syncType")
    sync_mode: Optional[str] = Field(None, alias="syncMode")
    status: str
    total_processed: int = Field(alias="totalProcessed")
    created: int
    updated: int
    skipped: int
    delisted: int
    errors: int
    started_at: datetime = Field(alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    duration_ms: Optional[int] = Field(None, alias="durationMs")
    error_messages: Optional[list[str]] = Field(None, alias="errorMessages")
    triggered_by: Optional[str] = Field(None, alias="triggeredBy")

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class SyncTriggerRequest(BaseModel):
    """Schema for triggering a manual sync."""

    full_sync: bool = Field(False, alias="fullSync")

    model_config = ConfigDict(populate_by_name=True)


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
