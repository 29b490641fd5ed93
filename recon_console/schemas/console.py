"""Request and response bodies of the console routes."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from recon_console.schemas.batch import BatchSummary
from recon_console.schemas.record import BatchRecord


class Notification(BaseModel):
    """An advisory message for the user (toast / alert)."""

    level: str = Field(..., description="info | warning | error")
    message: str


class FilterUpdate(BaseModel):
    """Partial update of the list/detail filters."""

    search: Optional[str] = None
    status: Optional[str] = Field(None, description="ALL or a batch status")
    record_status: Optional[str] = Field(None, description="ALL or a record status")


class CommentRequest(BaseModel):
    comment: str = ""


class ViewStateResponse(BaseModel):
    """Snapshot of one session's view state."""

    view: str
    selected_batch_id: Optional[str] = None
    last_selected_batch_id: Optional[str] = None
    search: str = ""
    status_filter: str = "ALL"
    record_status_filter: str = "ALL"
    sort_field: Optional[str] = None
    sort_direction: str = "asc"
    selected_record_id: Optional[str] = None
    is_modal_open: bool = False
    notifications: list[Notification] = Field(default_factory=list)


class BatchListResponse(BaseModel):
    batches: list[BatchSummary]
    total: int
    notifications: list[Notification] = Field(default_factory=list)


class RecordListResponse(BaseModel):
    batch_id: str
    records: list[BatchRecord]
    total: int
    notifications: list[Notification] = Field(default_factory=list)


class BatchDetailResponse(BaseModel):
    batch: BatchSummary
    records_loaded: bool = False
    records_error: Optional[str] = None
    state: ViewStateResponse


class ActionResponse(BaseModel):
    """Outcome of a user action plus the resulting view state."""

    success: bool
    state: ViewStateResponse


class RecordDetailResponse(BaseModel):
    opened: bool
    record: dict = Field(default_factory=dict)
    state: ViewStateResponse
