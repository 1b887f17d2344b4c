"""
API schemas for WorkTrace.

Pydantic models for request/response validation.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from worktrace.models.db import WorkItemType, ensure_aware
from worktrace.tracker.events import ActivityType

# ===== Workspaces =====


class WorkspaceCreate(BaseModel):
    """Request schema for tracking a workspace root."""

    root: str
    name: Optional[str] = None


class WorkspaceResponse(BaseModel):
    """Response schema for Workspace."""

    id: UUID
    path: str
    name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    is_tracked: bool = False
    repo: Optional[str] = None
    branch: Optional[str] = None

    class Config:
        from_attributes = True


# ===== Activity =====


class ActivityRequest(BaseModel):
    """An activity event from the editor."""

    root: str
    type: ActivityType
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Treat timestamps without an offset as UTC."""
        return ensure_aware(value) if value is not None else None


class ActivityResponse(BaseModel):
    accepted: bool


class TrackingSummaryResponse(BaseModel):
    """Active time across tracked workspaces."""

    active_seconds: int
    workspace_count: int
    workspaces: list[str] = Field(default_factory=list)
    idle_threshold_minutes: float


# ===== Work items and allocations =====


class AllocationResponse(BaseModel):
    """Response schema for Allocation."""

    id: UUID
    work_item_id: UUID
    date: date
    hours: float
    note: Optional[str] = None
    tag: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AllocationUpdate(BaseModel):
    """Request schema for editing an allocation. Omitted fields are unchanged."""

    hours: Optional[float] = Field(default=None, ge=0)
    note: Optional[str] = None
    tag: Optional[str] = None


class WorkItemCreate(BaseModel):
    """Request schema for a manually submitted work item."""

    workspace_id: UUID
    title: str = Field(min_length=1)
    occurred_at: Optional[datetime] = None
    detail: Optional[str] = None
    url: Optional[str] = None
    external_id: Optional[str] = None
    session_ids: Optional[list[UUID]] = None

    @field_validator("occurred_at")
    @classmethod
    def validate_occurred_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Treat timestamps without an offset as UTC."""
        return ensure_aware(value) if value is not None else None


class WorkItemResponse(BaseModel):
    """Response schema for WorkItem."""

    id: UUID
    workspace_id: UUID
    repo: str
    type: WorkItemType
    title: str
    detail: Optional[str] = None
    occurred_at: datetime
    url: Optional[str] = None
    external_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WorkItemResultResponse(BaseModel):
    """A work item and the allocations it claimed."""

    work_item: WorkItemResponse
    allocations: list[AllocationResponse] = Field(default_factory=list)
    created: bool = True
