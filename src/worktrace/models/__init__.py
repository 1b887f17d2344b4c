"""Database models for WorkTrace."""

from worktrace.models.db import (
    Allocation,
    Base,
    Metadata,
    WorkItem,
    WorkItemType,
    WorkSession,
    Workspace,
)

__all__ = [
    "Allocation",
    "Base",
    "Metadata",
    "WorkItem",
    "WorkItemType",
    "WorkSession",
    "Workspace",
]
