"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from worktrace.db.repositories.allocation import AllocationRepository
from worktrace.db.repositories.base import BaseRepository
from worktrace.db.repositories.metadata import MetadataRepository
from worktrace.db.repositories.session import WorkSessionRepository
from worktrace.db.repositories.work_item import WorkItemRepository
from worktrace.db.repositories.workspace import WorkspaceRepository

__all__ = [
    "AllocationRepository",
    "BaseRepository",
    "MetadataRepository",
    "WorkItemRepository",
    "WorkSessionRepository",
    "WorkspaceRepository",
]
