"""
Allocation repository.
"""

import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from worktrace.db.repositories.base import BaseRepository
from worktrace.exceptions import AllocationNotFoundError
from worktrace.models.db import Allocation, WorkItem


class AllocationRepository(BaseRepository[Allocation]):
    """Repository for Allocation model."""

    def __init__(self, session: Session):
        super().__init__(Allocation, session)

    def create_allocation(
        self,
        work_item_id: uuid.UUID,
        date: date,
        hours: float,
        note: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> Allocation:
        """Create an allocation row for one work item and date."""
        if hours < 0:
            raise ValueError(f"Allocation hours must be non-negative, got {hours}")
        return self.create(
            work_item_id=work_item_id, date=date, hours=hours, note=note, tag=tag
        )

    def get_for_work_item(self, work_item_id: uuid.UUID) -> List[Allocation]:
        """
        Get allocations of a work item ordered by date.

        Args:
            work_item_id: WorkItem UUID

        Returns:
            List of allocations
        """
        return (
            self.session.query(Allocation)
            .filter(Allocation.work_item_id == work_item_id)
            .order_by(Allocation.date)
            .all()
        )

    def most_recent_for_workspace(
        self, workspace_id: uuid.UUID
    ) -> Optional[Allocation]:
        """
        Get the newest allocation belonging to a workspace's work items.

        Args:
            workspace_id: Workspace UUID

        Returns:
            Allocation instance or None
        """
        return (
            self.session.query(Allocation)
            .join(WorkItem, Allocation.work_item_id == WorkItem.id)
            .filter(WorkItem.workspace_id == workspace_id)
            .order_by(Allocation.created_at.desc())
            .first()
        )

    def set_field(self, id: uuid.UUID, **changes) -> Allocation:
        """
        Write fields of a single allocation.

        Raises:
            AllocationNotFoundError: If the allocation does not exist
        """
        allocation = self.update(id, **changes)
        if allocation is None:
            raise AllocationNotFoundError(id)
        return allocation
