"""
Work item repository.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from worktrace.db.repositories.base import BaseRepository
from worktrace.exceptions import WorkspaceNotFoundError
from worktrace.models.db import WorkItem, WorkItemType, Workspace


class WorkItemRepository(BaseRepository[WorkItem]):
    """Repository for WorkItem model."""

    def __init__(self, session: Session):
        super().__init__(WorkItem, session)

    def create_work_item(
        self,
        workspace_id: uuid.UUID,
        repo: str,
        type: WorkItemType,
        title: str,
        occurred_at: datetime,
        detail: Optional[str] = None,
        url: Optional[str] = None,
        external_id: Optional[str] = None,
    ) -> WorkItem:
        """
        Create a work item.

        Callers discovering work items from a feed must check
        get_by_external_id() first; the unique constraint on
        (workspace_id, external_id) is a backstop, not the de-duplication path.

        Raises:
            WorkspaceNotFoundError: If the workspace does not exist
        """
        if self.session.get(Workspace, workspace_id) is None:
            raise WorkspaceNotFoundError(workspace_id)

        return self.create(
            workspace_id=workspace_id,
            repo=repo,
            type=type,
            title=title,
            detail=detail,
            occurred_at=occurred_at,
            url=url,
            external_id=external_id,
        )

    def get_by_external_id(
        self, workspace_id: uuid.UUID, external_id: str
    ) -> Optional[WorkItem]:
        """
        Get work item by external identifier (e.g. commit SHA) within a workspace.

        Args:
            workspace_id: Workspace UUID
            external_id: External identifier

        Returns:
            WorkItem instance or None
        """
        return (
            self.session.query(WorkItem)
            .filter(
                WorkItem.workspace_id == workspace_id,
                WorkItem.external_id == external_id,
            )
            .first()
        )

    def previous_occurred_at(
        self, workspace_id: uuid.UUID, exclude_id: Optional[uuid.UUID] = None
    ) -> Optional[datetime]:
        """
        Get the latest occurrence time among a workspace's work items.

        Args:
            workspace_id: Workspace UUID
            exclude_id: Work item to leave out (usually the one being allocated)

        Returns:
            max(occurred_at) or None if there is no other work item
        """
        query = self.session.query(func.max(WorkItem.occurred_at)).filter(
            WorkItem.workspace_id == workspace_id
        )
        if exclude_id is not None:
            query = query.filter(WorkItem.id != exclude_id)
        return query.scalar()

    def get_by_workspace(
        self, workspace_id: uuid.UUID, limit: Optional[int] = None, offset: int = 0
    ) -> List[WorkItem]:
        """
        Get work items for a workspace, most recent occurrence first.

        Args:
            workspace_id: Workspace UUID
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of work items
        """
        query = (
            self.session.query(WorkItem)
            .filter(WorkItem.workspace_id == workspace_id)
            .order_by(WorkItem.occurred_at.desc())
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)
        return query.all()
