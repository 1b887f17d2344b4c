"""
Workspace repository.
"""

import uuid
from pathlib import Path
from typing import List, Optional

from sqlalchemy.orm import Session

from worktrace.db.repositories.base import BaseRepository
from worktrace.exceptions import WorkspaceNotFoundError
from worktrace.models.db import Workspace


class WorkspaceRepository(BaseRepository[Workspace]):
    """Repository for Workspace model."""

    def __init__(self, session: Session):
        super().__init__(Workspace, session)

    def get_by_path(self, path: str) -> Optional[Workspace]:
        """
        Get workspace by root path.

        Args:
            path: Absolute workspace root path

        Returns:
            Workspace instance or None
        """
        return self.session.query(Workspace).filter(Workspace.path == path).first()

    def get_or_create(self, path: str, name: Optional[str] = None) -> Workspace:
        """
        Get existing workspace by path or create a new one.

        A workspace that was previously deactivated is reactivated, since
        getting it here means its root is being tracked again.

        Args:
            path: Absolute workspace root path
            name: Display name (defaults to the directory name)

        Returns:
            Workspace instance
        """
        workspace = self.get_by_path(path)
        if workspace is None:
            return self.create(path=path, name=name or Path(path).name or path)
        if not workspace.is_active:
            workspace.is_active = True
            self.session.flush()
        return workspace

    def get_active(self) -> List[Workspace]:
        """
        Get active workspaces, newest first.

        Returns:
            List of active workspaces
        """
        return (
            self.session.query(Workspace)
            .filter(Workspace.is_active.is_(True))
            .order_by(Workspace.created_at.desc())
            .all()
        )

    def list_all(self) -> List[Workspace]:
        """Get every workspace, newest first."""
        return (
            self.session.query(Workspace).order_by(Workspace.created_at.desc()).all()
        )

    def rename(self, id: uuid.UUID, name: str) -> Workspace:
        """
        Change a workspace's display name.

        Raises:
            WorkspaceNotFoundError: If the workspace does not exist
        """
        workspace = self.update(id, name=name)
        if workspace is None:
            raise WorkspaceNotFoundError(id)
        return workspace

    def set_active(self, id: uuid.UUID, is_active: bool) -> Workspace:
        """
        Set workspace active flag.

        Raises:
            WorkspaceNotFoundError: If the workspace does not exist
        """
        workspace = self.update(id, is_active=is_active)
        if workspace is None:
            raise WorkspaceNotFoundError(id)
        return workspace

    def deactivate(self, id: uuid.UUID) -> Workspace:
        """
        Deactivate a workspace (soft delete).

        Args:
            id: Workspace UUID

        Returns:
            Updated workspace
        """
        return self.set_active(id, False)
