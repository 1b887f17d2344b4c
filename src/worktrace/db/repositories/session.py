"""
Work session repository.

The session store: lifecycle operations over presence sessions. A
workspace has at most one open session (``end_at IS NULL``) at a time;
the orchestrator is the only caller that opens sessions.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from worktrace.config import settings
from worktrace.db.repositories.base import BaseRepository
from worktrace.exceptions import (
    NoFieldsToUpdateError,
    SessionNotFoundError,
    WorkspaceNotFoundError,
)
from worktrace.models.db import WorkSession, Workspace

logger = logging.getLogger(__name__)


def day_bounds(
    from_date: date, to_date: date, tz_name: Optional[str] = None
) -> tuple[datetime, datetime]:
    """
    Convert an inclusive calendar date range into a half-open datetime range.

    Args:
        from_date: First day included
        to_date: Last day included
        tz_name: IANA timezone the dates are expressed in

    Returns:
        (start, end) timezone-aware datetimes, end exclusive
    """
    tz = ZoneInfo(tz_name or settings.allocation_timezone)
    start = datetime.combine(from_date, time.min, tzinfo=tz)
    end = datetime.combine(to_date + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


class WorkSessionRepository(BaseRepository[WorkSession]):
    """Repository for WorkSession model."""

    def __init__(self, session: Session):
        super().__init__(WorkSession, session)

    def create_session(
        self,
        workspace_id: uuid.UUID,
        repo: str,
        start_at: datetime,
        branch: Optional[str] = None,
    ) -> WorkSession:
        """
        Open a new session for a workspace.

        Args:
            workspace_id: Owning workspace UUID
            repo: Repository label
            start_at: Session start time
            branch: Branch label, if under version control

        Returns:
            Created (open) session

        Raises:
            WorkspaceNotFoundError: If the workspace does not exist
        """
        if self.session.get(Workspace, workspace_id) is None:
            raise WorkspaceNotFoundError(workspace_id)

        return self.create(
            workspace_id=workspace_id,
            repo=repo,
            branch=branch,
            start_at=start_at,
            active_seconds=0,
            is_allocated=False,
        )

    def get_open_session(self, workspace_id: uuid.UUID) -> Optional[WorkSession]:
        """
        Get the open session for a workspace.

        Args:
            workspace_id: Workspace UUID

        Returns:
            Session with no end time, or None
        """
        return (
            self.session.query(WorkSession)
            .filter(
                WorkSession.workspace_id == workspace_id,
                WorkSession.end_at.is_(None),
            )
            .order_by(WorkSession.start_at.desc())
            .first()
        )

    def update_session(
        self,
        id: uuid.UUID,
        *,
        end_at: Optional[datetime] = None,
        active_seconds: Optional[int] = None,
        is_allocated: Optional[bool] = None,
        start_at: Optional[datetime] = None,
    ) -> WorkSession:
        """
        Partially update a session.

        Args:
            id: Session UUID
            end_at: Close time
            active_seconds: Accumulated active seconds
            is_allocated: Allocated flag
            start_at: New start time (re-anchoring a session with no activity)

        Returns:
            Updated session

        Raises:
            NoFieldsToUpdateError: If no field was given
            SessionNotFoundError: If the session does not exist
        """
        changes = {
            key: value
            for key, value in (
                ("end_at", end_at),
                ("active_seconds", active_seconds),
                ("is_allocated", is_allocated),
                ("start_at", start_at),
            )
            if value is not None
        }
        if not changes:
            raise NoFieldsToUpdateError("session", id)
        if "active_seconds" in changes:
            changes["active_seconds"] = max(0, int(changes["active_seconds"]))

        work_session = self.update(id, **changes)
        if work_session is None:
            raise SessionNotFoundError(id)
        return work_session

    def end_open_session(
        self, workspace_id: uuid.UUID, end_at: datetime, active_seconds: int
    ) -> Optional[WorkSession]:
        """
        Close the open session of a workspace, if any.

        Returns:
            The closed session, or None if none was open
        """
        current = self.get_open_session(workspace_id)
        if current is None:
            return None
        return self.update_session(
            current.id, end_at=end_at, active_seconds=active_seconds
        )

    def close_at_checkpoint(self, id: uuid.UUID) -> WorkSession:
        """
        Close a session at its last checkpointed second.

        Used for sessions left open by a process that stopped without
        closing them; the end time is start_at + active_seconds.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        work_session = self.get(id)
        if work_session is None:
            raise SessionNotFoundError(id)
        end_at = work_session.start_at + timedelta(seconds=work_session.active_seconds)
        logger.info(
            f"Closing leftover session {id} at checkpoint "
            f"({work_session.active_seconds}s)"
        )
        return self.update_session(id, end_at=end_at)

    def sessions_by_date_range(
        self,
        workspace_id: uuid.UUID,
        from_date: date,
        to_date: date,
        unallocated_only: bool = True,
    ) -> List[WorkSession]:
        """
        Get closed sessions starting within an inclusive date range.

        Args:
            workspace_id: Workspace UUID
            from_date: First day included
            to_date: Last day included
            unallocated_only: Restrict to non-allocated sessions with
                positive active seconds

        Returns:
            Sessions ordered by start time
        """
        start, end = day_bounds(from_date, to_date)
        query = self.session.query(WorkSession).filter(
            WorkSession.workspace_id == workspace_id,
            WorkSession.end_at.is_not(None),
            WorkSession.start_at >= start,
            WorkSession.start_at < end,
        )
        if unallocated_only:
            query = query.filter(
                WorkSession.is_allocated.is_(False),
                WorkSession.active_seconds > 0,
            )
        return query.order_by(WorkSession.start_at).all()

    def unallocated_sessions(
        self,
        workspace_id: uuid.UUID,
        since: Optional[datetime] = None,
        ids: Optional[Iterable[uuid.UUID]] = None,
    ) -> List[WorkSession]:
        """
        Get closed, non-allocated sessions with positive active seconds.

        Args:
            workspace_id: Workspace UUID
            since: Only sessions starting at or after this time
            ids: Only sessions among these ids

        Returns:
            Sessions ordered by start time
        """
        query = self.session.query(WorkSession).filter(
            WorkSession.workspace_id == workspace_id,
            WorkSession.end_at.is_not(None),
            WorkSession.is_allocated.is_(False),
            WorkSession.active_seconds > 0,
        )
        if since is not None:
            query = query.filter(WorkSession.start_at >= since)
        if ids is not None:
            query = query.filter(WorkSession.id.in_(list(ids)))
        return query.order_by(WorkSession.start_at).all()

    def mark_allocated(self, ids: Iterable[uuid.UUID]) -> int:
        """
        Flag sessions as allocated.

        Args:
            ids: Session UUIDs

        Returns:
            Number of rows updated
        """
        id_list = list(ids)
        if not id_list:
            return 0

        result = self.session.execute(
            update(WorkSession)
            .where(WorkSession.id.in_(id_list))
            .values(is_allocated=True)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def total_active_seconds(
        self, workspace_id: uuid.UUID, from_date: date, to_date: date
    ) -> int:
        """Sum active seconds of all sessions starting within a date range."""
        start, end = day_bounds(from_date, to_date)
        total = (
            self.session.query(func.coalesce(func.sum(WorkSession.active_seconds), 0))
            .filter(
                WorkSession.workspace_id == workspace_id,
                WorkSession.start_at >= start,
                WorkSession.start_at < end,
            )
            .scalar()
        )
        return int(total or 0)

    def unallocated_seconds(self, workspace_id: uuid.UUID) -> int:
        """Sum active seconds of closed sessions not yet allocated."""
        total = (
            self.session.query(func.coalesce(func.sum(WorkSession.active_seconds), 0))
            .filter(
                WorkSession.workspace_id == workspace_id,
                WorkSession.end_at.is_not(None),
                WorkSession.is_allocated.is_(False),
            )
            .scalar()
        )
        return int(total or 0)

    def delete_before(self, before: datetime) -> int:
        """
        Delete closed sessions that started before a cutoff.

        Open sessions are kept regardless of age.

        Returns:
            Number of deleted sessions
        """
        deleted = (
            self.session.query(WorkSession)
            .filter(WorkSession.start_at < before, WorkSession.end_at.is_not(None))
            .delete(synchronize_session=False)
        )
        logger.info(f"Deleted {deleted} sessions started before {before.isoformat()}")
        return deleted
