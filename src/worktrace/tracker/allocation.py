"""
Allocation engine.

Turns unallocated session time into dated Allocation rows when a new
WorkItem appears. Candidate sessions are grouped by the calendar date of
their start time; each date with a non-zero rounded total becomes one
Allocation. Every candidate session is flagged allocated, including those
in zero-hour dates, so no second pass can claim the same seconds.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from worktrace.config import settings
from worktrace.db.repositories.allocation import AllocationRepository
from worktrace.db.repositories.session import WorkSessionRepository
from worktrace.db.repositories.work_item import WorkItemRepository
from worktrace.models.db import Allocation, WorkItem, WorkSession

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = Decimal(3600)
HOURS_QUANTUM = Decimal("0.01")


def seconds_to_hours(total_seconds: int) -> float:
    """Convert seconds to hours rounded half-up to two decimals."""
    hours = (Decimal(total_seconds) / SECONDS_PER_HOUR).quantize(
        HOURS_QUANTUM, rounding=ROUND_HALF_UP
    )
    return float(hours)


def group_sessions_by_date(
    sessions: Iterable[WorkSession], tz_name: str = "UTC"
) -> dict[date, list[WorkSession]]:
    """Bucket sessions by the calendar date of their start time."""
    tz = ZoneInfo(tz_name)
    groups: dict[date, list[WorkSession]] = defaultdict(list)
    for work_session in sessions:
        groups[work_session.start_at.astimezone(tz).date()].append(work_session)
    return dict(groups)


@dataclass
class DateBucket:
    """Accounting decision for one calendar date."""

    date: date
    session_ids: list[uuid.UUID]
    total_seconds: int
    hours: float


class AllocationEngine:
    """
    Distributes unallocated session time over a WorkItem's dates.

    Args:
        session: SQLAlchemy session (the caller owns commit/close)
        lookback_days: When the workspace has no earlier WorkItem, ignore
            sessions that started more than this many days before the new
            item occurred. 0 disables the limit.
        tz_name: Timezone used to derive calendar dates
    """

    def __init__(
        self,
        session: Session,
        lookback_days: Optional[int] = None,
        tz_name: Optional[str] = None,
    ):
        self.session = session
        self.lookback_days = (
            settings.allocation_lookback_days if lookback_days is None else lookback_days
        )
        self.tz_name = tz_name or settings.allocation_timezone
        self.sessions = WorkSessionRepository(session)
        self.work_items = WorkItemRepository(session)
        self.allocations = AllocationRepository(session)

    def candidate_sessions(
        self,
        work_item: WorkItem,
        session_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> list[WorkSession]:
        """
        Select the sessions a work item may claim.

        Explicit ids are honored only for closed, unallocated sessions of
        the work item's own workspace. Otherwise the window starts at the
        previous WorkItem's occurrence time.
        """
        if session_ids is not None:
            if not session_ids:
                return []
            return self.sessions.unallocated_sessions(
                work_item.workspace_id, ids=session_ids
            )

        since = self.work_items.previous_occurred_at(
            work_item.workspace_id, exclude_id=work_item.id
        )
        if since is None and self.lookback_days > 0:
            since = work_item.occurred_at - timedelta(days=self.lookback_days)
        return self.sessions.unallocated_sessions(work_item.workspace_id, since=since)

    def plan(self, sessions: Iterable[WorkSession]) -> list[DateBucket]:
        """Compute per-date totals and rounded hours without writing."""
        buckets = []
        for day, day_sessions in sorted(
            group_sessions_by_date(sessions, self.tz_name).items()
        ):
            total = sum(s.active_seconds for s in day_sessions)
            buckets.append(
                DateBucket(
                    date=day,
                    session_ids=[s.id for s in day_sessions],
                    total_seconds=total,
                    hours=seconds_to_hours(total),
                )
            )
        return buckets

    def allocate(
        self,
        work_item: WorkItem,
        session_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> list[Allocation]:
        """
        Allocate unallocated session time to a work item.

        Selection, allocation inserts and flag updates run inside one
        savepoint: on any failure none of them persist and the exception
        propagates.

        Args:
            work_item: The newly discovered or submitted work item
            session_ids: Explicit sessions to allocate instead of the
                default window

        Returns:
            Created allocations (empty when there was nothing to allocate)
        """
        savepoint = self.session.begin_nested()
        try:
            candidates = self.candidate_sessions(work_item, session_ids)
            if not candidates:
                savepoint.commit()
                logger.debug(f"No unallocated sessions for work item {work_item.id}")
                return []

            created: list[Allocation] = []
            for bucket in self.plan(candidates):
                if bucket.hours > 0:
                    created.append(
                        self.allocations.create_allocation(
                            work_item_id=work_item.id,
                            date=bucket.date,
                            hours=bucket.hours,
                        )
                    )
                else:
                    logger.debug(
                        f"Skipping {bucket.date}: {bucket.total_seconds}s rounds to 0h"
                    )
                self.sessions.mark_allocated(bucket.session_ids)

            savepoint.commit()
        except Exception:
            savepoint.rollback()
            raise

        total_hours = sum(a.hours for a in created)
        logger.info(
            f"Allocated {total_hours:.2f}h over {len(created)} date(s) "
            f"from {len(candidates)} session(s) to work item {work_item.id}"
        )
        return created

    def update_hours(self, allocation_id: uuid.UUID, hours: float) -> Allocation:
        """Set an allocation's hours (non-negative, two decimals)."""
        if hours < 0:
            raise ValueError(f"Allocation hours must be non-negative, got {hours}")
        rounded = float(Decimal(str(hours)).quantize(HOURS_QUANTUM, ROUND_HALF_UP))
        return self.allocations.set_field(allocation_id, hours=rounded)

    def update_note(self, allocation_id: uuid.UUID, note: Optional[str]) -> Allocation:
        """Set an allocation's free-text note."""
        return self.allocations.set_field(allocation_id, note=note)

    def update_tag(self, allocation_id: uuid.UUID, tag: Optional[str]) -> Allocation:
        """Set an allocation's tag."""
        return self.allocations.set_field(allocation_id, tag=tag)

    def most_recent_allocation(self, workspace_id: uuid.UUID) -> Optional[Allocation]:
        """The newest allocation logged for a workspace."""
        return self.allocations.most_recent_for_workspace(workspace_id)

    def allocations_for_work_item(self, work_item_id: uuid.UUID) -> list[Allocation]:
        return self.allocations.get_for_work_item(work_item_id)
