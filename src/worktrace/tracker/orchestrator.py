"""
Workspace orchestrator.

Owns one tracker per workspace root: an aggregator, the open session, and
an optional commit watcher. Activity events, idle sweeps and discovered
commits all flow through here into the store.

All state changes happen in synchronous sections on the event loop. The
only awaits are around git queries; after each one the registry is
re-checked so a workspace removed in the meantime is never written to.
"""

import asyncio
import logging
import uuid
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from sqlalchemy.orm import Session

from worktrace.config import settings
from worktrace.db.connection import db_session
from worktrace.db.repositories.session import WorkSessionRepository
from worktrace.db.repositories.work_item import WorkItemRepository
from worktrace.db.repositories.workspace import WorkspaceRepository
from worktrace.exceptions import WorkItemNotFoundError, WorkspaceNotFoundError
from worktrace.git.providers import build_commit_url
from worktrace.git.service import GitCommit, GitService
from worktrace.git.watcher import CommitWatcher
from worktrace.models.db import (
    Allocation,
    WorkItem,
    WorkItemType,
    ensure_aware,
    utc_now,
)
from worktrace.tracker.aggregator import ActivityAggregator
from worktrace.tracker.allocation import AllocationEngine
from worktrace.tracker.events import ActivityEvent
from worktrace.tracker.idle_policy import IdleConfig, IdlePolicy

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200

SessionFactory = Callable[[], AbstractContextManager[Session]]


def normalize_root(root: str | Path) -> str:
    """Canonical registry key for a workspace root."""
    return str(Path(root).expanduser().resolve())


@dataclass
class TrackerState:
    """Runtime state of one tracked workspace."""

    workspace_id: uuid.UUID
    name: str
    root: str
    session_id: uuid.UUID
    aggregator: ActivityAggregator
    repo: str
    branch: Optional[str] = None
    repo_root: Optional[str] = None
    remote_url: Optional[str] = None
    watcher: Optional[CommitWatcher] = None
    # True until the open session sees its first activity
    pristine: bool = True
    # Capped end of the last session closed by an idle sweep; events at or
    # before it were already credited there
    closed_until: Optional[datetime] = None


@dataclass
class WorkItemResult:
    """A work item together with the allocations it claimed."""

    work_item: WorkItem
    allocations: list[Allocation] = field(default_factory=list)
    created: bool = True


@dataclass
class TrackingSummary:
    active_seconds: int
    workspace_count: int
    workspaces: list[str]


class TrackerRegistry:
    """Tracked workspaces keyed by normalized root path."""

    def __init__(self) -> None:
        self._by_root: dict[str, TrackerState] = {}

    def add(self, state: TrackerState) -> None:
        if state.root in self._by_root:
            raise ValueError(f"Workspace root already tracked: {state.root}")
        self._by_root[state.root] = state

    def remove(self, root: str | Path) -> Optional[TrackerState]:
        return self._by_root.pop(normalize_root(root), None)

    def get(self, root: str | Path) -> Optional[TrackerState]:
        return self._by_root.get(normalize_root(root))

    def get_by_workspace_id(self, workspace_id: uuid.UUID) -> Optional[TrackerState]:
        for state in self._by_root.values():
            if state.workspace_id == workspace_id:
                return state
        return None

    def roots(self) -> list[str]:
        return list(self._by_root)

    def __contains__(self, root: object) -> bool:
        return isinstance(root, (str, Path)) and normalize_root(root) in self._by_root

    def __iter__(self) -> Iterator[TrackerState]:
        return iter(list(self._by_root.values()))

    def __len__(self) -> int:
        return len(self._by_root)


class WorkspaceOrchestrator:
    """
    Coordinates tracking across workspace roots.

    Args:
        session_factory: Context manager factory yielding a committed-on-exit
            SQLAlchemy session (defaults to db_session)
        git: Source-control collaborator
        policy: Idle policy shared by every aggregator
        clock: Returns the current (timezone-aware) time
        poll_interval: Commit watcher polling interval in seconds
        backfill_days: Commit history scanned when a root is added (0 = off)
        backfill_limit: Maximum commits considered during backfill
        watch_commits: Subscribe repositories to the commit watcher
    """

    def __init__(
        self,
        session_factory: SessionFactory = db_session,
        git: Optional[GitService] = None,
        policy: Optional[IdlePolicy] = None,
        clock: Callable[[], datetime] = utc_now,
        poll_interval: Optional[float] = None,
        backfill_days: Optional[int] = None,
        backfill_limit: Optional[int] = None,
        watch_commits: bool = True,
    ):
        self.session_factory = session_factory
        self.git = git or GitService()
        self.policy = policy or IdlePolicy(
            IdleConfig(
                threshold_minutes=settings.idle_threshold_minutes,
                check_interval_seconds=settings.idle_check_interval_seconds,
            )
        )
        self.clock = clock
        self.poll_interval = (
            settings.git_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.backfill_days = (
            settings.git_backfill_days if backfill_days is None else backfill_days
        )
        self.backfill_limit = (
            settings.git_backfill_limit if backfill_limit is None else backfill_limit
        )
        self.watch_commits = watch_commits
        self.registry = TrackerRegistry()
        self._sweep_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self, roots: Sequence[str | Path] = ()) -> None:
        """Track the given roots and start the periodic idle sweep."""
        for root in roots:
            try:
                await self.add_workspace(root)
            except OSError as e:
                logger.error(f"Cannot track {root}: {e}")

        if not self.is_running:
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="idle-sweep")
        logger.info(
            f"Tracking {len(self.registry)} workspace(s), idle threshold "
            f"{self.policy.config.threshold_minutes}m"
        )

    async def stop(self) -> None:
        """Cancel the sweep, close every open session and dispose all watchers."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        for state in self.registry:
            try:
                self.remove_workspace(state.root)
            except Exception as e:
                logger.error(f"Failed to close session for {state.name}: {e}", exc_info=True)
        logger.info("Orchestrator stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.policy.config.check_interval_seconds)
            self.sweep()

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    async def add_workspace(
        self, root: str | Path, name: Optional[str] = None
    ) -> TrackerState:
        """
        Start tracking a workspace root.

        Adding a root that is already tracked returns the existing tracker.

        Args:
            root: Workspace folder
            name: Display name (defaults to the folder name)

        Returns:
            The tracker state for the root

        Raises:
            NotADirectoryError: If root is not an existing directory
        """
        key = normalize_root(root)
        existing = self.registry.get(key)
        if existing is not None:
            return existing
        if not Path(key).is_dir():
            raise NotADirectoryError(f"Workspace root is not a directory: {root}")

        repo_root = await asyncio.to_thread(self.git.repo_root, key)
        branch = remote_url = None
        if repo_root is not None:
            branch = await asyncio.to_thread(self.git.current_branch, repo_root)
            remote_url = await asyncio.to_thread(self.git.remote_url, repo_root)

        # Another caller may have added the same root while git was queried
        existing = self.registry.get(key)
        if existing is not None:
            return existing

        folder_name = Path(key).name or key
        repo = self.git.parse_repo_name(remote_url) if remote_url else folder_name
        now = self.clock()

        with self.session_factory() as db:
            workspace = WorkspaceRepository(db).get_or_create(key, name=name)
            sessions = WorkSessionRepository(db)
            leftover = sessions.get_open_session(workspace.id)
            if leftover is not None:
                # Left open by a previous run; close it at its last checkpoint
                sessions.close_at_checkpoint(leftover.id)
            work_session = sessions.create_session(
                workspace_id=workspace.id, repo=repo, start_at=now, branch=branch
            )
            state = TrackerState(
                workspace_id=workspace.id,
                name=workspace.name,
                root=key,
                session_id=work_session.id,
                aggregator=ActivityAggregator(self.policy),
                repo=repo,
                branch=branch,
                repo_root=repo_root,
                remote_url=remote_url,
            )

        self.registry.add(state)
        logger.info(f"Tracking workspace {state.name} ({key}) as {repo}")

        if repo_root is not None:
            await self._backfill_commits(state)
            if self.watch_commits and self.registry.get(key) is state:
                state.watcher = CommitWatcher(
                    self.git,
                    repo_root,
                    lambda commit: self.handle_commit(state.workspace_id, commit),
                    interval_seconds=self.poll_interval,
                )
                await state.watcher.start()
                if self.registry.get(key) is not state:
                    state.watcher.dispose()
        return state

    def remove_workspace(self, root: str | Path, deactivate: bool = False) -> bool:
        """
        Stop tracking a root and close its session.

        Args:
            root: Workspace folder
            deactivate: Also mark the workspace inactive in the store

        Returns:
            True if the root was tracked
        """
        state = self.registry.remove(root)
        if state is None:
            return False
        if state.watcher is not None:
            state.watcher.dispose()

        now = self.clock()
        # Apply the idle cap the sweep would have applied
        state.aggregator.check_idle(now)
        total = state.aggregator.end_session(now)
        with self.session_factory() as db:
            WorkSessionRepository(db).update_session(
                state.session_id, end_at=now, active_seconds=total
            )
            if deactivate:
                WorkspaceRepository(db).deactivate(state.workspace_id)

        logger.info(f"Stopped tracking {state.name} ({total}s in final session)")
        return True

    # ------------------------------------------------------------------
    # Activity and idle sweep
    # ------------------------------------------------------------------

    def record_activity(self, root: str | Path, event: ActivityEvent) -> bool:
        """
        Forward an activity event to the workspace's aggregator.

        Returns:
            False if the root is not tracked (the event is dropped)
        """
        state = self.registry.get(root)
        if state is None:
            logger.debug(f"Dropping {event.type.value} event for untracked root {root}")
            return False

        timestamp = ensure_aware(event.timestamp)
        if state.closed_until is not None and timestamp <= state.closed_until:
            logger.debug(
                f"Ignoring late {event.type.value} event for {state.name}: "
                f"{timestamp.isoformat()} falls in a closed session"
            )
            return True

        state.aggregator.record_activity(timestamp)
        if state.pristine:
            state.pristine = False
            self._reanchor_session(state, timestamp)
        return True

    def _reanchor_session(self, state: TrackerState, start_at: datetime) -> None:
        try:
            with self.session_factory() as db:
                sessions = WorkSessionRepository(db)
                work_session = sessions.get(state.session_id)
                if work_session is not None and start_at > work_session.start_at:
                    sessions.update_session(state.session_id, start_at=start_at)
        except Exception as e:
            logger.warning(f"Could not re-anchor session for {state.name}: {e}")

    def sweep(self, now: Optional[datetime] = None) -> None:
        """
        Run one idle check over every tracked workspace.

        Workspaces that just went idle get their session closed and a fresh
        one opened; active ones get their seconds checkpointed.
        """
        now = now or self.clock()
        for state in self.registry:
            try:
                self._sweep_workspace(state, now)
            except Exception as e:
                logger.error(f"Idle sweep failed for {state.name}: {e}", exc_info=True)

    def _sweep_workspace(self, state: TrackerState, now: datetime) -> None:
        aggregator = state.aggregator
        if not aggregator.is_active:
            return

        if not aggregator.check_idle(now):
            seconds = aggregator.get_accumulated_seconds(now)
            if seconds > 0:
                with self.session_factory() as db:
                    WorkSessionRepository(db).update_session(
                        state.session_id, active_seconds=seconds
                    )
            return

        total = aggregator.get_accumulated_seconds(now)
        closed_until = aggregator.last_activity + self.policy.threshold
        with self.session_factory() as db:
            sessions = WorkSessionRepository(db)
            sessions.update_session(state.session_id, end_at=now, active_seconds=total)
            fresh = sessions.create_session(
                workspace_id=state.workspace_id,
                repo=state.repo,
                start_at=now,
                branch=state.branch,
            )
        aggregator.end_session(now)
        state.session_id = fresh.id
        state.pristine = True
        state.closed_until = closed_until
        logger.debug(f"{state.name} went idle; closed session with {total}s")

    def update_idle_threshold(self, minutes: float) -> IdleConfig:
        """Change the idle threshold for every tracker."""
        config = self.policy.update_config(threshold_minutes=minutes)
        logger.info(f"Idle threshold set to {minutes}m")
        return config

    def summary(self, now: Optional[datetime] = None) -> TrackingSummary:
        """Active seconds of the open sessions across tracked workspaces."""
        now = now or self.clock()
        states = list(self.registry)
        return TrackingSummary(
            active_seconds=sum(s.aggregator.get_accumulated_seconds(now) for s in states),
            workspace_count=len(states),
            workspaces=[s.name for s in states],
        )

    # ------------------------------------------------------------------
    # Work items
    # ------------------------------------------------------------------

    async def handle_commit(
        self, workspace_id: uuid.UUID, commit: GitCommit
    ) -> Optional[WorkItemResult]:
        """
        Record a discovered commit as a work item and allocate time to it.

        Re-delivery of a known commit is ignored.

        Returns:
            The result, or None if the commit was already known or the
            workspace is no longer tracked
        """
        state = self.registry.get_by_workspace_id(workspace_id)
        if state is None or state.repo_root is None:
            return None
        if self._known_commit(workspace_id, commit.sha):
            return None

        is_merge = await asyncio.to_thread(
            self.git.is_merge_commit, state.repo_root, commit.sha
        )
        if self.registry.get_by_workspace_id(workspace_id) is not state:
            return None

        # Checked again: a concurrent delivery may have won during the await
        if self._known_commit(workspace_id, commit.sha):
            return None

        url = None
        if state.remote_url:
            url = build_commit_url(state.remote_url, state.repo, commit.sha)
        return self._record_work_item(
            workspace_id=workspace_id,
            repo=state.repo,
            type=WorkItemType.MERGE if is_merge else WorkItemType.COMMIT,
            title=commit.title[:MAX_TITLE_LENGTH],
            detail=commit.message,
            occurred_at=commit.date,
            url=url,
            external_id=commit.sha,
        )

    def submit_work_item(
        self,
        workspace_id: uuid.UUID,
        title: str,
        occurred_at: Optional[datetime] = None,
        detail: Optional[str] = None,
        url: Optional[str] = None,
        external_id: Optional[str] = None,
        session_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> WorkItemResult:
        """
        Record a manual work item and allocate time to it.

        Args:
            workspace_id: Owning workspace
            title: Short description
            occurred_at: When the work was delivered (defaults to now)
            detail: Longer description
            url: Link to the work
            external_id: Optional identifier; a known one returns the
                existing item without allocating again
            session_ids: Explicit sessions to allocate instead of the
                default window

        Raises:
            WorkspaceNotFoundError: If the workspace does not exist
        """
        with self.session_factory() as db:
            workspace = WorkspaceRepository(db).get(workspace_id)
            if workspace is None:
                raise WorkspaceNotFoundError(workspace_id)
            if external_id is not None:
                existing = WorkItemRepository(db).get_by_external_id(
                    workspace_id, external_id
                )
                if existing is not None:
                    return WorkItemResult(work_item=existing, created=False)
            state = self.registry.get_by_workspace_id(workspace_id)
            repo = state.repo if state is not None else workspace.name

        return self._record_work_item(
            workspace_id=workspace_id,
            repo=repo,
            type=WorkItemType.MANUAL,
            title=title[:MAX_TITLE_LENGTH],
            detail=detail,
            occurred_at=ensure_aware(occurred_at or self.clock()),
            url=url,
            external_id=external_id,
            session_ids=session_ids,
        )

    def _known_commit(self, workspace_id: uuid.UUID, sha: str) -> bool:
        with self.session_factory() as db:
            return WorkItemRepository(db).get_by_external_id(workspace_id, sha) is not None

    def _record_work_item(
        self,
        session_ids: Optional[Sequence[uuid.UUID]] = None,
        **fields,
    ) -> WorkItemResult:
        # The work item is committed on its own so an allocation failure
        # leaves it in place
        with self.session_factory() as db:
            work_item = WorkItemRepository(db).create_work_item(**fields)
        logger.info(f"Recorded {work_item.type.value} work item: {work_item.title}")

        result = WorkItemResult(work_item=work_item)
        try:
            with self.session_factory() as db:
                target = db.get(WorkItem, work_item.id)
                if target is None:
                    raise WorkItemNotFoundError(work_item.id)
                result.allocations = AllocationEngine(db).allocate(
                    target, session_ids=session_ids
                )
        except Exception as e:
            logger.error(
                f"Allocation failed for work item {work_item.id}: {e}", exc_info=True
            )
        return result

    async def _backfill_commits(self, state: TrackerState) -> int:
        if self.backfill_days <= 0 or state.repo_root is None:
            return 0

        commits = await asyncio.to_thread(
            self.git.recent_commits,
            state.repo_root,
            f"{self.backfill_days} days ago",
            self.backfill_limit,
        )
        recorded = 0
        seen: set[str] = set()
        for commit in reversed(commits):
            if commit.sha in seen:
                continue
            seen.add(commit.sha)
            try:
                if await self.handle_commit(state.workspace_id, commit) is not None:
                    recorded += 1
            except Exception as e:
                logger.warning(f"Backfill skipped commit {commit.sha[:8]}: {e}")
        if recorded:
            logger.info(f"Backfilled {recorded} commit(s) for {state.name}")
        return recorded
