"""
Polling commit watcher.

A cancellable subscription delivering new commits of a repository to a
callback. HEAD is polled on the running asyncio loop; when it moves, the
commits in old..new are delivered oldest first. Delivery is
at-least-once, so callbacks must de-duplicate (by commit SHA).
"""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from worktrace.git.service import GitCommit, GitService

logger = logging.getLogger(__name__)

CommitCallback = Callable[[GitCommit], Union[None, Awaitable[None]]]


class CommitWatcher:
    """Watches one repository for new commits."""

    def __init__(
        self,
        git: GitService,
        repo_path: Union[str, Path],
        callback: CommitCallback,
        interval_seconds: float = 10.0,
    ):
        self.git = git
        self.repo_path = str(repo_path)
        self.callback = callback
        self.interval_seconds = interval_seconds
        self._last_head: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Record the current HEAD and start polling."""
        if self.is_running:
            return
        self._last_head = await asyncio.to_thread(self.git.head_sha, self.repo_path)
        self._task = asyncio.create_task(
            self._poll_loop(), name=f"commit-watcher:{self.repo_path}"
        )
        logger.debug(f"Watching {self.repo_path} for commits (HEAD={self._last_head})")

    def dispose(self) -> None:
        """Cancel the subscription. No callback fires after this returns."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.callback = _noop

    async def poll_once(self) -> int:
        """
        Check HEAD once and deliver any new commits.

        Returns:
            Number of commits delivered
        """
        head = await asyncio.to_thread(self.git.head_sha, self.repo_path)
        if head is None or head == self._last_head:
            return 0

        previous = self._last_head
        self._last_head = head
        if previous is None:
            # First commit in a fresh repository, or git just became reachable
            return 0

        commits = await asyncio.to_thread(
            self.git.commits_since, self.repo_path, previous
        )
        delivered = 0
        for commit in reversed(commits):
            result = self.callback(commit)
            if inspect.isawaitable(result):
                await result
            delivered += 1
        return delivered

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Commit poll failed for {self.repo_path}: {e}")


def _noop(commit: GitCommit) -> None:
    return None
