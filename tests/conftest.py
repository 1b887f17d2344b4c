"""
Pytest configuration and fixtures for WorkTrace tests.

This module provides shared fixtures for testing database models,
repositories, the tracker and the API.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Generator, Optional

import pytest
from sqlalchemy.orm import Session, sessionmaker

from worktrace.db.connection import create_db_engine
from worktrace.git.service import GitCommit
from worktrace.models.db import Base, WorkItem, WorkItemType, WorkSession, Workspace

@pytest.fixture
def test_engine(tmp_path):
    """Create a test database engine on a throwaway SQLite file."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'worktrace-test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> sessionmaker:
    return sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_maker) -> Generator[Session, None, None]:
    """Create a new database session for a test."""
    session = session_maker()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def session_factory(session_maker):
    """
    Context manager factory with the same commit/rollback contract as
    worktrace.db.connection.db_session, bound to the test database.
    """

    @contextmanager
    def factory() -> Generator[Session, None, None]:
        session = session_maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


@pytest.fixture
def sample_workspace(db_session: Session) -> Workspace:
    """Create a sample workspace for testing."""
    workspace = Workspace(path="/src/billing", name="billing")
    db_session.add(workspace)
    db_session.commit()
    return workspace


@pytest.fixture
def make_session(db_session: Session, sample_workspace: Workspace):
    """Factory for closed sessions of the sample workspace."""

    def _make(
        start_at: datetime,
        active_seconds: int,
        end_at: Optional[datetime] = None,
        is_allocated: bool = False,
        workspace: Optional[Workspace] = None,
    ) -> WorkSession:
        work_session = WorkSession(
            workspace_id=(workspace or sample_workspace).id,
            repo="acme/billing",
            branch="main",
            start_at=start_at,
            end_at=end_at or start_at + timedelta(seconds=active_seconds),
            active_seconds=active_seconds,
            is_allocated=is_allocated,
        )
        db_session.add(work_session)
        db_session.commit()
        return work_session

    return _make


@pytest.fixture
def make_work_item(db_session: Session, sample_workspace: Workspace):
    """Factory for work items of the sample workspace."""

    def _make(
        occurred_at: datetime,
        external_id: Optional[str] = None,
        title: str = "Fix rounding in invoices",
        workspace: Optional[Workspace] = None,
    ) -> WorkItem:
        work_item = WorkItem(
            workspace_id=(workspace or sample_workspace).id,
            repo="acme/billing",
            type=WorkItemType.COMMIT,
            title=title,
            occurred_at=occurred_at,
            external_id=external_id,
        )
        db_session.add(work_item)
        db_session.commit()
        return work_item

    return _make


class FakeGitService:
    """In-memory stand-in for GitService with scripted answers."""

    def __init__(
        self,
        repo_root: Optional[str] = None,
        branch: Optional[str] = "main",
        remote: Optional[str] = "git@github.com:acme/billing.git",
        commits: Optional[list[GitCommit]] = None,
        merges: Optional[set[str]] = None,
    ):
        self.root = repo_root
        self.branch = branch
        self.remote = remote
        self.commits = list(commits or [])
        self.merges = set(merges or ())
        self.head: Optional[str] = None
        self.merge_checks: list[str] = []

    def repo_root(self, path):
        return self.root

    def current_branch(self, repo_path):
        return self.branch

    def remote_url(self, repo_path, remote_name="origin"):
        return self.remote

    def head_sha(self, repo_path):
        return self.head

    def recent_commits(self, repo_path, since=None, limit=100):
        return list(reversed(self.commits))[:limit]

    def commits_since(self, repo_path, since_sha):
        return []

    def is_merge_commit(self, repo_path, sha="HEAD"):
        self.merge_checks.append(sha)
        return sha in self.merges

    def parse_repo_name(self, remote_url):
        from worktrace.git.service import parse_repo_name

        return parse_repo_name(remote_url)


@pytest.fixture
def fake_git():
    return FakeGitService()
