"""Source-control collaborator: git queries, commit watching, provider URLs."""

from worktrace.git.providers import build_commit_url, build_pr_url, detect_provider
from worktrace.git.service import GitCommit, GitService, parse_repo_name
from worktrace.git.watcher import CommitWatcher

__all__ = [
    "CommitWatcher",
    "GitCommit",
    "GitService",
    "build_commit_url",
    "build_pr_url",
    "detect_provider",
    "parse_repo_name",
]
