"""
Git command wrapper.

Every query runs ``git`` in a subprocess. Failures (git missing, not a
repository, no commits yet, timeouts) degrade to None or an empty list:
tracking keeps running when git is momentarily unavailable.
"""

import logging
import re
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Record and field separators keep multi-line commit messages intact
_RECORD_SEP = "\x1e"
_FIELD_SEP = "\x1f"
_LOG_FORMAT = f"--pretty=format:{_RECORD_SEP}%H{_FIELD_SEP}%an{_FIELD_SEP}%aI{_FIELD_SEP}%B{_FIELD_SEP}"

_REPO_NAME_PATTERNS = [
    re.compile(r"github\.com[:/]([^/]+/[^/]+?)(?:\.git)?/?$"),
    re.compile(r"gitlab\.com[:/]([^/]+/[^/]+?)(?:\.git)?/?$"),
    re.compile(r"bitbucket\.org[:/]([^/]+/[^/]+?)(?:\.git)?/?$"),
    re.compile(r"dev\.azure\.com[:/]([^/]+/[^/]+?)(?:\.git)?/?$"),
    re.compile(r"[:/]([^/:]+/[^/]+?)(?:\.git)?/?$"),
]


@dataclass
class GitCommit:
    """A commit as reported by git log."""

    sha: str
    author: str
    date: datetime
    message: str
    files_changed: list[str] = field(default_factory=list)

    @property
    def title(self) -> str:
        """First line of the message."""
        return self.message.splitlines()[0] if self.message else ""


def parse_repo_name(remote_url: str) -> str:
    """
    Derive an ``owner/repo`` label from a remote URL.

    Handles SSH (git@host:owner/repo.git) and HTTPS forms; falls back to the
    last path component without ``.git``.
    """
    url = remote_url.strip()
    for pattern in _REPO_NAME_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    name = url.rstrip("/").rsplit("/", 1)[-1]
    return name[:-4] if name.endswith(".git") else name


def _parse_date(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_git_log(output: str) -> list[GitCommit]:
    """Parse output produced with _LOG_FORMAT and --name-only."""
    commits: list[GitCommit] = []
    for record in output.split(_RECORD_SEP):
        if not record.strip():
            continue
        parts = record.split(_FIELD_SEP)
        if len(parts) < 4:
            logger.debug(f"Skipping malformed git log record: {record[:80]!r}")
            continue
        sha, author, date_str, message = parts[:4]
        files_blob = parts[4] if len(parts) > 4 else ""
        try:
            commit_date = _parse_date(date_str)
        except ValueError:
            logger.debug(f"Skipping commit {sha} with unparseable date {date_str!r}")
            continue
        commits.append(
            GitCommit(
                sha=sha.strip(),
                author=author,
                date=commit_date,
                message=message.strip(),
                files_changed=[
                    line.strip() for line in files_blob.splitlines() if line.strip()
                ],
            )
        )
    return commits


class GitService:
    """Queries a git working tree through the git CLI."""

    def __init__(self, git_executable: str = "git", timeout: float = 10.0):
        self.git_executable = git_executable
        self.timeout = timeout

    def _run(self, cwd: str | Path, *args: str) -> Optional[str]:
        """Run a git command, returning stdout or None on any failure."""
        try:
            result = subprocess.run(
                [self.git_executable, *args],
                cwd=str(cwd),
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"git {' '.join(args)} failed in {cwd}: {e}")
            return None
        if result.returncode != 0:
            logger.debug(
                f"git {' '.join(args)} exited {result.returncode} in {cwd}: "
                f"{result.stderr.strip()}"
            )
            return None
        return result.stdout

    def repo_root(self, path: str | Path) -> Optional[str]:
        """Top-level directory of the repository containing path, or None."""
        output = self._run(path, "rev-parse", "--show-toplevel")
        return output.strip() if output else None

    def current_branch(self, repo_path: str | Path) -> Optional[str]:
        """Current branch name, or None (detached HEAD reports "HEAD")."""
        output = self._run(repo_path, "rev-parse", "--abbrev-ref", "HEAD")
        if output is None:
            # Fresh repository without commits
            output = self._run(repo_path, "symbolic-ref", "--short", "HEAD")
        return output.strip() if output else None

    def remote_url(self, repo_path: str | Path, remote_name: str = "origin") -> Optional[str]:
        output = self._run(repo_path, "remote", "get-url", remote_name)
        return output.strip() if output else None

    def head_sha(self, repo_path: str | Path) -> Optional[str]:
        output = self._run(repo_path, "rev-parse", "HEAD")
        return output.strip() if output else None

    def recent_commits(
        self, repo_path: str | Path, since: Optional[str] = None, limit: int = 100
    ) -> list[GitCommit]:
        """
        Most recent commits reachable from HEAD, newest first.

        Args:
            repo_path: Repository root
            since: git date expression, e.g. "7 days ago"
            limit: Maximum number of commits
        """
        args = ["log", _LOG_FORMAT, "--name-only", "-n", str(limit)]
        if since:
            args.append(f"--since={since}")
        output = self._run(repo_path, *args)
        return parse_git_log(output) if output else []

    def commits_since(self, repo_path: str | Path, since_sha: str) -> list[GitCommit]:
        """Commits in since_sha..HEAD, newest first."""
        output = self._run(
            repo_path, "log", _LOG_FORMAT, "--name-only", f"{since_sha}..HEAD"
        )
        return parse_git_log(output) if output else []

    def is_merge_commit(self, repo_path: str | Path, sha: str = "HEAD") -> bool:
        """True if the commit has a second parent."""
        output = self._run(repo_path, "rev-parse", "--verify", "--quiet", f"{sha}^2")
        return bool(output and output.strip())

    def parse_repo_name(self, remote_url: str) -> str:
        return parse_repo_name(remote_url)
