"""
Git hosting providers.

A closed table of providers, each with a detection predicate over the
remote URL and URL templates for commits and pull/merge requests.
Resolution is a first-match scan with GitHub as the fallback.
"""

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class GitProvider:
    """URL conventions of one hosting provider."""

    name: str
    detect: Callable[[str], bool]
    commit_url_template: str
    pr_url_template: str

    def commit_url(self, repo: str, sha: str) -> str:
        return self.commit_url_template.format(repo=repo, sha=sha)

    def pr_url(self, repo: str, number: int) -> str:
        return self.pr_url_template.format(repo=repo, number=number)


GITHUB = GitProvider(
    name="github",
    detect=lambda remote: "github.com" in remote,
    commit_url_template="https://github.com/{repo}/commit/{sha}",
    pr_url_template="https://github.com/{repo}/pull/{number}",
)

GITLAB = GitProvider(
    name="gitlab",
    detect=lambda remote: "gitlab.com" in remote,
    commit_url_template="https://gitlab.com/{repo}/-/commit/{sha}",
    pr_url_template="https://gitlab.com/{repo}/-/merge_requests/{number}",
)

BITBUCKET = GitProvider(
    name="bitbucket",
    detect=lambda remote: "bitbucket.org" in remote,
    commit_url_template="https://bitbucket.org/{repo}/commits/{sha}",
    pr_url_template="https://bitbucket.org/{repo}/pull-requests/{number}",
)

AZURE_DEVOPS = GitProvider(
    name="azure-devops",
    detect=lambda remote: "dev.azure.com" in remote or "visualstudio.com" in remote,
    # Simplified: {repo} is "org/project" as parsed from the remote
    commit_url_template="https://dev.azure.com/{repo}/commit/{sha}",
    pr_url_template="https://dev.azure.com/{repo}/pullrequest/{number}",
)

PROVIDERS: tuple[GitProvider, ...] = (GITHUB, GITLAB, BITBUCKET, AZURE_DEVOPS)
DEFAULT_PROVIDER = GITHUB


def detect_provider(remote_url: str) -> GitProvider:
    """Pick the provider whose predicate matches the remote URL."""
    for provider in PROVIDERS:
        if provider.detect(remote_url):
            return provider
    return DEFAULT_PROVIDER


def build_commit_url(remote_url: str, repo: str, sha: str) -> str:
    return detect_provider(remote_url).commit_url(repo, sha)


def build_pr_url(remote_url: str, repo: str, number: int) -> str:
    return detect_provider(remote_url).pr_url(repo, number)
