"""Tests for the git hosting provider table."""

import pytest

from worktrace.git.providers import (
    DEFAULT_PROVIDER,
    build_commit_url,
    build_pr_url,
    detect_provider,
)


@pytest.mark.parametrize(
    "remote,name",
    [
        ("git@github.com:acme/billing.git", "github"),
        ("https://gitlab.com/acme/billing.git", "gitlab"),
        ("git@bitbucket.org:acme/billing.git", "bitbucket"),
        ("https://dev.azure.com/acme/billing", "azure-devops"),
        ("https://acme.visualstudio.com/billing", "azure-devops"),
    ],
)
def test_detect_provider(remote, name):
    assert detect_provider(remote).name == name


def test_unknown_host_falls_back_to_github():
    assert detect_provider("git@git.internal:team/tool.git") is DEFAULT_PROVIDER


def test_commit_urls():
    assert (
        build_commit_url("git@gitlab.com:acme/billing.git", "acme/billing", "abc")
        == "https://gitlab.com/acme/billing/-/commit/abc"
    )
    assert (
        build_commit_url("git@bitbucket.org:acme/billing.git", "acme/billing", "abc")
        == "https://bitbucket.org/acme/billing/commits/abc"
    )


def test_pr_urls():
    assert (
        build_pr_url("https://github.com/acme/billing", "acme/billing", 7)
        == "https://github.com/acme/billing/pull/7"
    )
    assert (
        build_pr_url("https://gitlab.com/acme/billing", "acme/billing", 7)
        == "https://gitlab.com/acme/billing/-/merge_requests/7"
    )
