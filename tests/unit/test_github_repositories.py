"""Unit tests for repository discovery."""

from __future__ import annotations

import typing as typ

import pytest

from ghpulse.github import ActivityConfig
from ghpulse.github.errors import ErrorKind, GitHubError
from ghpulse.github.models import repository_from_payload
from ghpulse.github.observability import ActivityEventType
from ghpulse.github.repositories import (
    collect_installation_repositories,
    collect_repositories,
    dedupe_repositories,
)
from tests.support.fake_github import Failure, repo_payload

if typ.TYPE_CHECKING:
    from tests.support.fake_github import FakeGitHub
    from tests.support.fake_logger import FakeLogger


def test_dedupe_keeps_first_occurrence() -> None:
    """Later duplicates are dropped and order is preserved."""
    first = repository_from_payload(repo_payload("octo/reef", repo_id=1))
    second = repository_from_payload(repo_payload("octo/kelp", repo_id=2))
    duplicate = repository_from_payload(repo_payload("octo/reef", repo_id=99))

    unique = dedupe_repositories([first, second, duplicate])

    assert unique == [first, second]
    assert dedupe_repositories(unique) == unique


@pytest.mark.asyncio
async def test_collect_unions_affiliated_and_org_repositories(
    github: FakeGitHub, event_log: FakeLogger
) -> None:
    """Organisation listings extend the affiliated listing without duplicates."""
    github.user_repos = [repo_payload("octocat/dotfiles"), repo_payload("octo-org/api")]
    github.orgs = ["octo-org"]
    github.org_repos = {
        "octo-org": [repo_payload("octo-org/api"), repo_payload("octo-org/web")]
    }

    async with github.context() as context:
        repositories = await collect_repositories(context, ActivityConfig())

    assert [repo.full_name for repo in repositories] == [
        "octocat/dotfiles",
        "octo-org/api",
        "octo-org/web",
    ]
    [(_, completed)] = event_log.matching(ActivityEventType.DISCOVERY_COMPLETED)
    assert "collected=4 unique=3 duplicates_removed=1" in completed


@pytest.mark.asyncio
async def test_collect_merges_two_organisations_across_pages(
    github: FakeGitHub,
) -> None:
    """Multi-page listings from two organisations are merged without loss."""
    github.user_repos = [
        repo_payload("octocat/dotfiles"),
        repo_payload("octo-org/api"),
        repo_payload("reef-labs/sonar"),
    ]
    github.orgs = ["octo-org", "reef-labs"]
    github.org_repos = {
        "octo-org": [repo_payload("octo-org/api"), repo_payload("octo-org/web")],
        "reef-labs": [
            repo_payload("reef-labs/sonar"),
            repo_payload("reef-labs/tide"),
            repo_payload("reef-labs/kelp"),
        ],
    }

    async with github.context(per_page=1) as context:
        repositories = await collect_repositories(context, ActivityConfig(per_page=1))

    assert [repo.full_name for repo in repositories] == [
        "octocat/dotfiles",
        "octo-org/api",
        "reef-labs/sonar",
        "octo-org/web",
        "reef-labs/tide",
        "reef-labs/kelp",
    ]
    assert github.paths.count("/orgs/reef-labs/repos") == 3, (
        "Expected every page of the organisation listing to be fetched."
    )


@pytest.mark.asyncio
async def test_affiliated_listing_requests_every_affiliation(
    github: FakeGitHub,
) -> None:
    """The combined listing asks for owner, collaborator and org member access."""
    async with github.context() as context:
        await collect_repositories(context, ActivityConfig(per_page=40))

    [listing] = [r for r in github.requests if r.url.path == "/user/repos"]
    assert listing.url.params["affiliation"] == (
        "owner,collaborator,organization_member"
    )
    assert listing.url.params["visibility"] == "all"
    assert listing.url.params["per_page"] == "40"


@pytest.mark.asyncio
async def test_failing_organisation_is_skipped(
    github: FakeGitHub, event_log: FakeLogger
) -> None:
    """An organisation listing failure is logged and discovery continues."""
    github.user_repos = [repo_payload("octocat/dotfiles")]
    github.orgs = ["locked-org", "octo-org"]
    github.org_repos = {"octo-org": [repo_payload("octo-org/web")]}
    github.failures["/orgs/locked-org/repos"] = Failure(403, "SAML enforcement")

    async with github.context() as context:
        repositories = await collect_repositories(context, ActivityConfig())

    assert [repo.full_name for repo in repositories] == [
        "octocat/dotfiles",
        "octo-org/web",
    ]
    [(level, message)] = event_log.matching(ActivityEventType.DISCOVERY_ORG_SKIPPED)
    assert level == "WARNING"
    assert "org=locked-org" in message


@pytest.mark.asyncio
async def test_organisation_enumeration_failure_is_tolerated(
    github: FakeGitHub, event_log: FakeLogger
) -> None:
    """If organisations cannot be listed the affiliated result still returns."""
    github.user_repos = [repo_payload("octocat/dotfiles")]
    github.failures["/user/orgs"] = Failure(500)

    async with github.context() as context:
        repositories = await collect_repositories(context, ActivityConfig())

    assert [repo.full_name for repo in repositories] == ["octocat/dotfiles"]
    assert event_log.matching(ActivityEventType.DISCOVERY_ORGS_UNAVAILABLE)


@pytest.mark.asyncio
async def test_missing_scope_stops_before_listing(github: FakeGitHub) -> None:
    """Without the required scope no listing endpoint is called."""
    github.scopes = ("read:org",)

    async with github.context() as context:
        with pytest.raises(GitHubError) as excinfo:
            await collect_repositories(context, ActivityConfig())

    assert excinfo.value.kind is ErrorKind.AUTH
    assert github.paths == ["/user"]


@pytest.mark.asyncio
async def test_primary_listing_failure_is_raised(github: FakeGitHub) -> None:
    """The affiliated listing is mandatory."""
    github.failures["/user/repos"] = Failure(
        403,
        "API rate limit exceeded",
        {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1900000000"},
    )

    async with github.context() as context:
        with pytest.raises(GitHubError) as excinfo:
            await collect_repositories(context, ActivityConfig())

    assert excinfo.value.kind is ErrorKind.RATE_LIMIT
    assert excinfo.value.reset_at_unix_seconds == 1_900_000_000
    assert excinfo.value.context == {"operation": "list_user_repositories"}


@pytest.mark.asyncio
async def test_unavailable_quota_does_not_block_discovery(
    github: FakeGitHub,
) -> None:
    """The quota check is advisory."""
    github.user_repos = [repo_payload("octocat/dotfiles")]
    github.rate_limit_unreachable = True

    async with github.context() as context:
        repositories = await collect_repositories(context, ActivityConfig())

    assert len(repositories) == 1


@pytest.mark.asyncio
async def test_installation_discovery_skips_scope_check(github: FakeGitHub) -> None:
    """Installation tokens list their repositories without a scope check."""
    github.scopes = ()
    github.installation_repos = [
        repo_payload("octo-org/api"),
        repo_payload("octo-org/web"),
    ]

    async with github.context(per_page=1) as context:
        repositories = await collect_installation_repositories(
            context, ActivityConfig(per_page=1)
        )

    assert [repo.full_name for repo in repositories] == ["octo-org/api", "octo-org/web"]
    assert "/user" not in github.paths


@pytest.mark.asyncio
async def test_installation_discovery_failure_is_classified(
    github: FakeGitHub,
) -> None:
    """Installation listing failures are raised with their operation."""
    github.failures["/installation/repositories"] = Failure(401, "Bad credentials")

    async with github.context() as context:
        with pytest.raises(GitHubError) as excinfo:
            await collect_installation_repositories(context, ActivityConfig())

    assert excinfo.value.kind is ErrorKind.AUTH
    assert excinfo.value.context["operation"] == "list_installation_repositories"
