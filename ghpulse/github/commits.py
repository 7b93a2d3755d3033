"""Commit listing for a single repository and date window."""

from __future__ import annotations

import typing as typ

from ghpulse.common.slug import repo_slug
from ghpulse.common.time import to_github_timestamp

from .errors import GitHubError, classify_error
from .models import Commit, commit_from_payload
from .observability import ActivityEventLogger

if typ.TYPE_CHECKING:
    import datetime as dt

    from .context import AuthenticatedContext


class CommitCollector(typ.Protocol):
    """Callable shape used by the batch orchestrator for one repository."""

    async def __call__(  # noqa: PLR0913
        self,
        context: AuthenticatedContext,
        owner: str,
        repo: str,
        since: dt.datetime,
        until: dt.datetime,
        author: str | None = None,
    ) -> list[Commit]:
        """Return the commits of ``owner/repo`` inside the window."""
        ...


async def collect_commits(  # noqa: PLR0913
    context: AuthenticatedContext,
    owner: str,
    repo: str,
    since: dt.datetime,
    until: dt.datetime,
    author: str | None = None,
    *,
    per_page: int = 100,
) -> list[Commit]:
    """Return every commit of ``owner/repo`` authored within the window.

    ``since`` and ``until`` must be timezone-aware and are sent to GitHub as
    UTC instants. ``author`` is passed through untouched; GitHub matches it
    against logins and commit e-mail addresses.

    A failure is classified and raised rather than turned into an empty
    list, so callers can tell "no commits" from "could not fetch".

    Raises
    ------
    ValueError
        If ``since`` or ``until`` is naive.
    GitHubError
        For any failure while listing.

    """
    slug = repo_slug(owner, repo)
    params: dict[str, str | int] = {
        "since": to_github_timestamp(since, field="since"),
        "until": to_github_timestamp(until, field="until"),
        "per_page": per_page,
    }
    if author:
        params["author"] = author

    try:
        items = await context.paginate(f"/repos/{slug}/commits", params=params)
        commits = [commit_from_payload(item, repository=slug) for item in items]
    except GitHubError as exc:
        exc.context.setdefault("repository", slug)
        raise
    except Exception as exc:  # noqa: BLE001
        classify_error(
            exc,
            {"operation": "collect_commits", "repository": slug, "author": author},
        )

    ActivityEventLogger().log_commits_fetched(slug, len(commits), author=author)
    return commits
