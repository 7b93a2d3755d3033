"""Public entry points of the activity engine.

Each function borrows an :class:`~ghpulse.github.AuthenticatedContext` for
the duration of the call and never closes it. Failures are raised as
:class:`~ghpulse.github.GitHubError`; branch on ``error.kind``.
"""

from __future__ import annotations

import asyncio
import typing as typ

from .github import batch, rate_limit, repositories
from .github.config import ActivityConfig

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .github.context import AuthenticatedContext
    from .github.models import Commit, RateLimitInfo, Repository


async def discover_repositories(
    context: AuthenticatedContext,
    *,
    config: ActivityConfig | None = None,
) -> list[Repository]:
    """Return every repository the principal can see, deduplicated by name."""
    return await repositories.collect_repositories(context, config or ActivityConfig())


async def discover_installation_repositories(
    context: AuthenticatedContext,
    *,
    config: ActivityConfig | None = None,
) -> list[Repository]:
    """Return every repository a GitHub App installation can access."""
    return await repositories.collect_installation_repositories(
        context, config or ActivityConfig()
    )


async def fetch_commits(  # noqa: PLR0913
    context: AuthenticatedContext,
    repositories: cabc.Sequence[str],
    since: dt.datetime,
    until: dt.datetime,
    author: str | None = None,
    *,
    config: ActivityConfig | None = None,
    timeout: float | None = None,
) -> list[Commit]:
    """Return commits across ``owner/repo`` slugs within ``[since, until)``.

    ``timeout`` bounds the whole operation in seconds. When it expires,
    in-flight requests are cancelled, no further batches start, partial
    results are discarded and :class:`TimeoutError` is raised. Cancelling the
    awaiting task behaves the same way with :class:`asyncio.CancelledError`.
    """
    config = config or ActivityConfig()
    async with asyncio.timeout(timeout):
        return await batch.collect_many(
            context, repositories, since, until, author, config=config
        )


async def check_rate_limit(
    context: AuthenticatedContext,
    *,
    config: ActivityConfig | None = None,
) -> RateLimitInfo | None:
    """Return the current quota, or ``None`` when it could not be read."""
    return await rate_limit.check_rate_limit(context, config or ActivityConfig())
