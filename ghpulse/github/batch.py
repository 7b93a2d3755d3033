"""Bounded fan-out of commit listings with tiered author fallback.

Repositories are processed in fixed-size batches: listings inside a batch
run concurrently, batches run one after another. Peak concurrency therefore
equals ``ActivityConfig.batch_size``.

When an author filter yields nothing across every repository the whole pass
is repeated with progressively broader filters:

1. the requested author;
2. the owner login of the first repository (commits pushed by automation
   are often attributed to the owner account);
3. no author filter at all.

The first non-empty pass wins. Tier 3 deliberately over-reports instead of
returning nothing because of an author-matching mismatch.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import functools
import typing as typ

from ghpulse.common.slug import parse_repo_slug, repo_slug
from ghpulse.common.time import ensure_tzaware

from .commits import collect_commits
from .errors import GitHubError
from .observability import ActivityEventLogger, FallbackTier

if typ.TYPE_CHECKING:
    import datetime as dt

    from .commits import CommitCollector
    from .config import ActivityConfig
    from .context import AuthenticatedContext
    from .models import Commit


async def _gather_or_cancel[R](
    awaitables: cabc.Iterable[cabc.Awaitable[R]],
) -> list[R]:
    """Await all ``awaitables`` concurrently, cancelling the rest on failure."""
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def process_batches[T, R](
    items: cabc.Sequence[T],
    batch_size: int,
    worker: cabc.Callable[[T], cabc.Awaitable[list[R]]],
    *,
    on_batch: cabc.Callable[[int, int, int], None] | None = None,
) -> list[R]:
    """Run ``worker`` over ``items`` in sequential batches of concurrent calls.

    Parameters
    ----------
    items
        Work items, processed in order.
    batch_size
        Maximum number of concurrent ``worker`` calls.
    worker
        Coroutine function returning a list of results per item.
    on_batch
        Optional callback receiving ``(batch_number, batch_len, result_count)``
        after each batch joins.

    Returns
    -------
    list[R]
        Results concatenated in batch order, then item order within a batch.

    """
    if batch_size < 1:
        msg = f"batch_size must be positive, got: {batch_size}"
        raise ValueError(msg)

    results: list[R] = []
    for batch_number, start in enumerate(range(0, len(items), batch_size), start=1):
        batch = items[start : start + batch_size]
        batch_results = await _gather_or_cancel(worker(item) for item in batch)
        produced = 0
        for item_results in batch_results:
            results.extend(item_results)
            produced += len(item_results)
        if on_batch is not None:
            on_batch(batch_number, len(batch), produced)
    return results


def _parse_targets(repositories: cabc.Sequence[str]) -> list[tuple[str, str]]:
    """Split slugs, rejecting any that do not round-trip exactly.

    Commits carry the requested slug verbatim, so padded forms such as
    ``"octo/reef "`` are refused rather than normalised.
    """
    targets: list[tuple[str, str]] = []
    for slug in repositories:
        context = {"operation": "collect_many", "repository": slug}
        try:
            owner, repo = parse_repo_slug(slug)
        except ValueError as exc:
            raise GitHubError.config(str(exc), context=context) from exc
        if repo_slug(owner, repo) != slug:
            raise GitHubError.config(
                f"Invalid repository slug: surrounding whitespace in {slug!r}",
                context=context,
            )
        targets.append((owner, repo))
    return targets


def _check_window(since: dt.datetime, until: dt.datetime) -> None:
    for field, value in (("since", since), ("until", until)):
        try:
            ensure_tzaware(value, field=field)
        except ValueError as exc:
            raise GitHubError.config(
                str(exc), context={"operation": "collect_many", "field": field}
            ) from exc


def _fallback_tiers(
    targets: cabc.Sequence[tuple[str, str]],
    author: str | None,
) -> list[tuple[FallbackTier, str | None]]:
    if not author:
        return [(FallbackTier.NO_AUTHOR, None)]
    first_owner = targets[0][0]
    return [
        (FallbackTier.REQUESTED_AUTHOR, author),
        (FallbackTier.REPOSITORY_OWNER, first_owner),
        (FallbackTier.NO_AUTHOR, None),
    ]


async def collect_many(  # noqa: PLR0913
    context: AuthenticatedContext | None,
    repositories: cabc.Sequence[str],
    since: dt.datetime,
    until: dt.datetime,
    author: str | None = None,
    *,
    config: ActivityConfig,
    collector: CommitCollector | None = None,
    events: ActivityEventLogger | None = None,
) -> list[Commit]:
    """Collect commits for ``owner/repo`` slugs with tiered author fallback.

    Parameters
    ----------
    context
        Authenticated context shared by every concurrent listing.
    repositories
        ``owner/repo`` slugs. An empty sequence returns ``[]`` immediately.
    since, until
        Timezone-aware window bounds.
    author
        Optional author filter; enables the fallback tiers when given.
    config
        Supplies ``batch_size`` and the page size.
    collector
        Per-repository collector, :func:`collect_commits` by default.
    events
        Event logger; a fresh one is used when omitted.

    Raises
    ------
    GitHubError
        ``CONFIG`` for a missing context, a malformed slug or a naive window
        bound, raised before any request; otherwise the first failure of any
        repository listing, after its batch siblings are cancelled. No
        per-repository failure is swallowed.

    """
    if context is None:
        raise GitHubError.config(
            "An authenticated context is required to collect commits",
            context={"operation": "collect_many"},
        )
    if not repositories:
        return []

    targets = _parse_targets(repositories)
    _check_window(since, until)
    events = events or ActivityEventLogger()
    collect = collector or functools.partial(collect_commits, per_page=config.per_page)

    commits: list[Commit] = []
    tier, tier_author = FallbackTier.NO_AUTHOR, None
    for index, (tier, tier_author) in enumerate(_fallback_tiers(targets, author)):
        if index:
            events.log_fallback(tier, author=tier_author)

        def _worker(
            target: tuple[str, str],
            filter_author: str | None = tier_author,
        ) -> cabc.Awaitable[list[Commit]]:
            owner, repo = target
            return collect(context, owner, repo, since, until, filter_author)

        def _on_batch(
            batch_number: int,
            size: int,
            produced: int,
            current_tier: FallbackTier = tier,
        ) -> None:
            events.log_batch_completed(
                tier=current_tier,
                batch_number=batch_number,
                repositories=size,
                commits=produced,
            )

        commits = await process_batches(
            targets, config.batch_size, _worker, on_batch=_on_batch
        )
        if commits:
            break

    events.log_commits_completed(
        tier=tier,
        repositories=len(targets),
        commits=len(commits),
        author=tier_author,
    )
    return commits
