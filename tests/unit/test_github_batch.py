"""Unit tests for batched commit collection and author fallback."""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import typing as typ

import pytest

from ghpulse.github import ActivityConfig
from ghpulse.github.batch import collect_many, process_batches
from ghpulse.github.errors import ErrorKind, GitHubError
from ghpulse.github.models import Commit
from ghpulse.github.observability import ActivityEventType, FallbackTier

if typ.TYPE_CHECKING:
    from tests.support.fake_logger import FakeLogger

_SINCE = dt.datetime(2099, 1, 1, tzinfo=dt.UTC)
_UNTIL = dt.datetime(2099, 1, 8, tzinfo=dt.UTC)
_CONTEXT = typ.cast("typ.Any", object())


def _commit(owner: str, repo: str, login: str) -> Commit:
    return Commit(
        sha=f"{owner}-{repo}-{login}",
        message="Fix",
        author_name=login,
        author_date=_SINCE,
        repository=f"{owner}/{repo}",
        html_url="",
        author_login=login,
    )


@dataclasses.dataclass
class _RecordingCollector:
    """Fake per-repository collector recording calls and concurrency."""

    authors_by_repo: dict[str, list[str]] = dataclasses.field(default_factory=dict)
    fail_on: str | None = None
    calls: list[tuple[str, str | None]] = dataclasses.field(default_factory=list)
    cancelled: list[str] = dataclasses.field(default_factory=list)
    in_flight: int = 0
    peak: int = 0

    async def __call__(  # noqa: PLR0913
        self,
        context: object,
        owner: str,
        repo: str,
        since: dt.datetime,
        until: dt.datetime,
        author: str | None = None,
    ) -> list[Commit]:
        slug = f"{owner}/{repo}"
        self.calls.append((slug, author))
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if slug == self.fail_on:
                await asyncio.sleep(0)
                raise GitHubError.api("boom", status=500)
            await asyncio.sleep(0.01 if self.fail_on is None else 10)
        except asyncio.CancelledError:
            self.cancelled.append(slug)
            raise
        finally:
            self.in_flight -= 1
        return [
            _commit(owner, repo, login)
            for login in self.authors_by_repo.get(slug, [])
            if author is None or login == author
        ]


@pytest.mark.asyncio
async def test_process_batches_bounds_concurrency() -> None:
    """No more than ``batch_size`` workers run at once."""
    in_flight = 0
    peak = 0
    batches: list[tuple[int, int, int]] = []

    async def worker(item: int) -> list[int]:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return [item * 10]

    results = await process_batches(
        [1, 2, 3, 4, 5],
        2,
        worker,
        on_batch=lambda *args: batches.append(args),
    )

    assert results == [10, 20, 30, 40, 50]
    assert peak == 2
    assert batches == [(1, 2, 2), (2, 2, 2), (3, 1, 1)]


@pytest.mark.asyncio
async def test_process_batches_rejects_non_positive_size() -> None:
    """A batch size below one is a programming error."""

    async def worker(item: int) -> list[int]:
        return [item]

    with pytest.raises(ValueError, match="batch_size must be positive"):
        await process_batches([1], 0, worker)


@pytest.mark.asyncio
async def test_collect_many_respects_batch_size(event_log: FakeLogger) -> None:
    """Five repositories with batch size two run as batches of 2, 2 and 1."""
    repos = [f"octo/repo-{index}" for index in range(5)]
    collector = _RecordingCollector(
        authors_by_repo={slug: ["octocat"] for slug in repos}
    )

    commits = await collect_many(
        _CONTEXT,
        repos,
        _SINCE,
        _UNTIL,
        config=ActivityConfig(batch_size=2),
        collector=collector,
    )

    assert [commit.repository for commit in commits] == repos
    assert collector.peak == 2
    batch_lines = event_log.matching(ActivityEventType.COMMITS_BATCH_COMPLETED)
    assert [message.split(" repositories=")[1] for _, message in batch_lines] == [
        "2 commits=2",
        "2 commits=2",
        "1 commits=1",
    ]


@pytest.mark.asyncio
async def test_empty_repository_list_makes_no_calls() -> None:
    """No repositories means no collector calls and an empty result."""
    collector = _RecordingCollector()

    commits = await collect_many(
        _CONTEXT,
        [],
        _SINCE,
        _UNTIL,
        "octocat",
        config=ActivityConfig(),
        collector=collector,
    )

    assert commits == []
    assert collector.calls == []


@pytest.mark.asyncio
async def test_missing_context_is_a_config_error() -> None:
    """Collecting without a context is caller misuse."""
    with pytest.raises(GitHubError) as excinfo:
        await collect_many(None, ["octo/reef"], _SINCE, _UNTIL, config=ActivityConfig())

    assert excinfo.value.kind is ErrorKind.CONFIG


@pytest.mark.asyncio
async def test_malformed_slug_is_a_config_error() -> None:
    """Slugs that are not ``owner/repo`` are rejected before any call."""
    collector = _RecordingCollector()

    with pytest.raises(GitHubError) as excinfo:
        await collect_many(
            _CONTEXT,
            ["octo/reef", "not-a-slug"],
            _SINCE,
            _UNTIL,
            config=ActivityConfig(),
            collector=collector,
        )

    assert excinfo.value.kind is ErrorKind.CONFIG
    assert excinfo.value.context["repository"] == "not-a-slug"
    assert collector.calls == []


@pytest.mark.asyncio
async def test_matching_author_needs_no_fallback(event_log: FakeLogger) -> None:
    """When the requested author has commits only one pass runs."""
    collector = _RecordingCollector(authors_by_repo={"octo/reef": ["alice", "bob"]})

    commits = await collect_many(
        _CONTEXT,
        ["octo/reef"],
        _SINCE,
        _UNTIL,
        "alice",
        config=ActivityConfig(),
        collector=collector,
    )

    assert [commit.author_login for commit in commits] == ["alice"]
    assert collector.calls == [("octo/reef", "alice")]
    assert event_log.matching(ActivityEventType.COMMITS_FALLBACK) == []


@pytest.mark.asyncio
async def test_falls_back_to_first_repository_owner(event_log: FakeLogger) -> None:
    """An unmatched author retries with the first repository's owner."""
    collector = _RecordingCollector(
        authors_by_repo={"octo/reef": ["octo"], "kelp/farm": ["kelp"]}
    )

    commits = await collect_many(
        _CONTEXT,
        ["octo/reef", "kelp/farm"],
        _SINCE,
        _UNTIL,
        "alice@example.test",
        config=ActivityConfig(),
        collector=collector,
    )

    assert [commit.sha for commit in commits] == ["octo-reef-octo"]
    assert [author for _, author in collector.calls] == [
        "alice@example.test",
        "alice@example.test",
        "octo",
        "octo",
    ]
    [(level, message)] = event_log.matching(ActivityEventType.COMMITS_FALLBACK)
    assert level == "WARNING"
    assert f"tier={FallbackTier.REPOSITORY_OWNER}" in message


@pytest.mark.asyncio
async def test_falls_back_to_unfiltered(event_log: FakeLogger) -> None:
    """If the owner filter is empty too, the author filter is dropped."""
    collector = _RecordingCollector(authors_by_repo={"octo/reef": ["bot"]})

    commits = await collect_many(
        _CONTEXT,
        ["octo/reef"],
        _SINCE,
        _UNTIL,
        "alice",
        config=ActivityConfig(),
        collector=collector,
    )

    assert [commit.author_login for commit in commits] == ["bot"]
    assert collector.calls == [
        ("octo/reef", "alice"),
        ("octo/reef", "octo"),
        ("octo/reef", None),
    ]
    assert len(event_log.matching(ActivityEventType.COMMITS_FALLBACK)) == 2
    [(_, completed)] = event_log.matching(ActivityEventType.COMMITS_COMPLETED)
    assert f"tier={FallbackTier.NO_AUTHOR}" in completed


@pytest.mark.asyncio
async def test_no_author_runs_single_pass() -> None:
    """Without an author filter there is nothing to fall back from."""
    collector = _RecordingCollector()

    commits = await collect_many(
        _CONTEXT,
        ["octo/reef"],
        _SINCE,
        _UNTIL,
        config=ActivityConfig(),
        collector=collector,
    )

    assert commits == []
    assert collector.calls == [("octo/reef", None)]


@pytest.mark.asyncio
async def test_failure_cancels_batch_and_stops() -> None:
    """A failing repository cancels its siblings and no later batch starts."""
    collector = _RecordingCollector(fail_on="octo/a")

    with pytest.raises(GitHubError) as excinfo:
        await collect_many(
            _CONTEXT,
            ["octo/a", "octo/b", "octo/c", "octo/d"],
            _SINCE,
            _UNTIL,
            config=ActivityConfig(batch_size=3),
            collector=collector,
        )

    assert excinfo.value.kind is ErrorKind.API
    assert sorted(collector.cancelled) == ["octo/b", "octo/c"]
    assert "octo/d" not in [slug for slug, _ in collector.calls]
    assert collector.in_flight == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["since", "until"])
async def test_naive_window_is_a_config_error(field: str) -> None:
    """A naive bound is rejected once, before any collector call."""
    collector = _RecordingCollector()
    window = {"since": _SINCE, "until": _UNTIL}
    window[field] = window[field].replace(tzinfo=None)

    with pytest.raises(GitHubError) as excinfo:
        await collect_many(
            _CONTEXT,
            ["octo/reef", "octo/kelp"],
            window["since"],
            window["until"],
            config=ActivityConfig(),
            collector=collector,
        )

    assert excinfo.value.kind is ErrorKind.CONFIG
    assert excinfo.value.context == {"operation": "collect_many", "field": field}
    assert collector.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("slug", ["octo/reef ", " octo/reef", "octo / reef"])
async def test_padded_slug_is_a_config_error(slug: str) -> None:
    """Slugs must match exactly so commits carry the requested value."""
    collector = _RecordingCollector()

    with pytest.raises(GitHubError) as excinfo:
        await collect_many(
            _CONTEXT,
            [slug],
            _SINCE,
            _UNTIL,
            config=ActivityConfig(),
            collector=collector,
        )

    assert excinfo.value.kind is ErrorKind.CONFIG
    assert excinfo.value.context["repository"] == slug
    assert collector.calls == []
