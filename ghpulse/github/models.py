"""Typed domain models for repository discovery and commit collection."""

from __future__ import annotations

import dataclasses
import datetime as dt  # noqa: TC003
import typing as typ

import msgspec

from ghpulse.common.slug import parse_repo_slug
from ghpulse.common.time import from_unix_seconds, parse_github_datetime

from .errors import GitHubError


class Repository(msgspec.Struct, kw_only=True, frozen=True):
    """A repository visible to the authenticated principal.

    Attributes
    ----------
    id
        GitHub's numeric repository identifier.
    name
        Repository name without the owner.
    full_name
        ``owner/name`` slug; the identity of the repository.
    owner_login
        Login of the owning user or organisation.
    is_private
        Whether the repository is private.
    primary_language
        Primary language reported by GitHub, if any.
    html_url
        Browser URL of the repository.
    description
        Repository description, if any.
    updated_at
        Last update time reported by GitHub, if any.

    """

    id: int
    name: str
    full_name: str
    owner_login: str
    is_private: bool
    html_url: str
    primary_language: str | None = None
    description: str | None = None
    updated_at: dt.datetime | None = None

    @property
    def slug(self) -> tuple[str, str]:
        """Return ``(owner, name)`` parsed from :attr:`full_name`."""
        return parse_repo_slug(self.full_name)


class Commit(msgspec.Struct, kw_only=True, frozen=True):
    """A commit fetched from one of the requested repositories.

    ``repository`` holds the owning repository's ``owner/name`` slug.
    """

    sha: str
    message: str
    author_name: str
    author_date: dt.datetime | None
    repository: str
    html_url: str
    author_login: str | None = None
    author_avatar_url: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimitInfo:
    """Snapshot of the core REST quota."""

    limit: int
    remaining: int
    reset_at_unix_seconds: int

    def __post_init__(self) -> None:
        """Validate quota bounds."""
        if self.limit < 0 or not 0 <= self.remaining <= self.limit:
            msg = (
                "rate limit remaining must be within [0, limit], got "
                f"remaining={self.remaining} limit={self.limit}"
            )
            raise ValueError(msg)

    @property
    def reset_at(self) -> dt.datetime:
        """Return the reset time as an aware UTC datetime."""
        return from_unix_seconds(self.reset_at_unix_seconds)

    @property
    def used_percent(self) -> float:
        """Return the share of the quota already consumed, in percent."""
        if self.limit == 0:
            return 100.0
        return round(100 - (self.remaining / self.limit) * 100, 1)


@dataclasses.dataclass(frozen=True, slots=True)
class Principal:
    """The identity API calls are made on behalf of."""

    login: str
    id: int
    type: str


@dataclasses.dataclass(frozen=True, slots=True)
class Identity:
    """Result of the "who am I" call: principal plus granted OAuth scopes."""

    principal: Principal
    scopes: frozenset[str]


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _dict_or_empty(value: object) -> dict[str, typ.Any]:
    return value if isinstance(value, dict) else {}


def _require(payload: dict[str, typ.Any], field: str, kind: type) -> typ.Any:  # noqa: ANN401
    value = payload.get(field)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise GitHubError.api(
            f"GitHub response missing expected field: {field}",
            context={"operation": "parse_response", "field": field},
        )
    return value


def _maybe_datetime(value: object) -> dt.datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return parse_github_datetime(value)
    except ValueError:
        return None


def repository_from_payload(payload: dict[str, typ.Any]) -> Repository:
    """Build a :class:`Repository` from a REST repository object."""
    owner = _dict_or_empty(payload.get("owner"))
    full_name = _require(payload, "full_name", str)
    owner_login = _str_or_none(owner.get("login")) or full_name.split("/", 1)[0]
    return Repository(
        id=_require(payload, "id", int),
        name=_require(payload, "name", str),
        full_name=full_name,
        owner_login=owner_login,
        is_private=bool(payload.get("private", False)),
        html_url=_str_or_none(payload.get("html_url")) or "",
        primary_language=_str_or_none(payload.get("language")),
        description=_str_or_none(payload.get("description")),
        updated_at=_maybe_datetime(payload.get("updated_at")),
    )


def commit_from_payload(payload: dict[str, typ.Any], *, repository: str) -> Commit:
    """Build a :class:`Commit` from a REST commit object.

    ``repository`` is attached verbatim; it is the slug the commit was
    requested for, not anything reported by GitHub.
    """
    git_commit = _dict_or_empty(payload.get("commit"))
    git_author = _dict_or_empty(git_commit.get("author"))
    account = _dict_or_empty(payload.get("author"))
    return Commit(
        sha=_require(payload, "sha", str),
        message=git_commit.get("message") or "",
        author_name=_str_or_none(git_author.get("name")) or "unknown",
        author_date=_maybe_datetime(git_author.get("date")),
        repository=repository,
        html_url=_str_or_none(payload.get("html_url")) or "",
        author_login=_str_or_none(account.get("login")),
        author_avatar_url=_str_or_none(account.get("avatar_url")),
    )


def rate_limit_from_payload(payload: dict[str, typ.Any]) -> RateLimitInfo:
    """Build a :class:`RateLimitInfo` from ``GET /rate_limit``.

    ``remaining`` is clamped into ``[0, limit]``.
    """
    resources = _dict_or_empty(payload.get("resources"))
    core = _dict_or_empty(resources.get("core")) or _dict_or_empty(
        payload.get("rate")
    )
    limit = max(0, _require(core, "limit", int))
    remaining = min(max(0, _require(core, "remaining", int)), limit)
    return RateLimitInfo(
        limit=limit,
        remaining=remaining,
        reset_at_unix_seconds=_require(core, "reset", int),
    )


def principal_from_payload(payload: dict[str, typ.Any]) -> Principal:
    """Build a :class:`Principal` from ``GET /user``."""
    return Principal(
        login=_require(payload, "login", str),
        id=_require(payload, "id", int),
        type=_str_or_none(payload.get("type")) or "User",
    )
