"""Repository discovery across personal, collaborator and organisation access.

Discovery combines two listings because neither is complete on its own:

* ``GET /user/repos`` with every affiliation returns what the principal owns,
  collaborates on, or sees through organisation membership.
* ``GET /orgs/{org}/repos`` per organisation catches repositories that the
  combined listing omits for some organisation policies.

The primary listing is mandatory; organisation listings are best effort and a
failure there only shrinks the result.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from ghpulse.common.time import utcnow

from .errors import classify_error
from .models import Repository, repository_from_payload
from .observability import ActivityEventLogger
from .rate_limit import check_rate_limit
from .scopes import validate_scopes

if typ.TYPE_CHECKING:
    from .config import ActivityConfig
    from .context import AuthenticatedContext

_COMBINED_AFFILIATION = "owner,collaborator,organization_member"


def dedupe_repositories(repositories: cabc.Iterable[Repository]) -> list[Repository]:
    """Drop repositories whose ``full_name`` was already seen.

    Order of first appearance is kept, so the function is idempotent.
    """
    seen: set[str] = set()
    unique: list[Repository] = []
    for repository in repositories:
        if repository.full_name in seen:
            continue
        seen.add(repository.full_name)
        unique.append(repository)
    return unique


def _to_repositories(items: cabc.Iterable[dict[str, typ.Any]]) -> list[Repository]:
    return [repository_from_payload(item) for item in items]


async def _list_affiliated(
    context: AuthenticatedContext,
    config: ActivityConfig,
) -> list[Repository]:
    try:
        items = await context.paginate(
            "/user/repos",
            params={
                "affiliation": _COMBINED_AFFILIATION,
                "visibility": "all",
                "sort": "updated",
                "per_page": config.per_page,
            },
        )
        return _to_repositories(items)
    except Exception as exc:  # noqa: BLE001
        classify_error(exc, {"operation": "list_user_repositories"})


async def _list_organisation_repositories(
    context: AuthenticatedContext,
    config: ActivityConfig,
    events: ActivityEventLogger,
) -> list[Repository]:
    """Return repositories of every organisation; failures only log."""
    try:
        orgs = await context.paginate(
            "/user/orgs", params={"per_page": config.per_page}
        )
    except Exception as exc:  # noqa: BLE001
        events.log_orgs_unavailable(exc)
        return []

    repositories: list[Repository] = []
    for org in orgs:
        login = org.get("login")
        if not isinstance(login, str) or not login:
            continue
        try:
            items = await context.paginate(
                f"/orgs/{login}/repos",
                params={"type": "all", "sort": "updated", "per_page": config.per_page},
            )
            repositories.extend(_to_repositories(items))
        except Exception as exc:  # noqa: BLE001
            events.log_org_skipped(login, exc)
    return repositories


async def collect_repositories(
    context: AuthenticatedContext,
    config: ActivityConfig,
    *,
    events: ActivityEventLogger | None = None,
) -> list[Repository]:
    """Return every repository visible to the principal, deduplicated.

    Raises
    ------
    GitHubError
        ``AUTH`` when the token lacks the required scope (no listing call is
        made), or the classified failure of the primary listing.

    """
    events = events or ActivityEventLogger()
    started_at = utcnow()
    events.log_discovery_started("user")

    await validate_scopes(context, config, events=events)
    await check_rate_limit(context, config, events=events)

    collected = await _list_affiliated(context, config)
    collected.extend(await _list_organisation_repositories(context, config, events))

    unique = dedupe_repositories(collected)
    events.log_discovery_completed(
        collected=len(collected),
        unique=len(unique),
        duration=utcnow() - started_at,
    )
    return unique


async def collect_installation_repositories(
    context: AuthenticatedContext,
    config: ActivityConfig,
    *,
    events: ActivityEventLogger | None = None,
) -> list[Repository]:
    """Return repositories a GitHub App installation token can access.

    Installation tokens carry no OAuth scopes, so scope validation is
    skipped; the quota check still runs.
    """
    events = events or ActivityEventLogger()
    started_at = utcnow()
    events.log_discovery_started("installation")

    await check_rate_limit(context, config, events=events)
    try:
        items = await context.paginate(
            "/installation/repositories",
            params={"per_page": config.per_page},
            items_key="repositories",
        )
        collected = _to_repositories(items)
    except Exception as exc:  # noqa: BLE001
        classify_error(exc, {"operation": "list_installation_repositories"})

    unique = dedupe_repositories(collected)
    events.log_discovery_completed(
        collected=len(collected),
        unique=len(unique),
        duration=utcnow() - started_at,
    )
    return unique
