"""OAuth scope validation performed before repository discovery."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

from .errors import GitHubError, classify_error
from .observability import ActivityEventLogger

if typ.TYPE_CHECKING:
    from .config import ActivityConfig
    from .context import AuthenticatedContext
    from .models import Principal

# Broader scopes that grant everything the key scope does.
_SCOPE_IMPLICATIONS: dict[str, frozenset[str]] = {
    "read:org": frozenset({"write:org", "admin:org"}),
    "write:org": frozenset({"admin:org"}),
    "public_repo": frozenset({"repo"}),
    "repo:status": frozenset({"repo"}),
}


@dataclasses.dataclass(frozen=True, slots=True)
class ScopeCheck:
    """Outcome of comparing granted scopes with required ones."""

    is_valid: bool
    missing_scopes: tuple[str, ...]


def parse_token_scopes(header: str | None) -> frozenset[str]:
    """Split an ``X-OAuth-Scopes`` header into individual scopes.

    >>> sorted(parse_token_scopes("repo, read:org"))
    ['read:org', 'repo']

    """
    if not header:
        return frozenset()
    return frozenset(part.strip() for part in header.split(",") if part.strip())


def has_scope(scopes: typ.AbstractSet[str], scope: str) -> bool:
    """Return whether ``scope`` is granted directly or by a broader scope."""
    if scope in scopes:
        return True
    return not scopes.isdisjoint(_SCOPE_IMPLICATIONS.get(scope, frozenset()))


def validate_token_scopes(
    scopes: typ.AbstractSet[str],
    required: cabc.Iterable[str] = ("repo",),
) -> ScopeCheck:
    """Compare granted ``scopes`` against ``required`` ones."""
    missing = tuple(scope for scope in required if not has_scope(scopes, scope))
    return ScopeCheck(is_valid=not missing, missing_scopes=missing)


async def validate_scopes(
    context: AuthenticatedContext,
    config: ActivityConfig,
    *,
    events: ActivityEventLogger | None = None,
) -> Principal:
    """Confirm the principal may list every repository it can see.

    Parameters
    ----------
    context
        Authenticated context whose ``whoami`` call reports granted scopes.
    config
        Supplies the mandatory scope and the organisation-read scope.
    events
        Event logger; a fresh one is used when omitted.

    Returns
    -------
    Principal
        The validated principal.

    Raises
    ------
    GitHubError
        ``AUTH`` when the mandatory scope is missing, otherwise whatever the
        identity call failed with, classified.

    """
    events = events or ActivityEventLogger()
    try:
        identity = await context.whoami()
    except Exception as exc:  # noqa: BLE001
        classify_error(exc, {"operation": "validate_scopes"})

    required = config.scope_requirement
    if not validate_token_scopes(identity.scopes, (required,)).is_valid:
        events.log_scope_missing(required, fatal=True)
        raise GitHubError.missing_scope(required, granted=identity.scopes)

    if not has_scope(identity.scopes, config.org_scope):
        # Organisation repositories may be incomplete; discovery still runs.
        events.log_scope_missing(config.org_scope, fatal=False)

    events.log_scopes_validated(identity.principal, identity.scopes)
    return identity.principal
