"""Configuration for the activity engine.

Create a configuration with defaults:

>>> config = ActivityConfig()
>>> config.batch_size
10

Or load from environment variables (``GHPULSE_BATCH_SIZE`` and friends):

>>> config = ActivityConfig.from_env()  # doctest: +SKIP

"""

from __future__ import annotations

import dataclasses
import os

from .errors import GitHubError

_DEFAULT_BATCH_SIZE = 10
_DEFAULT_SCOPE_REQUIREMENT = "repo"
_DEFAULT_ORG_SCOPE = "read:org"
_DEFAULT_LOW_QUOTA_THRESHOLD = 100
_DEFAULT_PER_PAGE = 100
_MAX_PER_PAGE = 100

_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 30.0
_DEFAULT_USER_AGENT = "ghpulse/0.1"


def _parse_int(env_var: str, default: int, *, minimum: int) -> int:
    """Read an integer env var, falling back to ``default`` when unset."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise GitHubError.config(
            f"{env_var} must be an integer, got: {raw!r}",
            context={"env_var": env_var},
        ) from exc
    if value < minimum:
        raise GitHubError.config(
            f"{env_var} must be at least {minimum}, got: {value}",
            context={"env_var": env_var},
        )
    return value


@dataclasses.dataclass(frozen=True, slots=True)
class ActivityConfig:
    """Tunables for discovery and commit collection.

    Attributes
    ----------
    batch_size
        Number of repositories fetched concurrently; batches run one after
        another, so this is also the peak number of in-flight commit
        listings.
    scope_requirement
        OAuth scope that must be granted before repository discovery.
    org_scope
        OAuth scope needed to see organisation repositories. Its absence is
        only logged.
    low_quota_threshold
        Remaining-request count below which the quota check logs a warning.
    per_page
        Page size requested from paginated REST endpoints (GitHub caps it at
        100).

    """

    batch_size: int = _DEFAULT_BATCH_SIZE
    scope_requirement: str = _DEFAULT_SCOPE_REQUIREMENT
    org_scope: str = _DEFAULT_ORG_SCOPE
    low_quota_threshold: int = _DEFAULT_LOW_QUOTA_THRESHOLD
    per_page: int = _DEFAULT_PER_PAGE

    def __post_init__(self) -> None:
        """Reject values that would make collection impossible."""
        if self.batch_size < 1:
            raise GitHubError.config(
                f"batch_size must be positive, got: {self.batch_size}"
            )
        if not self.scope_requirement.strip():
            raise GitHubError.config("scope_requirement must be non-empty")
        if not 1 <= self.per_page <= _MAX_PER_PAGE:
            raise GitHubError.config(
                f"per_page must be between 1 and {_MAX_PER_PAGE}, "
                f"got: {self.per_page}"
            )

    @classmethod
    def from_env(cls) -> ActivityConfig:
        """Build configuration from environment variables.

        Reads ``GHPULSE_BATCH_SIZE``, ``GHPULSE_SCOPE_REQUIREMENT``,
        ``GHPULSE_ORG_SCOPE``, ``GHPULSE_LOW_QUOTA_THRESHOLD`` and
        ``GHPULSE_PER_PAGE``; unset variables keep their defaults.

        Raises
        ------
        GitHubError
            With kind ``CONFIG`` when a value is malformed.

        """
        scope = os.environ.get("GHPULSE_SCOPE_REQUIREMENT", "").strip()
        org_scope = os.environ.get("GHPULSE_ORG_SCOPE", "").strip()
        return cls(
            batch_size=_parse_int("GHPULSE_BATCH_SIZE", _DEFAULT_BATCH_SIZE, minimum=1),
            scope_requirement=scope or _DEFAULT_SCOPE_REQUIREMENT,
            org_scope=org_scope or _DEFAULT_ORG_SCOPE,
            low_quota_threshold=_parse_int(
                "GHPULSE_LOW_QUOTA_THRESHOLD", _DEFAULT_LOW_QUOTA_THRESHOLD, minimum=0
            ),
            per_page=_parse_int("GHPULSE_PER_PAGE", _DEFAULT_PER_PAGE, minimum=1),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubRestConfig:
    """Connection settings for :class:`~ghpulse.github.context.GitHubRestContext`.

    Only used when the context builds its own HTTP client from a token the
    caller already holds.
    """

    token: str
    api_url: str = _DEFAULT_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = _DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> GitHubRestConfig:
        """Build configuration using ``GHPULSE_GITHUB_TOKEN`` and friends."""
        token = os.environ.get("GHPULSE_GITHUB_TOKEN", "").strip()
        if not token:
            raise GitHubError.config("GHPULSE_GITHUB_TOKEN is required for GitHub API")

        api_url = os.environ.get("GHPULSE_GITHUB_API_URL", "").strip()
        raw_timeout = os.environ.get("GHPULSE_GITHUB_TIMEOUT_S", "").strip()
        timeout_s = _DEFAULT_TIMEOUT_S
        if raw_timeout:
            try:
                timeout_s = float(raw_timeout)
            except ValueError as exc:
                raise GitHubError.config(
                    f"GHPULSE_GITHUB_TIMEOUT_S must be a number, got: {raw_timeout!r}",
                    context={"env_var": "GHPULSE_GITHUB_TIMEOUT_S"},
                ) from exc
            if timeout_s <= 0:
                raise GitHubError.config(
                    f"GHPULSE_GITHUB_TIMEOUT_S must be positive, got: {timeout_s}",
                    context={"env_var": "GHPULSE_GITHUB_TIMEOUT_S"},
                )

        return cls(
            token=token,
            api_url=api_url or _DEFAULT_API_URL,
            timeout_s=timeout_s,
        )
