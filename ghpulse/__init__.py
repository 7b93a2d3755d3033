"""GitHub activity aggregation engine.

Discovers the repositories an authenticated principal can see and collects
their commits for a date window.
"""

from __future__ import annotations

from .activity import (
    check_rate_limit,
    discover_installation_repositories,
    discover_repositories,
    fetch_commits,
)
from .github import (
    ActivityConfig,
    AuthenticatedContext,
    Commit,
    ErrorKind,
    GitHubError,
    GitHubRestConfig,
    GitHubRestContext,
    Principal,
    RateLimitInfo,
    Repository,
)

__all__ = [
    "ActivityConfig",
    "AuthenticatedContext",
    "Commit",
    "ErrorKind",
    "GitHubError",
    "GitHubRestConfig",
    "GitHubRestContext",
    "Principal",
    "RateLimitInfo",
    "Repository",
    "check_rate_limit",
    "discover_installation_repositories",
    "discover_repositories",
    "fetch_commits",
]
