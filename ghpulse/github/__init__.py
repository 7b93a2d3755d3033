"""GitHub discovery and commit collection primitives."""

from __future__ import annotations

from .batch import collect_many, process_batches
from .commits import CommitCollector, collect_commits
from .config import ActivityConfig, GitHubRestConfig
from .context import AuthenticatedContext, GitHubRestContext
from .errors import (
    ErrorInfo,
    ErrorKind,
    GitHubError,
    classify_error,
    describe_error,
    extract_error_info,
    to_github_error,
)
from .models import Commit, Identity, Principal, RateLimitInfo, Repository
from .observability import ActivityEventLogger, ActivityEventType, FallbackTier
from .rate_limit import check_rate_limit
from .repositories import (
    collect_installation_repositories,
    collect_repositories,
    dedupe_repositories,
)
from .scopes import (
    ScopeCheck,
    has_scope,
    parse_token_scopes,
    validate_scopes,
    validate_token_scopes,
)

__all__ = [
    "ActivityConfig",
    "ActivityEventLogger",
    "ActivityEventType",
    "AuthenticatedContext",
    "Commit",
    "CommitCollector",
    "ErrorInfo",
    "ErrorKind",
    "FallbackTier",
    "GitHubError",
    "GitHubRestConfig",
    "GitHubRestContext",
    "Identity",
    "Principal",
    "RateLimitInfo",
    "Repository",
    "ScopeCheck",
    "check_rate_limit",
    "classify_error",
    "collect_commits",
    "collect_installation_repositories",
    "collect_many",
    "collect_repositories",
    "dedupe_repositories",
    "describe_error",
    "extract_error_info",
    "has_scope",
    "parse_token_scopes",
    "process_batches",
    "to_github_error",
    "validate_scopes",
    "validate_token_scopes",
]
