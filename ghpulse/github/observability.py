"""Structured log events for discovery and commit collection.

Every event is a single ``[event.type] key=value ...`` line so log
aggregators can parse it. Successful steps log at INFO, degraded-but-
continuing situations (skipped organisations, low quota, fallback tiers) at
WARNING.
"""

from __future__ import annotations

import enum
import typing as typ

from ghpulse.logging import get_logger, log_info, log_warning

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import Principal, RateLimitInfo

logger = get_logger(__name__)


class ActivityEventType(enum.StrEnum):
    """Structured log event types emitted by the engine."""

    SCOPES_VALIDATED = "activity.scopes.validated"
    SCOPE_MISSING = "activity.scopes.missing"
    RATE_LIMIT_STATUS = "activity.rate_limit.status"
    RATE_LIMIT_LOW = "activity.rate_limit.low"
    RATE_LIMIT_UNAVAILABLE = "activity.rate_limit.unavailable"
    DISCOVERY_STARTED = "activity.discovery.started"
    DISCOVERY_ORG_SKIPPED = "activity.discovery.org_skipped"
    DISCOVERY_ORGS_UNAVAILABLE = "activity.discovery.orgs_unavailable"
    DISCOVERY_COMPLETED = "activity.discovery.completed"
    COMMITS_FETCHED = "activity.commits.fetched"
    COMMITS_BATCH_COMPLETED = "activity.commits.batch_completed"
    COMMITS_FALLBACK = "activity.commits.fallback"
    COMMITS_COMPLETED = "activity.commits.completed"


class FallbackTier(enum.StrEnum):
    """Author filter in effect for one pass over the repositories."""

    REQUESTED_AUTHOR = "requested_author"
    REPOSITORY_OWNER = "repository_owner"
    NO_AUTHOR = "no_author"


class ActivityEventLogger:
    """Emit structured engine events through femtologging."""

    def log_scopes_validated(
        self,
        principal: Principal,
        scopes: typ.AbstractSet[str],
    ) -> None:
        """Log the principal and scopes that passed validation."""
        log_info(
            logger,
            "[%s] login=%s id=%d type=%s scopes=%s",
            ActivityEventType.SCOPES_VALIDATED,
            principal.login,
            principal.id,
            principal.type,
            ",".join(sorted(scopes)),
        )

    def log_scope_missing(self, scope: str, *, fatal: bool) -> None:
        """Log a missing OAuth scope."""
        log_warning(
            logger,
            "[%s] scope=%s fatal=%s",
            ActivityEventType.SCOPE_MISSING,
            scope,
            fatal,
        )

    def log_rate_limit(self, info: RateLimitInfo, *, threshold: int) -> None:
        """Log the current quota, warning when it is below ``threshold``."""
        log_info(
            logger,
            "[%s] limit=%d remaining=%d reset_at=%s used_percent=%.1f",
            ActivityEventType.RATE_LIMIT_STATUS,
            info.limit,
            info.remaining,
            info.reset_at.isoformat(),
            info.used_percent,
        )
        if info.remaining < threshold:
            log_warning(
                logger,
                "[%s] remaining=%d threshold=%d reset_at=%s",
                ActivityEventType.RATE_LIMIT_LOW,
                info.remaining,
                threshold,
                info.reset_at.isoformat(),
            )

    def log_rate_limit_unavailable(self, error: BaseException) -> None:
        """Log a failed quota check."""
        log_warning(
            logger,
            "[%s] error_type=%s error_message=%s",
            ActivityEventType.RATE_LIMIT_UNAVAILABLE,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_discovery_started(self, source: str) -> None:
        """Log the start of repository discovery."""
        log_info(logger, "[%s] source=%s", ActivityEventType.DISCOVERY_STARTED, source)

    def log_org_skipped(self, org: str, error: BaseException) -> None:
        """Log an organisation whose repositories could not be listed."""
        log_warning(
            logger,
            "[%s] org=%s error_type=%s error_message=%s",
            ActivityEventType.DISCOVERY_ORG_SKIPPED,
            org,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_orgs_unavailable(self, error: BaseException) -> None:
        """Log a failure to enumerate the principal's organisations."""
        log_warning(
            logger,
            "[%s] error_type=%s error_message=%s",
            ActivityEventType.DISCOVERY_ORGS_UNAVAILABLE,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_discovery_completed(
        self,
        *,
        collected: int,
        unique: int,
        duration: dt.timedelta,
    ) -> None:
        """Log discovery totals before and after deduplication."""
        log_info(
            logger,
            "[%s] collected=%d unique=%d duplicates_removed=%d duration_seconds=%.3f",
            ActivityEventType.DISCOVERY_COMPLETED,
            collected,
            unique,
            collected - unique,
            duration.total_seconds(),
        )

    def log_commits_fetched(
        self,
        repository: str,
        count: int,
        *,
        author: str | None,
    ) -> None:
        """Log the commit count for one repository."""
        log_info(
            logger,
            "[%s] repository=%s author=%s commits=%d",
            ActivityEventType.COMMITS_FETCHED,
            repository,
            author or "-",
            count,
        )

    def log_batch_completed(
        self,
        *,
        tier: FallbackTier,
        batch_number: int,
        repositories: int,
        commits: int,
    ) -> None:
        """Log one completed batch of concurrent commit listings."""
        log_info(
            logger,
            "[%s] tier=%s batch=%d repositories=%d commits=%d",
            ActivityEventType.COMMITS_BATCH_COMPLETED,
            tier,
            batch_number,
            repositories,
            commits,
        )

    def log_fallback(self, tier: FallbackTier, *, author: str | None) -> None:
        """Log a move to a broader author filter."""
        log_warning(
            logger,
            "[%s] tier=%s author=%s",
            ActivityEventType.COMMITS_FALLBACK,
            tier,
            author or "-",
        )

    def log_commits_completed(
        self,
        *,
        tier: FallbackTier,
        repositories: int,
        commits: int,
        author: str | None,
    ) -> None:
        """Log the final commit collection outcome."""
        log_info(
            logger,
            "[%s] tier=%s repositories=%d commits=%d final_author=%s",
            ActivityEventType.COMMITS_COMPLETED,
            tier,
            repositories,
            commits,
            author or "-",
        )
