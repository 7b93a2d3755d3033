"""Advisory API quota check run before expensive operations."""

from __future__ import annotations

import typing as typ

from .models import RateLimitInfo, rate_limit_from_payload
from .observability import ActivityEventLogger

if typ.TYPE_CHECKING:
    from .config import ActivityConfig
    from .context import AuthenticatedContext


async def check_rate_limit(
    context: AuthenticatedContext,
    config: ActivityConfig,
    *,
    events: ActivityEventLogger | None = None,
) -> RateLimitInfo | None:
    """Return the current core quota, or ``None`` when it cannot be read.

    The check never raises: quota information is advisory, so a failed call
    is logged as a warning and the caller carries on. A quota below
    ``config.low_quota_threshold`` is also only logged; exhaustion surfaces
    later as a ``RATE_LIMIT`` error from the call that hits it.
    """
    events = events or ActivityEventLogger()
    try:
        payload = await context.rate_limit()
        info = rate_limit_from_payload(payload)
    except Exception as exc:  # noqa: BLE001
        events.log_rate_limit_unavailable(exc)
        return None

    events.log_rate_limit(info, threshold=config.low_quota_threshold)
    return info
