"""GitHub error taxonomy and classification.

Every failure the engine surfaces is a :class:`GitHubError` tagged with one
:class:`ErrorKind`. Callers branch on ``error.kind`` rather than on exception
subclasses::

    try:
        repos = await discover_repositories(context)
    except GitHubError as exc:
        if exc.kind is ErrorKind.AUTH:
            prompt_reauthentication()
        elif exc.kind is ErrorKind.RATE_LIMIT:
            show_retry_later(exc.reset_at)

:func:`classify_error` turns anything raised by the HTTP layer into one of
these tagged errors.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import enum
import typing as typ

from ghpulse.common.time import from_unix_seconds
from ghpulse.logging import get_logger, log_error

if typ.TYPE_CHECKING:
    import datetime as dt

logger = get_logger(__name__)

_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_HTTP_TOO_MANY_REQUESTS = 429
_HTTP_CLIENT_ERROR_MIN = 400
_HTTP_SERVER_ERROR_MAX = 599

_RATE_LIMIT_REMAINING_HEADER = "x-ratelimit-remaining"
_RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"
_PERMISSION_MARKERS = ("scope", "permission")


class ErrorKind(enum.StrEnum):
    """Tag identifying which variant of the error taxonomy applies."""

    CONFIG = "config"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    API = "api"


class GitHubError(Exception):
    """Tagged error raised for every failure surfaced by the engine.

    Attributes
    ----------
    kind
        Variant of the taxonomy.
    status
        HTTP status code when one was extracted. Always ``None`` for
        ``CONFIG`` and may be ``None`` for ``API``.
    reset_at_unix_seconds
        Quota reset time, populated for ``RATE_LIMIT`` when GitHub sent it.
    cause
        The underlying failure, also chained as ``__cause__`` when raised by
        :func:`classify_error`.
    context
        Free-form diagnostics such as the operation name and repository.

    """

    def __init__(  # noqa: PLR0913
        self,
        message: str,
        *,
        kind: ErrorKind,
        status: int | None = None,
        reset_at_unix_seconds: int | None = None,
        cause: BaseException | None = None,
        context: cabc.Mapping[str, object] | None = None,
    ) -> None:
        """Initialise the error with its variant tag and payload."""
        self.kind = kind
        self.status = status
        self.reset_at_unix_seconds = reset_at_unix_seconds
        self.cause = cause
        self.context: dict[str, object] = dict(context or {})
        super().__init__(message)

    def __repr__(self) -> str:
        """Return a debugging representation including the tag."""
        return (
            f"GitHubError(kind={self.kind.value!r}, status={self.status!r}, "
            f"message={str(self)!r})"
        )

    @property
    def reset_at(self) -> dt.datetime | None:
        """Return the quota reset time as an aware UTC datetime."""
        if self.reset_at_unix_seconds is None:
            return None
        return from_unix_seconds(self.reset_at_unix_seconds)

    @classmethod
    def config(
        cls,
        message: str,
        *,
        context: cabc.Mapping[str, object] | None = None,
    ) -> GitHubError:
        """Return an error for invalid configuration or caller misuse."""
        return cls(message, kind=ErrorKind.CONFIG, context=context)

    @classmethod
    def auth(
        cls,
        message: str,
        *,
        status: int = _HTTP_UNAUTHORIZED,
        cause: BaseException | None = None,
        context: cabc.Mapping[str, object] | None = None,
    ) -> GitHubError:
        """Return an authentication or authorisation error."""
        return cls(
            message, kind=ErrorKind.AUTH, status=status, cause=cause, context=context
        )

    @classmethod
    def missing_scope(
        cls,
        scope: str,
        *,
        granted: cabc.Iterable[str] = (),
    ) -> GitHubError:
        """Return an error for a token lacking a required OAuth scope."""
        return cls.auth(
            f"GitHub token is missing '{scope}' scope. "
            "Please re-authenticate with the necessary permissions.",
            status=_HTTP_FORBIDDEN,
            context={
                "operation": "validate_scopes",
                "required_scope": scope,
                "granted_scopes": sorted(granted),
            },
        )

    @classmethod
    def not_found(
        cls,
        message: str,
        *,
        cause: BaseException | None = None,
        context: cabc.Mapping[str, object] | None = None,
    ) -> GitHubError:
        """Return an error for a missing resource."""
        return cls(
            message,
            kind=ErrorKind.NOT_FOUND,
            status=_HTTP_NOT_FOUND,
            cause=cause,
            context=context,
        )

    @classmethod
    def rate_limit(  # noqa: PLR0913
        cls,
        message: str,
        *,
        status: int = _HTTP_TOO_MANY_REQUESTS,
        reset_at_unix_seconds: int | None = None,
        cause: BaseException | None = None,
        context: cabc.Mapping[str, object] | None = None,
    ) -> GitHubError:
        """Return an error for an exhausted API quota."""
        return cls(
            message,
            kind=ErrorKind.RATE_LIMIT,
            status=status,
            reset_at_unix_seconds=reset_at_unix_seconds,
            cause=cause,
            context=context,
        )

    @classmethod
    def api(
        cls,
        message: str,
        *,
        status: int | None = None,
        cause: BaseException | None = None,
        context: cabc.Mapping[str, object] | None = None,
    ) -> GitHubError:
        """Return a generic API error, with or without an HTTP status."""
        return cls(
            message, kind=ErrorKind.API, status=status, cause=cause, context=context
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Fields recovered from an arbitrary failure."""

    message: str
    status: int | None = None
    headers: cabc.Mapping[str, str] = dataclasses.field(default_factory=dict)


def _coerce_status(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def _coerce_headers(value: object) -> dict[str, str]:
    # httpx.Headers is a Mapping; plain dicts from other clients work as well.
    if not isinstance(value, cabc.Mapping):
        return {}
    return {
        str(key).lower(): str(item)
        for key, item in value.items()
        if isinstance(key, str)
    }


def _response_message(response: object) -> str | None:
    """Return GitHub's JSON ``message`` field from a response, when present."""
    json_method = getattr(response, "json", None)
    if not callable(json_method):
        return None
    try:
        payload = json_method()
    except ValueError:
        return None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def extract_error_info(error: object, *, operation: str = "unknown") -> ErrorInfo:
    """Probe ``error`` for a message, HTTP status and response headers.

    Looks at ``status``/``status_code`` and ``headers`` on the error itself
    and on a nested ``response`` object, which covers
    :class:`httpx.HTTPStatusError` as well as duck-typed client errors.
    Nothing here raises; missing pieces come back as ``None`` or empty.
    """
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
    elif error is None:
        message = f"GitHub operation failed in {operation}"
    else:
        message = str(error)

    status = _coerce_status(getattr(error, "status", None))
    if status is None:
        status = _coerce_status(getattr(error, "status_code", None))
    headers = _coerce_headers(getattr(error, "headers", None))

    response = getattr(error, "response", None)
    if response is not None:
        if status is None:
            status = _coerce_status(getattr(response, "status_code", None))
        if status is None:
            status = _coerce_status(getattr(response, "status", None))
        response_headers = _coerce_headers(getattr(response, "headers", None))
        if response_headers:
            headers = response_headers
        api_message = _response_message(response)
        if api_message is not None:
            message = api_message

    return ErrorInfo(message=message, status=status, headers=headers)


def _parse_reset(headers: cabc.Mapping[str, str]) -> int | None:
    raw = headers.get(_RATE_LIMIT_RESET_HEADER)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _classify_auth_failure(
    info: ErrorInfo,
    status: int,
    cause: BaseException | None,
    context: cabc.Mapping[str, object],
) -> GitHubError:
    reset_at = _parse_reset(info.headers)
    remaining = info.headers.get(_RATE_LIMIT_REMAINING_HEADER)
    if remaining is not None and remaining.strip() == "0" and reset_at is not None:
        return GitHubError.rate_limit(
            f"GitHub API rate limit exceeded. {info.message}",
            status=status,
            reset_at_unix_seconds=reset_at,
            cause=cause,
            context=context,
        )

    lowered = info.message.lower()
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return GitHubError.auth(
            f"GitHub permission or scope error: {info.message}",
            status=status,
            cause=cause,
            context=context,
        )

    return GitHubError.auth(
        f"GitHub authentication/authorization error (Status {status}): "
        f"{info.message}",
        status=status,
        cause=cause,
        context=context,
    )


def to_github_error(
    error: object,
    context: cabc.Mapping[str, object] | None = None,
) -> GitHubError:
    """Map ``error`` onto the taxonomy without raising.

    Already-classified errors are returned unchanged so classification is
    idempotent.
    """
    if isinstance(error, GitHubError):
        return error

    context = dict(context or {})
    operation = str(context.get("operation", "unknown"))
    info = extract_error_info(error, operation=operation)
    cause = error if isinstance(error, BaseException) else None
    status = info.status

    if status in (_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN):
        return _classify_auth_failure(info, status, cause, context)
    if status == _HTTP_NOT_FOUND:
        return GitHubError.not_found(
            f"GitHub resource not found (Status 404): {info.message}",
            cause=cause,
            context=context,
        )
    if status == _HTTP_TOO_MANY_REQUESTS:
        return GitHubError.rate_limit(
            f"GitHub API rate limit exceeded (Status 429). {info.message}",
            status=status,
            reset_at_unix_seconds=_parse_reset(info.headers),
            cause=cause,
            context=context,
        )
    if status is not None and (
        _HTTP_CLIENT_ERROR_MIN <= status <= _HTTP_SERVER_ERROR_MAX
    ):
        return GitHubError.api(
            f"GitHub API error (Status {status}): {info.message}",
            status=status,
            cause=cause,
            context=context,
        )
    return GitHubError.api(
        f"Unexpected GitHub error: {info.message}",
        cause=cause,
        context=context,
    )


def classify_error(
    error: object,
    context: cabc.Mapping[str, object] | None = None,
) -> typ.NoReturn:
    """Raise the :class:`GitHubError` corresponding to ``error``.

    Parameters
    ----------
    error
        Whatever the HTTP layer raised. A :class:`GitHubError` is re-raised
        unchanged.
    context
        Diagnostics attached to the classified error, conventionally
        including ``operation`` and, where relevant, ``repository``.

    Raises
    ------
    GitHubError
        Always.

    """
    if isinstance(error, GitHubError):
        raise error

    classified = to_github_error(error, context)
    log_error(
        logger,
        "GitHub %s failed: kind=%s status=%s message=%s",
        classified.context.get("operation", "operation"),
        classified.kind,
        classified.status,
        str(classified),
    )
    if isinstance(error, BaseException):
        raise classified from error
    raise classified


def describe_error(error: GitHubError) -> str:
    """Return a user-facing explanation of ``error``."""
    match error.kind:
        case ErrorKind.AUTH:
            return (
                "GitHub authentication failed or lacks permission. "
                "Please sign in again."
            )
        case ErrorKind.RATE_LIMIT:
            reset_at = error.reset_at
            if reset_at is None:
                return "GitHub API rate limit exceeded. Please try again later."
            return (
                "GitHub API rate limit exceeded. "
                f"Please try again after {reset_at.isoformat()}."
            )
        case ErrorKind.NOT_FOUND:
            return (
                "GitHub resource not found. The repository may not exist "
                "or you may lack access to it."
            )
        case ErrorKind.CONFIG:
            return f"GitHub activity is misconfigured: {error}"
        case _:
            if error.status is None:
                return f"GitHub request failed: {error}"
            return f"GitHub API error ({error.status}). Please try again."
