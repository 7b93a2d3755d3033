"""Authenticated GitHub REST context consumed by the collectors.

The engine never acquires credentials. Callers hand it an object satisfying
:class:`AuthenticatedContext`; :class:`GitHubRestContext` is the httpx-backed
implementation used in production.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

import httpx

from ghpulse.logging import get_logger, log_debug

from .config import GitHubRestConfig
from .errors import GitHubError
from .models import Identity, principal_from_payload
from .scopes import parse_token_scopes

_SCOPES_HEADER = "x-oauth-scopes"
_HTTP_ERROR_STATUS_THRESHOLD = 400

logger = get_logger(__name__)

type QueryParams = cabc.Mapping[str, str | int]


class AuthenticatedContext(typ.Protocol):
    """Interface the engine requires from a credential provider.

    Implementations must be safe for concurrent use: commit collection issues
    several requests through the same context at once.
    """

    async def whoami(self) -> Identity:
        """Return the authenticated principal and its granted OAuth scopes."""
        ...

    async def rate_limit(self) -> dict[str, typ.Any]:
        """Return the raw ``GET /rate_limit`` payload."""
        ...

    async def paginate(
        self,
        path: str,
        *,
        params: QueryParams | None = None,
        items_key: str | None = None,
    ) -> list[dict[str, typ.Any]]:
        """Return every item of a paginated listing, all pages drained."""
        ...


def _next_page_url(response: httpx.Response) -> str | None:
    """Return the ``rel="next"`` URL from the Link header, if any."""
    next_link = response.links.get("next")
    if not next_link:
        return None
    url = next_link.get("url")
    return url or None


def _page_items(
    payload: object,
    *,
    path: str,
    items_key: str | None,
) -> list[dict[str, typ.Any]]:
    if items_key is not None:
        if not isinstance(payload, dict):
            raise GitHubError.api(
                f"GitHub response for {path} is not an object",
                context={"operation": "paginate", "path": path},
            )
        payload = payload.get(items_key)
    if not isinstance(payload, list):
        raise GitHubError.api(
            f"GitHub response for {path} is not a list",
            context={"operation": "paginate", "path": path},
        )
    return [item for item in payload if isinstance(item, dict)]


def _build_client(config: GitHubRestConfig | None) -> httpx.AsyncClient:
    """Build an authenticated client from a token-bearing config."""
    if config is None:
        raise GitHubError.config(
            "GitHubRestContext needs either a config or an http_client"
        )
    if not config.token.strip():
        raise GitHubError.config("GitHub token must be non-empty")
    return httpx.AsyncClient(
        base_url=config.api_url,
        timeout=config.timeout_s,
        headers={
            "Authorization": f"Bearer {config.token}",
            "User-Agent": config.user_agent,
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        },
    )


class GitHubRestContext:
    """GitHub REST implementation of :class:`AuthenticatedContext`.

    Wraps an :class:`httpx.AsyncClient` that already carries credentials.
    When no client is supplied one is built from ``config``; only that
    owned client is closed by :meth:`aclose`.
    """

    def __init__(
        self,
        config: GitHubRestConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        per_page: int = 100,
    ) -> None:
        """Initialise the context from a config or a pre-built client."""
        self._per_page = per_page
        self._owns_client = http_client is None
        self._client = http_client or _build_client(config)

    async def __aenter__(self) -> GitHubRestContext:
        """Return the context for ``async with`` use."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close owned HTTP resources."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this context created it."""
        if self._owns_client:
            await self._client.aclose()

    async def whoami(self) -> Identity:
        """Call ``GET /user`` and read the granted scopes header."""
        response = await self._get("/user")
        payload = response.json()
        if not isinstance(payload, dict):
            raise GitHubError.api(
                "GitHub response for /user is not an object",
                context={"operation": "whoami"},
            )
        return Identity(
            principal=principal_from_payload(payload),
            scopes=parse_token_scopes(response.headers.get(_SCOPES_HEADER)),
        )

    async def rate_limit(self) -> dict[str, typ.Any]:
        """Call ``GET /rate_limit``."""
        response = await self._get("/rate_limit")
        payload = response.json()
        if not isinstance(payload, dict):
            raise GitHubError.api(
                "GitHub response for /rate_limit is not an object",
                context={"operation": "rate_limit"},
            )
        return payload

    async def paginate(
        self,
        path: str,
        *,
        params: QueryParams | None = None,
        items_key: str | None = None,
    ) -> list[dict[str, typ.Any]]:
        """Follow ``Link: rel="next"`` headers until the listing is exhausted.

        The first request carries ``params`` (``per_page`` defaults to the
        context's page size); subsequent requests use GitHub's next URL
        verbatim since it already encodes the query.
        """
        items: list[dict[str, typ.Any]] = []
        query: dict[str, str | int] | None = {
            "per_page": self._per_page,
            **(params or {}),
        }
        url: str | None = path
        page = 0
        while url is not None:
            response = await self._get(url, params=query)
            page_items = _page_items(response.json(), path=path, items_key=items_key)
            items.extend(page_items)
            page += 1
            log_debug(
                logger,
                "Fetched page %d of %s: %d items",
                page,
                path,
                len(page_items),
            )
            url = _next_page_url(response)
            query = None
        return items

    async def _get(
        self,
        url: str,
        *,
        params: QueryParams | None = None,
    ) -> httpx.Response:
        """Issue a GET and raise :class:`httpx.HTTPStatusError` on failure."""
        response = await self._client.get(url, params=params)
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            response.raise_for_status()
        return response
