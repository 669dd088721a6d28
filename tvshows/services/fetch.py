"""Single-flight, cancellable GET client with failover across hosts.

Each screen owns one FetchClient. Issuing a new request cancels the
previous one still pending on the same client, so only the most recent
call can ever deliver a result. Network-level failures rotate the
HostRegistry and retry until every host has been tried once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from urllib.parse import quote

import httpx

from ..errors import FetchError, FetchErrorKind
from .hosts import HostRegistry
from .notices import Notices

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """Cooperative cancellation flag for one request."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Either a decoded JSON value or a FetchError, never both."""

    value: T | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def build_query(params: dict[str, str] | None) -> str:
    """Percent-encode query parameters (keys and values)."""
    if not params:
        return ""
    return "&".join(
        f"{quote(str(k), safe='')}={quote(str(v), safe='')}" for k, v in params.items()
    )


class FetchClient:
    """Async GET client bound to a HostRegistry."""

    def __init__(
        self,
        registry: HostRegistry,
        notices: Notices | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.registry = registry
        self.notices = notices
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token: CancelToken | None = None
        self.attempts = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self):
        self.cancel()
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> FetchClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def pending(self) -> bool:
        return self._token is not None

    def cancel(self) -> None:
        """Abort the in-flight request, if any."""
        if self._token is not None:
            logger.debug("Aborting previous fetch call")
            self._token.cancel()
            self._token = None

    def build_url(self, path: str, params: dict[str, str] | None = None) -> str:
        path = path.lstrip("/")
        url = f"{self.registry.current().base_url}/{path}"
        query = build_query(params)
        return f"{url}?{query}" if query else url

    async def get(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET and decode JSON, raising FetchError on failure."""
        result = await self.fetch(path, params)
        return result.unwrap()

    async def fetch(self, path: str, params: dict[str, str] | None = None) -> FetchResult:
        """GET and decode JSON, reporting failure in the returned result."""
        path = path.lstrip("/")
        self.cancel()
        token = CancelToken()
        self._token = token
        self.attempts = 0

        client = await self._get_client()
        last_error: Exception | None = None
        host_count = len(self.registry)

        while self.attempts < host_count:
            if token.cancelled:
                return self._cancelled(path)

            host = self.registry.current()
            url = self.build_url(path, params)
            self.attempts += 1
            logger.info(f"Fetching: {url}")

            try:
                response = await client.get(url)
            except httpx.TransportError as e:
                if token.cancelled:
                    return self._cancelled(path)
                last_error = e
                logger.warning(f"Network error from {host.address}: {e!r}")
                self.registry.advance()
                if self.notices is not None:
                    self.notices.publish(
                        "network",
                        f"Network error: {host.address}, retries: {self.attempts}",
                    )
                continue

            if token.cancelled:
                return self._cancelled(path)

            if response.status_code != 200:
                self._release(token)
                body = response.text
                logger.error(f"{url}: {response.status_code}, {body!r}")
                return FetchResult(
                    error=FetchError(
                        FetchErrorKind.HTTP_STATUS,
                        f'{url}: {response.status_code}, "{body}"',
                        status=response.status_code,
                        body=body,
                        url=url,
                    )
                )

            self._release(token)
            try:
                return FetchResult(value=response.json())
            except ValueError as e:
                logger.error(f"Invalid JSON from {url}: {e}")
                return FetchResult(
                    error=FetchError(FetchErrorKind.INVALID_RESPONSE, f"{url}: {e}", url=url)
                )

        self._release(token)
        logger.error(f"All {host_count} hosts failed for /{path}: {last_error!r}")
        error = FetchError(
            FetchErrorKind.HOSTS_EXHAUSTED,
            f"All {host_count} hosts unreachable, last error: {last_error}",
        )
        error.__cause__ = last_error
        return FetchResult(error=error)

    def _release(self, token: CancelToken) -> None:
        if self._token is token:
            self._token = None

    def _cancelled(self, path: str) -> FetchResult:
        logger.debug(f"Fetch for /{path} was superseded")
        return FetchResult(error=FetchError(FetchErrorKind.CANCELLED, f"/{path} cancelled"))
