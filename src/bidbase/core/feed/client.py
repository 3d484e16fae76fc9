"""
OCDS release feed client using httpx.

Fetches one page of releases per call from the eTenders OCDS API with:
- Optional bearer authentication
- Exponential backoff on transient failures (network, 429, 5xx)
- No retry on permanent failures (other 4xx, malformed body)
"""

from __future__ import annotations

import copy
import json
from typing import TYPE_CHECKING, Any

import httpx

from bidbase.core.errors import FeedUnavailableError
from bidbase.core.fetch.retries import RetryConfig, retry_async
from bidbase.core.logging import get_logger

from .base import FeedSource
from .models import RawRelease

if TYPE_CHECKING:
    from bidbase.core.config.models import FeedConfig


logger = get_logger("feed")

DEFAULT_USER_AGENT = "BidBase-Sync/1.0"


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, FeedUnavailableError) and exc.transient


class OcdsFeedClient(FeedSource):
    """Paginated client for the OCDS releases endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        releases_path: str = "releases",
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        retry: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the feed client.

        Args:
            base_url: Feed base URL, e.g. https://api.etenders.gov.za/v1
            api_key: Bearer credential, if the feed requires one
            releases_path: Path of the release list endpoint
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            retry: Backoff policy; only transient failures are retried
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.releases_path = releases_path.strip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

        # Own copy; the caller's config is left untouched
        retry = copy.copy(retry) if retry is not None else RetryConfig()
        retry.retry_exceptions = (FeedUnavailableError,)
        retry.retry_if = _is_transient
        self.retry = retry

        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: "FeedConfig",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "OcdsFeedClient":
        """Build a client from validated feed settings."""
        return cls(
            base_url=config.base_url,
            api_key=config.api_key,
            releases_path=config.releases_path,
            timeout=config.timeout_seconds,
            user_agent=config.user_agent,
            retry=RetryConfig.from_policy(config.retry),
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "ocds"

    @property
    def releases_url(self) -> str:
        return f"{self.base_url}/{self.releases_path}"

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.headers,
                transport=self.transport,
            )
        return self._client

    async def fetch_page(self, page_number: int, page_size: int) -> list[RawRelease]:
        """Fetch a page of releases, retrying transient failures."""
        logger.info(
            f"Fetching releases page {page_number} (size {page_size})",
            extra={"page": page_number, "page_size": page_size},
        )
        releases = await retry_async(
            self._fetch_once, page_number, page_size, config=self.retry
        )
        logger.info(f"Fetched {len(releases)} releases from page {page_number}")
        return releases

    async def _fetch_once(self, page_number: int, page_size: int) -> list[RawRelease]:
        client = await self._ensure_client()
        url = self.releases_url
        params = {"PageNumber": str(page_number), "PageSize": str(page_size)}

        try:
            response = await client.get(url, params=params)
        except httpx.TransportError as e:
            raise FeedUnavailableError(
                f"Feed request failed: {e}",
                url=url,
                cause=e,
            ) from e

        if not response.is_success:
            raise FeedUnavailableError(
                f"OCDS API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                status_text=response.reason_phrase,
                url=str(response.url),
            )

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FeedUnavailableError(
                "Feed returned a body that is not valid JSON",
                status_code=response.status_code,
                url=str(response.url),
                cause=e,
                retryable=False,
            ) from e

        return self._parse_releases(payload, str(response.url))

    @staticmethod
    def _parse_releases(payload: Any, url: str) -> list[RawRelease]:
        if not isinstance(payload, dict):
            raise FeedUnavailableError(
                "Feed returned an unexpected body shape",
                url=url,
                retryable=False,
            )

        releases = payload.get("releases")
        if releases is None:
            return []
        if not isinstance(releases, list):
            raise FeedUnavailableError(
                "Feed 'releases' member is not a list",
                url=url,
                retryable=False,
            )

        # Non-mapping entries become empty releases and fail at normalization
        return [RawRelease.from_dict(item) for item in releases]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
