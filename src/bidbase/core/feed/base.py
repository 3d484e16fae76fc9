"""
Feed source base class.

Defines the interface contract the sync runner needs from a release feed,
so runs can be driven by the live OCDS API or by an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import RawRelease


class FeedSource(ABC):
    """Abstract source of paginated OCDS releases."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Source identifier."""
        pass

    @abstractmethod
    async def fetch_page(self, page_number: int, page_size: int) -> list[RawRelease]:
        """Fetch one page of releases.

        Args:
            page_number: 1-based page index
            page_size: Releases per page

        Returns:
            Releases on the page; empty when the feed has no more

        Raises:
            FeedUnavailableError: On transport failure or non-2xx status
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    async def __aenter__(self) -> "FeedSource":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class StaticFeed(FeedSource):
    """Feed serving pre-built pages from memory.

    Pages are keyed by page number; unknown pages are empty.
    """

    def __init__(self, pages: dict[int, list[Any]] | None = None):
        self.pages = pages or {}
        self.requests: list[tuple[int, int]] = []

    @property
    def name(self) -> str:
        return "static"

    async def fetch_page(self, page_number: int, page_size: int) -> list[RawRelease]:
        self.requests.append((page_number, page_size))
        releases = self.pages.get(page_number, [])[:page_size]
        return [r if isinstance(r, RawRelease) else RawRelease.from_dict(r) for r in releases]
