"""
Sync runner orchestrator.

Coordinates the ingestion workflow: fetch page → normalize → reconcile.
One bad release never aborts a batch; only a failed page fetch ends a run.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Sequence

from bidbase.core.errors import SyncError
from bidbase.core.feed.base import FeedSource
from bidbase.core.feed.models import RawRelease
from bidbase.core.logging import ContextualLogger, get_contextual_logger
from bidbase.core.normalize.canonical import normalize_release
from bidbase.core.normalize.parsing import utcnow
from bidbase.persistence.store import TenderStore

if TYPE_CHECKING:
    from bidbase.core.config.models import AppConfig
    from sqlalchemy.orm import Session, sessionmaker


DEFAULT_ERROR_SAMPLE_LIMIT = 10


@dataclass
class SyncRunResult:
    """Summary of a sync run."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    total_fetched: int = 0
    processed_count: int = 0
    error_count: int = 0
    pages_fetched: int = 0
    cancelled: bool = False

    # Bounded sample; error_count keeps the full tally
    errors: list[str] = field(default_factory=list)
    error_sample_limit: int = DEFAULT_ERROR_SAMPLE_LIMIT

    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def record_success(self) -> None:
        self.processed_count += 1

    def record_failure(self, ocid: str | None, message: str) -> str:
        """Count a failed release and keep its message if there is room."""
        error = f"Failed to process tender {ocid or '<unknown>'}: {message}"
        self.error_count += 1
        if len(self.errors) < self.error_sample_limit:
            self.errors.append(error)
        return error

    def absorb(self, other: "SyncRunResult") -> None:
        """Fold another page's result into this one."""
        self.total_fetched += other.total_fetched
        self.processed_count += other.processed_count
        self.error_count += other.error_count
        self.pages_fetched += other.pages_fetched
        room = self.error_sample_limit - len(self.errors)
        if room > 0:
            self.errors.extend(other.errors[:room])

    def finish(self) -> "SyncRunResult":
        self.finished_at = utcnow()
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to the sync endpoint's response shape."""
        return {
            "processed_count": self.processed_count,
            "error_count": self.error_count,
            "total_fetched": self.total_fetched,
            "errors": list(self.errors),
        }


@dataclass
class RecordOutcome:
    """Result of processing one release."""

    ocid: str | None
    tender_id: str | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncRunner:
    """Orchestrates sync runs against a feed and a store.

    Coordinates:
    - Page fetching (fetch failures end the run as SyncError)
    - Per-release normalization and reconciliation, isolated per record
    - Optional bounded worker pool within a page
    - Cooperative cancellation between page fetches
    """

    def __init__(
        self,
        feed: FeedSource,
        store: TenderStore,
        *,
        max_workers: int = 1,
        error_sample_limit: int = DEFAULT_ERROR_SAMPLE_LIMIT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the sync runner.

        Args:
            feed: Source of release pages
            store: Reconciliation store
            max_workers: Releases processed concurrently within a page
            error_sample_limit: Error messages kept in the summary
            clock: Returns the current naive-UTC time (default: wall clock)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.feed = feed
        self.store = store
        self.max_workers = max_workers
        self.error_sample_limit = error_sample_limit
        self.clock = clock or utcnow
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop before the next page fetch; the current page finishes."""
        self._cancelled = True

    def _new_result(self) -> SyncRunResult:
        return SyncRunResult(error_sample_limit=self.error_sample_limit)

    async def run(self, page_number: int = 1, page_size: int = 100) -> SyncRunResult:
        """Fetch and reconcile a single page.

        Raises:
            SyncError: If the page could not be fetched
        """
        result = self._new_result()
        log = get_contextual_logger("sync", run_id=result.run_id)

        log.info(f"Starting sync: fetching page {page_number} with size {page_size}")
        releases = await self._fetch(page_number, page_size, log)
        await self._process_page(releases, result, log)

        log.info(
            f"Sync completed: {result.processed_count} processed, "
            f"{result.error_count} errors of {result.total_fetched} fetched"
        )
        return result.finish()

    async def run_pages(
        self,
        start_page: int = 1,
        page_size: int = 100,
        max_pages: int | None = None,
    ) -> SyncRunResult:
        """Fetch and reconcile consecutive pages.

        Stops after ``max_pages`` pages, at the first empty page, or when
        cancelled.

        Raises:
            SyncError: If a page could not be fetched; ``result`` carries
                the summary of pages processed so far
        """
        result = self._new_result()
        log = get_contextual_logger("sync", run_id=result.run_id)
        page_number = start_page

        log.info(f"Starting multi-page sync from page {start_page} (size {page_size}, max {max_pages or 'all'})")

        while max_pages is None or result.pages_fetched < max_pages:
            if self._cancelled:
                result.cancelled = True
                log.warning(f"Sync cancelled before page {page_number}")
                break

            try:
                releases = await self._fetch(page_number, page_size, log)
            except SyncError as e:
                e.result = result.finish()
                raise

            if not releases:
                log.info(f"Page {page_number} is empty, stopping")
                break

            await self._process_page(releases, result, log)
            page_number += 1

        log.info(
            f"Sync completed: {result.pages_fetched} pages, {result.processed_count} processed, "
            f"{result.error_count} errors of {result.total_fetched} fetched"
        )
        return result.finish()

    async def _fetch(self, page_number: int, page_size: int, log: ContextualLogger) -> list[RawRelease]:
        try:
            return await self.feed.fetch_page(page_number, page_size)
        except Exception as e:
            log.error(f"Failed to fetch page {page_number}: {e}")
            raise SyncError(f"Failed to fetch releases: {e}", cause=e) from e

    async def _process_page(
        self,
        releases: Sequence[RawRelease],
        result: SyncRunResult,
        log: ContextualLogger,
    ) -> None:
        result.pages_fetched += 1
        result.total_fetched += len(releases)

        if self.max_workers > 1:
            semaphore = asyncio.Semaphore(self.max_workers)

            async def bounded(release: RawRelease) -> RecordOutcome:
                async with semaphore:
                    return await asyncio.to_thread(self._process_release, release)

            outcomes = await asyncio.gather(*(bounded(r) for r in releases))
        else:
            outcomes = [await asyncio.to_thread(self._process_release, r) for r in releases]

        # Folded in release order
        for outcome in outcomes:
            record_log = log.with_context(ocid=outcome.ocid)
            if outcome.ok:
                result.record_success()
                for warning in outcome.warnings:
                    record_log.debug(warning)
            else:
                message = result.record_failure(outcome.ocid, outcome.error or "unknown error")
                record_log.error(message)

    def _process_release(self, release: RawRelease) -> RecordOutcome:
        """Normalize and reconcile one release, capturing any failure."""
        ocid = release.ocid
        try:
            tender, documents = normalize_release(release, now=self.clock())
            tender_id = self.store.upsert(tender, documents)
        except Exception as e:
            return RecordOutcome(ocid=ocid, error=str(e) or e.__class__.__name__)

        return RecordOutcome(ocid=ocid, tender_id=tender_id, warnings=tender.normalization_warnings)


async def run_sync(
    config: "AppConfig",
    *,
    page_number: int | None = None,
    page_size: int | None = None,
    pages: int | None = 1,
    max_workers: int | None = None,
    dry_run: bool = False,
    session_factory: "sessionmaker[Session] | None" = None,
    runner_hook: Callable[[SyncRunner], None] | None = None,
) -> SyncRunResult:
    """Convenience function to run a sync from application config.

    Args:
        config: Application configuration
        page_number: First page (default: config.sync.page_number)
        page_size: Page size (default: config.sync.page_size)
        pages: Pages to fetch; None means until an empty page
        max_workers: Worker count (default: config.sync.max_workers)
        dry_run: Reconcile into memory instead of the database
        session_factory: Session factory for the SQL store
        runner_hook: Called with the runner before it starts (e.g. to
            wire up cancellation)

    Returns:
        SyncRunResult with counts and error samples
    """
    from bidbase.core.feed.client import OcdsFeedClient
    from bidbase.persistence.store import InMemoryTenderStore, SqlTenderStore

    if dry_run:
        store: TenderStore = InMemoryTenderStore()
    else:
        if session_factory is None:
            from bidbase.persistence.db import get_engine, get_session_factory

            get_engine(config.database.url, echo=config.database.echo, pool_size=config.database.pool_size)
            session_factory = get_session_factory()
        store = SqlTenderStore(session_factory)

    page_number = page_number or config.sync.page_number
    page_size = page_size or config.sync.page_size

    async with OcdsFeedClient.from_config(config.feed) as feed:
        runner = SyncRunner(
            feed,
            store,
            max_workers=max_workers or config.sync.max_workers,
            error_sample_limit=config.sync.error_sample_limit,
        )
        if runner_hook is not None:
            runner_hook(runner)

        if pages == 1:
            return await runner.run(page_number, page_size)
        return await runner.run_pages(page_number, page_size, max_pages=pages)
