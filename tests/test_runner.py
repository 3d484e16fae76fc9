"""Tests for the sync runner."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from bidbase.core.config.models import AppConfig
from bidbase.core.errors import FeedUnavailableError, PersistenceError, SyncError
from bidbase.core.feed.base import StaticFeed
from bidbase.core.feed.client import OcdsFeedClient
from bidbase.core.orchestrator import SyncRunner, SyncRunResult, run_sync
from bidbase.persistence.models import TenderDocument
from bidbase.persistence.repo import TenderRepository
from bidbase.persistence.store import InMemoryTenderStore, SqlTenderStore


class FailingFeed(StaticFeed):
    """Serves pages until ``fail_on`` and then raises."""

    def __init__(self, pages, fail_on: int, error: Exception | None = None):
        super().__init__(pages)
        self.fail_on = fail_on
        self.error = error or FeedUnavailableError("OCDS API error: 503 Service Unavailable", status_code=503)

    async def fetch_page(self, page_number, page_size):
        if page_number == self.fail_on:
            self.requests.append((page_number, page_size))
            raise self.error
        return await super().fetch_page(page_number, page_size)


class FlakyStore(InMemoryTenderStore):
    """Rejects the listed ocids with a PersistenceError."""

    def __init__(self, reject: set[str]):
        super().__init__()
        self.reject = reject

    def upsert(self, tender, documents):
        if tender.ocid in self.reject:
            raise PersistenceError("Database error: connection reset", ocid=tender.ocid)
        return super().upsert(tender, documents)


def page_of(release_factory, count: int, prefix: str = "ocds") -> list[dict]:
    return [release_factory(ocid=f"{prefix}-{i}") for i in range(count)]


class TestRun:
    def test_processes_page(self, release_factory, now):
        feed = StaticFeed({1: page_of(release_factory, 3)})
        store = InMemoryTenderStore()

        result = asyncio.run(SyncRunner(feed, store, clock=lambda: now).run(1, 100))

        assert result.processed_count == 3
        assert result.error_count == 0
        assert result.total_fetched == 3
        assert result.pages_fetched == 1
        assert result.errors == []
        assert len(store) == 3
        assert feed.requests == [(1, 100)]
        assert result.finished_at is not None

    def test_one_bad_release_does_not_abort(self, release_factory, now):
        releases = page_of(release_factory, 5)
        releases[2] = release_factory(ocid="ocds-bad", title=None)
        store = InMemoryTenderStore()

        result = asyncio.run(SyncRunner(StaticFeed({1: releases}), store, clock=lambda: now).run())

        assert result.processed_count == 4
        assert result.error_count == 1
        assert result.total_fetched == 5
        assert result.errors == ["Failed to process tender ocds-bad: Missing required field: tender.title"]
        assert "ocds-bad" not in store

    def test_missing_ocid_reported_as_unknown(self, release_factory, now):
        feed = StaticFeed({1: [release_factory(ocid=None)]})

        result = asyncio.run(SyncRunner(feed, InMemoryTenderStore(), clock=lambda: now).run())

        assert result.errors == ["Failed to process tender <unknown>: Missing required field: ocid"]

    def test_persistence_error_is_isolated(self, release_factory, now):
        store = FlakyStore(reject={"ocds-1"})
        feed = StaticFeed({1: page_of(release_factory, 3)})

        result = asyncio.run(SyncRunner(feed, store, clock=lambda: now).run())

        assert result.processed_count == 2
        assert result.error_count == 1
        assert result.errors == ["Failed to process tender ocds-1: Database error: connection reset"]

    def test_error_sample_is_bounded(self, release_factory, now):
        releases = [release_factory(ocid=f"bad-{i}", title=None) for i in range(15)]
        releases.append(release_factory(ocid="good"))

        result = asyncio.run(
            SyncRunner(StaticFeed({1: releases}), InMemoryTenderStore(), clock=lambda: now).run()
        )

        assert result.error_count == 15
        assert result.processed_count == 1
        assert len(result.errors) == 10
        assert result.errors[0].startswith("Failed to process tender bad-0:")

    def test_empty_page(self):
        result = asyncio.run(SyncRunner(StaticFeed(), InMemoryTenderStore()).run())

        assert result.to_dict() == {
            "processed_count": 0,
            "error_count": 0,
            "total_fetched": 0,
            "errors": [],
        }

    def test_fetch_failure_raises_sync_error(self):
        feed = FailingFeed({}, fail_on=1)

        with pytest.raises(SyncError) as exc_info:
            asyncio.run(SyncRunner(feed, InMemoryTenderStore()).run())

        assert isinstance(exc_info.value.cause, FeedUnavailableError)
        assert "503" in str(exc_info.value)

    def test_unexpected_fetch_failure_is_wrapped(self):
        feed = FailingFeed({}, fail_on=1, error=RuntimeError("boom"))

        with pytest.raises(SyncError, match="Failed to fetch releases: boom"):
            asyncio.run(SyncRunner(feed, InMemoryTenderStore()).run())

    def test_clock_drives_status(self, release_factory, now):
        closing = now + timedelta(days=10)
        feed = StaticFeed({1: [release_factory(closing=closing.isoformat())]})

        early = InMemoryTenderStore()
        asyncio.run(SyncRunner(feed, early, clock=lambda: now).run())
        late = InMemoryTenderStore()
        asyncio.run(SyncRunner(feed, late, clock=lambda: now + timedelta(days=40)).run())

        assert early.get("ocds-1").values["status"] == "open"
        assert late.get("ocds-1").values["status"] == "closed"

    def test_rerun_is_idempotent(self, release_factory, now):
        feed = StaticFeed({1: page_of(release_factory, 3)})
        store = InMemoryTenderStore()
        runner = SyncRunner(feed, store, clock=lambda: now)

        asyncio.run(runner.run())
        result = asyncio.run(runner.run())

        assert result.processed_count == 3
        assert len(store) == 3
        assert store.upsert_calls == 6


class TestWorkers:
    def test_parallel_matches_sequential(self, release_factory, now):
        releases = page_of(release_factory, 20)
        for i in (3, 11, 17):
            releases[i] = release_factory(ocid=f"bad-{i}", title=None)

        sequential = asyncio.run(
            SyncRunner(StaticFeed({1: releases}), InMemoryTenderStore(), clock=lambda: now).run()
        )
        store = InMemoryTenderStore()
        parallel = asyncio.run(
            SyncRunner(StaticFeed({1: releases}), store, max_workers=4, clock=lambda: now).run()
        )

        assert parallel.processed_count == sequential.processed_count == 17
        assert parallel.error_count == 3
        # Errors keep release order
        assert parallel.errors == sequential.errors
        assert [e.split(":")[0] for e in parallel.errors] == [
            "Failed to process tender bad-3",
            "Failed to process tender bad-11",
            "Failed to process tender bad-17",
        ]
        assert len(store) == 17

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            SyncRunner(StaticFeed(), InMemoryTenderStore(), max_workers=0)

    def test_sql_store_sequential(self, release_factory, now, session_factory):
        feed = StaticFeed({1: page_of(release_factory, 4)})
        result = asyncio.run(SyncRunner(feed, SqlTenderStore(session_factory), clock=lambda: now).run())

        assert result.processed_count == 4
        with session_factory() as session:
            assert TenderRepository(session).count() == 4

    def test_sql_store_parallel_on_shared_connection(self, release_factory, now, session_factory):
        # In-memory SQLite gives every worker thread the same connection
        releases = [
            release_factory(
                ocid=f"ocds-{i}",
                documents=[
                    {"id": f"d{j}", "title": f"Document {j}", "url": f"https://example.gov.za/{i}/{j}.pdf"}
                    for j in range(5)
                ],
            )
            for i in range(60)
        ]

        result = asyncio.run(
            SyncRunner(StaticFeed({1: releases}), SqlTenderStore(session_factory), max_workers=8,
                       clock=lambda: now).run()
        )

        assert result.errors == []
        assert result.processed_count == 60
        with session_factory() as session:
            assert TenderRepository(session).count() == 60
            assert session.execute(select(func.count()).select_from(TenderDocument)).scalar_one() == 300


class TestRunPages:
    def test_stops_at_empty_page(self, release_factory, now):
        feed = StaticFeed({
            1: page_of(release_factory, 2, "p1"),
            2: page_of(release_factory, 2, "p2"),
        })

        result = asyncio.run(SyncRunner(feed, InMemoryTenderStore(), clock=lambda: now).run_pages(1, 2))

        assert result.pages_fetched == 2
        assert result.total_fetched == 4
        assert result.processed_count == 4
        assert feed.requests == [(1, 2), (2, 2), (3, 2)]

    def test_max_pages(self, release_factory, now):
        feed = StaticFeed({n: page_of(release_factory, 1, f"p{n}") for n in range(1, 6)})

        result = asyncio.run(
            SyncRunner(feed, InMemoryTenderStore(), clock=lambda: now).run_pages(2, 1, max_pages=2)
        )

        assert result.pages_fetched == 2
        assert feed.requests == [(2, 1), (3, 1)]

    def test_errors_aggregate_across_pages(self, release_factory, now):
        feed = StaticFeed({
            1: [release_factory(ocid="p1-bad", title=None), release_factory(ocid="p1-ok")],
            2: [release_factory(ocid="p2-bad", title=None)],
        })

        result = asyncio.run(SyncRunner(feed, InMemoryTenderStore(), clock=lambda: now).run_pages())

        assert result.error_count == 2
        assert result.processed_count == 1
        assert [e.split(":")[0] for e in result.errors] == [
            "Failed to process tender p1-bad",
            "Failed to process tender p2-bad",
        ]

    def test_cancel_stops_before_next_fetch(self, release_factory, now):
        store = InMemoryTenderStore()
        feed = StaticFeed({n: page_of(release_factory, 1, f"p{n}") for n in range(1, 6)})
        runner = SyncRunner(feed, store, clock=lambda: now)

        class CancellingFeed(StaticFeed):
            async def fetch_page(self, page_number, page_size):
                releases = await feed.fetch_page(page_number, page_size)
                if page_number == 2:
                    runner.cancel()
                return releases

        runner.feed = CancellingFeed()
        result = asyncio.run(runner.run_pages())

        # The page in progress finishes; no further fetch happens
        assert result.cancelled
        assert result.pages_fetched == 2
        assert feed.requests == [(1, 100), (2, 100)]
        assert len(store) == 2

    def test_fetch_failure_carries_partial_result(self, release_factory, now):
        feed = FailingFeed({1: page_of(release_factory, 3)}, fail_on=2)

        with pytest.raises(SyncError) as exc_info:
            asyncio.run(SyncRunner(feed, InMemoryTenderStore(), clock=lambda: now).run_pages())

        partial = exc_info.value.result
        assert isinstance(partial, SyncRunResult)
        assert partial.pages_fetched == 1
        assert partial.processed_count == 3


class TestRunSync:
    @pytest.fixture
    def config(self) -> AppConfig:
        return AppConfig.model_validate({
            "database": {"url": "sqlite://"},
            "sync": {"page_number": 1, "page_size": 5},
        })

    @pytest.fixture
    def feed(self, monkeypatch, release_factory):
        feed = StaticFeed({1: page_of(release_factory, 2), 2: page_of(release_factory, 1, "second")})
        monkeypatch.setattr(
            OcdsFeedClient,
            "from_config",
            classmethod(lambda cls, config, transport=None: feed),
        )
        return feed

    def test_dry_run_uses_config_defaults(self, config, feed):
        hooked = []

        result = asyncio.run(run_sync(config, dry_run=True, runner_hook=hooked.append))

        assert result.processed_count == 2
        assert feed.requests == [(1, 5)]
        assert isinstance(hooked[0], SyncRunner)
        assert isinstance(hooked[0].store, InMemoryTenderStore)

    def test_explicit_page(self, config, feed):
        result = asyncio.run(run_sync(config, page_number=2, page_size=10, dry_run=True))

        assert result.processed_count == 1
        assert feed.requests == [(2, 10)]

    def test_until_empty(self, config, feed):
        result = asyncio.run(run_sync(config, pages=None, dry_run=True))

        assert result.pages_fetched == 2
        assert result.processed_count == 3

    def test_writes_to_database(self, config, feed, session_factory):
        result = asyncio.run(run_sync(config, session_factory=session_factory))

        assert result.processed_count == 2
        with session_factory() as session:
            assert TenderRepository(session).count() == 2
