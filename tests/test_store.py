"""Tests for the reconciliation store and the tender repository."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from bidbase.core.errors import PersistenceError
from bidbase.core.normalize.canonical import normalize_release
from bidbase.persistence.db import build_engine, make_session_factory
from bidbase.persistence.models import Base, Tender, TenderDocument
from bidbase.persistence.repo import SearchFilters, TenderRepository
from bidbase.persistence.store import InMemoryTenderStore, SqlTenderStore


DOCS = [
    {"id": "d1", "title": "Bid document", "url": "https://example.gov.za/d1.pdf", "format": "application/pdf"},
    {"id": "d2", "title": "Drawings", "url": "https://example.gov.za/d2.zip"},
]


def count_rows(session_factory, model) -> int:
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.fixture
def store(session_factory):
    return SqlTenderStore(session_factory)


class TestSqlTenderStore:
    def test_insert(self, store, session_factory, release_factory, now):
        tender, documents = normalize_release(release_factory(documents=DOCS), now=now)

        tender_id = store.upsert(tender, documents)

        with session_factory() as session:
            row = TenderRepository(session).get_by_ocid("ocds-1")
            assert row.id == tender_id
            assert row.title == "Road construction project"
            assert row.province == "Western Cape"
            assert row.status == "open"
            assert row.full_data["ocid"] == "ocds-1"
            assert sorted(d.title for d in row.documents) == ["Bid document", "Drawings"]

    def test_upsert_is_idempotent(self, store, session_factory, release_factory, now):
        tender, documents = normalize_release(release_factory(documents=DOCS), now=now)

        first_id = store.upsert(tender, documents)
        second_id = store.upsert(tender, documents)

        assert first_id == second_id
        assert count_rows(session_factory, Tender) == 1
        assert count_rows(session_factory, TenderDocument) == 2

    def test_update_replaces_fields_and_documents(self, store, session_factory, release_factory, now):
        original, original_docs = normalize_release(
            release_factory(documents=DOCS, value={"amount": 1000}), now=now
        )
        tender_id = store.upsert(original, original_docs)

        with session_factory() as session:
            created_at = TenderRepository(session).get_by_id(tender_id).created_at

        revised, revised_docs = normalize_release(
            release_factory(
                title="Road construction project (amended)",
                documents=[{"id": "d3", "title": "Addendum", "url": "https://example.gov.za/d3.pdf"}],
                awards=[{"id": "a1"}],
            ),
            now=now,
        )
        assert store.upsert(revised, revised_docs) == tender_id

        with session_factory() as session:
            row = TenderRepository(session).get_by_ocid("ocds-1")
            assert row.title == "Road construction project (amended)"
            assert row.status == "awarded"
            # Full replace: a value absent from the new release is cleared
            assert row.value_amount is None
            assert row.created_at == created_at
            assert row.updated_at >= created_at
            assert [d.title for d in row.documents] == ["Addendum"]

        assert count_rows(session_factory, TenderDocument) == 1

    def test_empty_document_set_clears_documents(self, store, session_factory, release_factory, now):
        tender, documents = normalize_release(release_factory(documents=DOCS), now=now)
        store.upsert(tender, documents)

        tender, _ = normalize_release(release_factory(), now=now)
        store.upsert(tender, [])

        assert count_rows(session_factory, TenderDocument) == 0

    def test_backend_failure_is_persistence_error(self, engine, release_factory, now):
        Base.metadata.drop_all(engine)

        store = SqlTenderStore(make_session_factory(engine))
        tender, documents = normalize_release(release_factory(), now=now)

        with pytest.raises(PersistenceError) as exc_info:
            store.upsert(tender, documents)
        assert exc_info.value.ocid == "ocds-1"
        assert exc_info.value.cause is not None

    def test_failed_document_insert_rolls_back_tender(self, store, session_factory, release_factory, now):
        tender, documents = normalize_release(release_factory(documents=DOCS), now=now)
        # Violates NOT NULL on url
        documents[1].url = None

        with pytest.raises(PersistenceError):
            store.upsert(tender, documents)

        assert count_rows(session_factory, Tender) == 0
        assert count_rows(session_factory, TenderDocument) == 0


class TestInMemoryTenderStore:
    def test_upsert_by_ocid(self, release_factory, now):
        store = InMemoryTenderStore()
        tender, documents = normalize_release(release_factory(documents=DOCS), now=now)

        first_id = store.upsert(tender, documents)
        second_id = store.upsert(tender, documents[:1])

        assert first_id == second_id
        assert len(store) == 1
        assert "ocds-1" in store
        assert store.upsert_calls == 2
        stored = store.get("ocds-1")
        assert len(stored.documents) == 1
        assert stored.updated_at >= stored.created_at


def seed(store, release_factory, now):
    """Four tenders across statuses, provinces and values."""
    rows = [
        dict(ocid="t-open-wc", title="Road construction in Cape Town", region="Western Cape",
             value={"amount": 500000}, published="2024-05-01T09:00:00Z",
             closing=(now + timedelta(days=3)).isoformat()),
        dict(ocid="t-open-gp", title="Network upgrade for municipal offices", region="Gauteng",
             buyer_name="City of Johannesburg", value={"amount": 120000}, published="2024-05-10T09:00:00Z",
             closing=(now + timedelta(days=20)).isoformat()),
        dict(ocid="t-closed", title="Catering services", region="Gauteng",
             value={"amount": 90000}, published="2024-04-01T09:00:00Z", closing="2024-04-30T00:00:00Z"),
        dict(ocid="t-awarded", title="Security guard services", region="Limpopo",
             published="2024-03-01T09:00:00Z", awards=[{"id": "a1"}]),
    ]
    for fields in rows:
        tender, documents = normalize_release(release_factory(**fields), now=now)
        store.upsert(tender, documents)


class TestSearch:
    @pytest.fixture(autouse=True)
    def seeded(self, store, release_factory, now):
        seed(store, release_factory, now)

    def search(self, session_factory, filters=None, **kwargs):
        with session_factory() as session:
            tenders, total = TenderRepository(session).search(filters or SearchFilters(), **kwargs)
            return [t.ocid for t in tenders], total

    def test_defaults_to_open(self, session_factory):
        ocids, total = self.search(session_factory)
        assert total == 2
        # Newest publication first
        assert ocids == ["t-open-gp", "t-open-wc"]

    def test_all_statuses(self, session_factory):
        _, total = self.search(session_factory, SearchFilters(status=None))
        assert total == 4

    def test_status_filter(self, session_factory):
        ocids, _ = self.search(session_factory, SearchFilters(status="awarded"))
        assert ocids == ["t-awarded"]

    def test_province_filter(self, session_factory):
        ocids, _ = self.search(session_factory, SearchFilters(status=None, province="Gauteng"))
        assert sorted(ocids) == ["t-closed", "t-open-gp"]

    def test_province_all_means_no_filter(self, session_factory):
        _, total = self.search(session_factory, SearchFilters(province="all"))
        assert total == 2

    def test_industry_filter(self, session_factory):
        ocids, _ = self.search(session_factory, SearchFilters(industry="Information Technology"))
        assert ocids == ["t-open-gp"]

    def test_search_every_word_must_match(self, session_factory):
        ocids, _ = self.search(session_factory, SearchFilters(search="road cape"))
        assert ocids == ["t-open-wc"]

        ocids, _ = self.search(session_factory, SearchFilters(search="road johannesburg"))
        assert ocids == []

    def test_search_matches_buyer(self, session_factory):
        ocids, _ = self.search(session_factory, SearchFilters(search="johannesburg"))
        assert ocids == ["t-open-gp"]

    def test_search_escapes_wildcards(self, session_factory):
        ocids, _ = self.search(session_factory, SearchFilters(status=None, search="%"))
        assert ocids == []

    def test_date_range_inclusive(self, session_factory):
        ocids, _ = self.search(
            session_factory,
            SearchFilters(date_from=date(2024, 5, 10), date_to=date(2024, 5, 10)),
        )
        assert ocids == ["t-open-gp"]

    def test_value_range(self, session_factory):
        ocids, _ = self.search(
            session_factory,
            SearchFilters(status=None, min_value=Decimal("100000"), max_value=Decimal("200000")),
        )
        assert ocids == ["t-open-gp"]

    def test_sort_and_paginate(self, session_factory):
        ocids, total = self.search(
            session_factory,
            SearchFilters(status=None),
            page=1,
            page_size=2,
            sort_by="value_amount",
            sort_order="desc",
        )
        assert total == 4
        assert len(ocids) == 2

        page_two, _ = self.search(
            session_factory,
            SearchFilters(status=None),
            page=2,
            page_size=2,
            sort_by="title",
            sort_order="asc",
        )
        assert page_two == ["t-open-wc", "t-awarded"]


class TestStats:
    @pytest.fixture(autouse=True)
    def seeded(self, store, release_factory, now):
        seed(store, release_factory, now)

    def test_platform_stats(self, session_factory, now):
        with session_factory() as session:
            stats = TenderRepository(session).get_platform_stats(now=now)

        assert stats["total_tenders"] == 4
        assert stats["open_tenders"] == 2
        assert stats["closed_tenders"] == 1
        assert stats["awarded_tenders"] == 1
        assert stats["cancelled_tenders"] == 0
        assert stats["closing_soon"] == 1
        assert stats["total_value"] == Decimal("620000")
        assert isinstance(stats["last_updated"], datetime)

    def test_filter_options(self, session_factory):
        with session_factory() as session:
            options = TenderRepository(session).get_filter_options()

        assert options["provinces"] == [
            {"value": "Gauteng", "label": "Gauteng", "count": 1},
            {"value": "Western Cape", "label": "Western Cape", "count": 1},
        ]
        industries = {o["value"]: o["count"] for o in options["industries"]}
        assert industries == {"Construction & Infrastructure": 1, "Information Technology": 1}

    def test_empty_database(self, engine):
        Base.metadata.drop_all(engine)
        Base.metadata.create_all(engine)

        with make_session_factory(engine)() as session:
            stats = TenderRepository(session).get_platform_stats()

        assert stats["total_tenders"] == 0
        assert stats["total_value"] == Decimal("0")
        assert stats["last_updated"] is None


class TestConcurrentWriters:
    @pytest.fixture
    def file_session_factory(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'concurrent.db'}")
        Base.metadata.create_all(engine)
        yield make_session_factory(engine)
        engine.dispose()

    def test_same_ocid_last_writer_wins(self, file_session_factory, release_factory, now):
        store = SqlTenderStore(file_session_factory)
        writes = []
        for writer in range(8):
            data = release_factory(
                title=f"Writer {writer} revision",
                documents=[
                    {"id": f"w{writer}-{j}", "title": f"w{writer} document {j}",
                     "url": f"https://example.gov.za/w{writer}/{j}.pdf"}
                    for j in range(writer % 3 + 1)
                ],
            )
            writes.append(normalize_release(data, now=now))

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(lambda write: store.upsert(*write), writes))

        assert len(set(ids)) == 1
        assert count_rows(file_session_factory, Tender) == 1

        with file_session_factory() as session:
            row = TenderRepository(session).get_by_ocid("ocds-1")
            writer = row.title.split()[1]
            # Row fields and document set come from the same writer
            assert {d.title.split()[0] for d in row.documents} == {f"w{writer}"}
            assert len(row.documents) == int(writer) % 3 + 1
