"""
Repository pattern for database operations.

Provides the tender write path (native upsert by ocid plus document set
replacement) and the read path behind the search, statistics and facet
endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import and_, delete, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, selectinload

from bidbase.core.normalize.parsing import utcnow

from .models import Tender, TenderDocument, new_id


# Columns never overwritten by a conflicting upsert
_IMMUTABLE_COLUMNS = {"id", "ocid", "created_at"}

SORT_COLUMNS = {
    "date_published": Tender.date_published,
    "date_closing": Tender.date_closing,
    "value_amount": Tender.value_amount,
    "title": Tender.title,
}

CLOSING_SOON_WINDOW = timedelta(days=7)

# Facet value meaning "no filter"
ALL = "all"


@dataclass
class SearchFilters:
    """Filters for tender search."""

    search: str | None = None
    province: str | None = None
    industry: str | None = None
    status: str | None = "open"
    date_from: date | None = None
    date_to: date | None = None
    min_value: Decimal | None = None
    max_value: Decimal | None = None


# =============================================================================
# Tender Repository
# =============================================================================


class TenderRepository:
    """Repository for Tender operations."""

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    def _insert_for_dialect(self) -> Any:
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite.insert
        if dialect == "postgresql":
            return postgresql.insert
        raise NotImplementedError(f"Native upsert not supported for dialect: {dialect}")

    def upsert(self, values: dict[str, Any], now: datetime | None = None) -> str:
        """Insert or fully replace a tender keyed by ocid.

        Uses the backend's atomic INSERT ... ON CONFLICT so that concurrent
        runs resolve to last-writer-wins.

        Returns:
            Internal id of the inserted or updated row
        """
        now = now or utcnow()
        insert_fn = self._insert_for_dialect()
        table = Tender.__table__

        stmt = insert_fn(table).values(
            id=new_id(),
            created_at=now,
            updated_at=now,
            **values,
        )
        update_columns = {
            column.name: stmt.excluded[column.name]
            for column in table.columns
            if column.name not in _IMMUTABLE_COLUMNS
        }
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.ocid],
            set_=update_columns,
        ).returning(table.c.id)

        return self.session.execute(stmt).scalar_one()

    def replace_documents(self, tender_id: str, documents: Sequence[dict[str, Any]]) -> int:
        """Delete all documents of a tender and insert the new set.

        Returns:
            Number of documents inserted
        """
        self.session.execute(
            delete(TenderDocument).where(TenderDocument.tender_id == tender_id)
        )
        if not documents:
            return 0

        now = utcnow()
        rows = [
            {**doc, "id": new_id(), "tender_id": tender_id, "created_at": now}
            for doc in documents
        ]
        self.session.execute(insert(TenderDocument), rows)
        return len(rows)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_by_id(self, tender_id: str) -> Tender | None:
        return self.session.get(Tender, tender_id)

    def get_by_ocid(self, ocid: str) -> Tender | None:
        """Get tender by ocid, with documents loaded."""
        stmt = (
            select(Tender)
            .options(selectinload(Tender.documents))
            .where(Tender.ocid == ocid)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_documents(self, tender_id: str) -> Sequence[TenderDocument]:
        stmt = (
            select(TenderDocument)
            .where(TenderDocument.tender_id == tender_id)
            .order_by(TenderDocument.created_at, TenderDocument.title)
        )
        return self.session.execute(stmt).scalars().all()

    def count(self) -> int:
        return self.session.execute(select(func.count(Tender.id))).scalar_one()

    def count_by_status(self) -> dict[str, int]:
        """Count tenders grouped by status."""
        stmt = select(Tender.status, func.count(Tender.id)).group_by(Tender.status)
        return {status: count for status, count in self.session.execute(stmt).all()}

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def _conditions(self, filters: SearchFilters) -> list[Any]:
        conditions = []

        if filters.status:
            conditions.append(Tender.status == filters.status)
        if filters.province and filters.province != ALL:
            conditions.append(Tender.province == filters.province)
        if filters.industry and filters.industry != ALL:
            conditions.append(Tender.industry == filters.industry)

        if filters.search and filters.search.strip():
            # Every word must appear in title, description or buyer
            for word in filters.search.split():
                conditions.append(
                    Tender.title.icontains(word, autoescape=True)
                    | Tender.description.icontains(word, autoescape=True)
                    | Tender.buyer_name.icontains(word, autoescape=True)
                )

        # Date range on publication date, both ends inclusive by day
        if filters.date_from is not None:
            start = datetime.combine(filters.date_from, datetime.min.time())
            conditions.append(Tender.date_published >= start)
        if filters.date_to is not None:
            end = datetime.combine(filters.date_to, datetime.min.time()) + timedelta(days=1)
            conditions.append(Tender.date_published < end)

        if filters.min_value is not None:
            conditions.append(Tender.value_amount >= filters.min_value)
        if filters.max_value is not None:
            conditions.append(Tender.value_amount <= filters.max_value)

        return conditions

    def search(
        self,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int = 12,
        sort_by: str = "date_published",
        sort_order: str = "desc",
    ) -> tuple[Sequence[Tender], int]:
        """Search tenders.

        Returns:
            Tuple of (tenders on the page with documents loaded, total matches)
        """
        filters = filters or SearchFilters()
        conditions = self._conditions(filters)
        where = and_(*conditions) if conditions else None

        count_stmt = select(func.count(Tender.id))
        if where is not None:
            count_stmt = count_stmt.where(where)
        total = self.session.execute(count_stmt).scalar_one()

        column = SORT_COLUMNS.get(sort_by, Tender.date_published)
        order = column.asc() if sort_order == "asc" else column.desc()

        stmt = select(Tender).options(selectinload(Tender.documents))
        if where is not None:
            stmt = stmt.where(where)
        stmt = (
            stmt.order_by(order, Tender.id)
            .limit(page_size)
            .offset(max(page - 1, 0) * page_size)
        )

        return self.session.execute(stmt).scalars().all(), total

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_platform_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Aggregate platform statistics."""
        now = now or utcnow()
        by_status = self.count_by_status()

        closing_soon = self.session.execute(
            select(func.count(Tender.id)).where(
                Tender.status == "open",
                Tender.date_closing > now,
                Tender.date_closing <= now + CLOSING_SOON_WINDOW,
            )
        ).scalar_one()

        total_value = self.session.execute(
            select(func.coalesce(func.sum(Tender.value_amount), 0)).where(
                Tender.status == "open",
                Tender.value_amount.is_not(None),
            )
        ).scalar_one()

        last_updated = self.session.execute(select(func.max(Tender.updated_at))).scalar_one()

        return {
            "total_tenders": sum(by_status.values()),
            "open_tenders": by_status.get("open", 0),
            "closed_tenders": by_status.get("closed", 0),
            "awarded_tenders": by_status.get("awarded", 0),
            "cancelled_tenders": by_status.get("cancelled", 0),
            "closing_soon": closing_soon,
            "total_value": Decimal(str(total_value)),
            "last_updated": last_updated,
        }

    def get_filter_options(self) -> dict[str, list[dict[str, Any]]]:
        """Province and industry facet counts over open tenders."""

        def facet(column: Any) -> list[dict[str, Any]]:
            stmt = (
                select(column, func.count(Tender.id))
                .where(Tender.status == "open")
                .group_by(column)
                .order_by(column)
            )
            return [
                {"value": value, "label": value, "count": count}
                for value, count in self.session.execute(stmt).all()
            ]

        return {
            "provinces": facet(Tender.province),
            "industries": facet(Tender.industry),
        }
