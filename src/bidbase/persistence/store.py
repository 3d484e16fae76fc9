"""
Reconciliation store.

Reconciles canonical tenders into persistent storage: upsert by ocid, then
replace the tender's document set. Both steps are applied in one transaction
per record, so a re-synced tender never shows an empty or half-written
document set.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bidbase.core.errors import PersistenceError
from bidbase.core.normalize.canonical import CanonicalTender, TenderDocumentRecord
from bidbase.core.normalize.parsing import utcnow

from .models import new_id
from .repo import TenderRepository


class TenderStore(ABC):
    """Capability to upsert canonical tenders by ocid."""

    @abstractmethod
    def upsert(
        self,
        tender: CanonicalTender,
        documents: Sequence[TenderDocumentRecord],
    ) -> str:
        """Insert or fully replace a tender and its document set.

        Returns:
            Internal id of the tender

        Raises:
            PersistenceError: On any backend failure; nothing is applied
        """
        pass

    def close(self) -> None:
        pass


# =============================================================================
# SQL Store
# =============================================================================


def _shares_one_connection(session_factory: sessionmaker[Session]) -> bool:
    bind = session_factory.kw.get("bind")
    return isinstance(getattr(bind, "pool", None), StaticPool)


class SqlTenderStore(TenderStore):
    """Store backed by SQLAlchemy (SQLite or PostgreSQL).

    Safe to call from several worker threads. When the engine hands every
    thread the same connection (in-memory SQLite), upserts are serialized
    so one record's commit or rollback never ends another's transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory
        self._serial_lock = threading.Lock() if _shares_one_connection(session_factory) else None

    def upsert(
        self,
        tender: CanonicalTender,
        documents: Sequence[TenderDocumentRecord],
    ) -> str:
        try:
            with self._serial_lock or nullcontext(), self.session_factory() as session, session.begin():
                repo = TenderRepository(session)
                tender_id = repo.upsert(tender.to_dict())
                repo.replace_documents(tender_id, [d.to_dict() for d in documents])
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Database error: {e.__class__.__name__}: {e}",
                ocid=tender.ocid,
                cause=e,
            ) from e
        return tender_id


# =============================================================================
# In-Memory Store
# =============================================================================


@dataclass
class StoredTender:
    id: str
    values: dict[str, Any]
    documents: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


class InMemoryTenderStore(TenderStore):
    """Dictionary-backed store for dry runs and tests."""

    def __init__(self) -> None:
        self._tenders: dict[str, StoredTender] = {}
        self._lock = threading.Lock()
        self.upsert_calls = 0

    def upsert(
        self,
        tender: CanonicalTender,
        documents: Sequence[TenderDocumentRecord],
    ) -> str:
        values = tender.to_dict()
        docs = [d.to_dict() for d in documents]
        now = utcnow()

        with self._lock:
            self.upsert_calls += 1
            existing = self._tenders.get(tender.ocid)
            if existing is None:
                stored = StoredTender(id=new_id(), values=values, documents=docs, created_at=now, updated_at=now)
                self._tenders[tender.ocid] = stored
                return stored.id

            existing.values = values
            existing.documents = docs
            existing.updated_at = now
            return existing.id

    def get(self, ocid: str) -> StoredTender | None:
        return self._tenders.get(ocid)

    def __len__(self) -> int:
        return len(self._tenders)

    def __contains__(self, ocid: object) -> bool:
        return ocid in self._tenders
