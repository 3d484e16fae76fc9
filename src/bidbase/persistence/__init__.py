"""Database persistence layer."""

from .db import build_engine, get_engine, get_session, init_db, make_session_factory
from .models import Base, Tender, TenderDocument
from .repo import SearchFilters, TenderRepository
from .store import InMemoryTenderStore, SqlTenderStore, TenderStore

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "init_db",
    "make_session_factory",
    "Base",
    "Tender",
    "TenderDocument",
    "SearchFilters",
    "TenderRepository",
    "InMemoryTenderStore",
    "SqlTenderStore",
    "TenderStore",
]
