"""CLI command modules."""

from . import db, sync, tenders

__all__ = [
    "db",
    "sync",
    "tenders",
]
