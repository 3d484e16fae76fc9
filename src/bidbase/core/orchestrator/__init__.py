"""Sync orchestration."""

from .runner import RecordOutcome, SyncRunner, SyncRunResult, run_sync

__all__ = [
    "RecordOutcome",
    "SyncRunner",
    "SyncRunResult",
    "run_sync",
]
