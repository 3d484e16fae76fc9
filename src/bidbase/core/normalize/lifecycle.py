"""Lifecycle status resolution for releases."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from bidbase.core.feed.models import RawRelease

from .parsing import parse_date, to_naive_utc


class TenderStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    AWARDED = "awarded"


def resolve_status(release: RawRelease, now: datetime) -> TenderStatus:
    """Resolve the canonical status of a release at time ``now``.

    Decision order: cancelled, then awarded (raw status "complete" or any
    award), then closed when the closing date is strictly before ``now``,
    otherwise open. An unparseable closing date counts as absent.
    """
    tender = release.tender
    raw_status = (tender.status or "").strip().lower() if tender else ""

    if raw_status == "cancelled":
        return TenderStatus.CANCELLED

    if raw_status == "complete" or release.awards:
        return TenderStatus.AWARDED

    if tender is not None:
        closing = parse_date(tender.tender_period_end).value
        if closing is not None and closing < to_naive_utc(now):
            return TenderStatus.CLOSED

    return TenderStatus.OPEN
