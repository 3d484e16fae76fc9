"""
Parsing utilities for normalizing release data.

Handles timestamps and monetary amounts from the loosely typed feed.
All timestamps are returned as naive UTC datetimes.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import dateparser


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Date Parsing
# =============================================================================


@dataclass
class ParsedDate:
    """Result of parsing a timestamp."""

    value: datetime | None
    original: str
    format_detected: str | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None


_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DATEPARSER_SETTINGS = {
    "DATE_ORDER": "DMY",
    "PREFER_DAY_OF_MONTH": "first",
    "TO_TIMEZONE": "UTC",
    "RETURN_AS_TIMEZONE_AWARE": False,
}


def parse_date(value: Any) -> ParsedDate:
    """Parse a timestamp from the feed.

    Handles:
    - datetime/date objects
    - ISO 8601 with Z or numeric offsets
    - Date-only strings (midnight UTC)
    - Anything else dateparser understands (day-first order)

    Returns:
        ParsedDate whose value is naive UTC, or None when unparseable
    """
    if value is None or isinstance(value, bool):
        return ParsedDate(value=None, original="")

    if isinstance(value, datetime):
        return ParsedDate(value=to_naive_utc(value), original=value.isoformat(), format_detected="datetime")

    if isinstance(value, date):
        return ParsedDate(
            value=datetime.combine(value, time.min),
            original=value.isoformat(),
            format_detected="date",
        )

    if not isinstance(value, str):
        return ParsedDate(value=None, original=str(value))

    original = value.strip()
    if not original:
        return ParsedDate(value=None, original=original)

    if _ISO_DATE.match(original):
        try:
            parsed = datetime.strptime(original, "%Y-%m-%d")
            return ParsedDate(value=parsed, original=original, format_detected="iso_date")
        except ValueError:
            return ParsedDate(value=None, original=original)

    # fromisoformat rejects a trailing Z before Python 3.11
    iso_text = original[:-1] + "+00:00" if original.endswith(("Z", "z")) else original
    try:
        parsed = datetime.fromisoformat(iso_text)
        return ParsedDate(value=to_naive_utc(parsed), original=original, format_detected="iso8601")
    except ValueError:
        pass

    parsed = dateparser.parse(original, settings=DATEPARSER_SETTINGS)
    if parsed is not None:
        return ParsedDate(value=to_naive_utc(parsed), original=original, format_detected="dateparser")

    return ParsedDate(value=None, original=original)


# =============================================================================
# Money Parsing
# =============================================================================


_NUMBER_CLEANUP = re.compile(r"[\s,]|^(?:ZAR|R)", re.IGNORECASE)


def parse_amount(value: Any) -> Decimal | None:
    """Parse a monetary amount into a Decimal.

    Accepts numbers and numeric strings ("1 250 000.00", "R1,500",
    "2500"). Returns None for anything else, including NaN/infinity.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = _NUMBER_CLEANUP.sub("", value.strip())
        if not text:
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not amount.is_finite():
        return None
    return amount


# =============================================================================
# Utility Functions
# =============================================================================


def normalize_whitespace(text: str | None) -> str:
    """Normalize whitespace in text."""
    if text is None:
        return ""
    return " ".join(text.split())


def clean_text(text: str | None) -> str | None:
    """Collapse whitespace; empty results become None."""
    cleaned = normalize_whitespace(text)
    return cleaned or None
