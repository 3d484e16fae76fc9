"""
Canonical tender model for normalized data.

Provides a clean interface between raw feed releases and database
persistence. Normalization degrades malformed optional data to defaults
and only fails when the ocid, the tender title or every buyer reference
is missing.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping

from bidbase.core.errors import NormalizationError
from bidbase.core.feed.models import RawDocument, RawRelease, coerce_release

from .classify import IndustryCategory, Province, categorize_industry, derive_province
from .lifecycle import TenderStatus, resolve_status
from .parsing import clean_text, normalize_whitespace, parse_amount, parse_date, to_naive_utc, utcnow


DEFAULT_CURRENCY = "ZAR"
DEFAULT_LANGUAGE = "en"
DEFAULT_SUBMISSION_METHOD = "Not specified"
SUBMISSION_METHOD_SEPARATOR = ", "
DEFAULT_CLOSING_WINDOW = timedelta(days=30)
UNTITLED_DOCUMENT = "Untitled document"

_CURRENCY_CODE = re.compile(r"[A-Z]{3}")


@dataclass
class TenderDocumentRecord:
    """One attachment of a canonical tender."""

    title: str
    url: str
    description: str | None = None
    format: str | None = None
    document_type: str | None = None
    language: str = DEFAULT_LANGUAGE
    date_published: datetime | None = None
    date_modified: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CanonicalTender:
    """Normalized tender ready for persistence.

    Fields are replaced wholesale on every re-sync of the same ocid.
    """

    # Required identifiers
    ocid: str
    title: str
    buyer_name: str

    # Derived facets
    province: Province
    industry: IndustryCategory
    status: TenderStatus

    # Dates (naive UTC)
    date_published: datetime
    date_closing: datetime

    description: str | None = None
    buyer_contact_email: str | None = None
    buyer_contact_phone: str | None = None

    # Value
    value_amount: Decimal | None = None
    value_currency: str = DEFAULT_CURRENCY

    submission_method: str = DEFAULT_SUBMISSION_METHOD
    language: str = DEFAULT_LANGUAGE

    # Raw payload for archival
    full_data: Any = field(default=None, repr=False)

    # Metadata
    normalization_warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to column values for persistence."""
        return {
            "ocid": self.ocid,
            "title": self.title,
            "description": self.description,
            "buyer_name": self.buyer_name,
            "buyer_contact_email": self.buyer_contact_email,
            "buyer_contact_phone": self.buyer_contact_phone,
            "province": self.province.value,
            "industry": self.industry.value,
            "value_amount": self.value_amount,
            "value_currency": self.value_currency,
            "submission_method": self.submission_method,
            "language": self.language,
            "date_published": self.date_published,
            "date_closing": self.date_closing,
            "status": self.status.value,
            "full_data": self.full_data,
        }


def normalize_release(
    release: RawRelease | Mapping[str, Any],
    now: datetime | None = None,
) -> tuple[CanonicalTender, list[TenderDocumentRecord]]:
    """Normalize one feed release to canonical form.

    Args:
        release: Parsed release or the feed's plain mapping
        now: Reference time for status resolution (default: current UTC)

    Returns:
        The canonical tender and its flattened document list

    Raises:
        NormalizationError: If ocid, tender title or buyer is missing
    """
    release = coerce_release(release)
    now = to_naive_utc(now) if now is not None else utcnow()
    warnings: list[str] = []

    # Required fields
    if not release.ocid:
        raise NormalizationError("ocid")
    ocid = release.ocid

    tender = release.tender
    title = normalize_whitespace(tender.title) if tender else ""
    if tender is None or not title:
        raise NormalizationError("tender.title", ocid=ocid)

    buyer = release.buyer_party
    buyer_name = clean_text(buyer.name) if buyer else None
    if not buyer_name and release.buyer is not None:
        buyer_name = clean_text(release.buyer.name)
    if not buyer_name:
        raise NormalizationError("buyer", ocid=ocid)

    contact = buyer.contact_point if buyer else None

    # Dates
    date_published = parse_date(release.date).value
    if date_published is None:
        if release.date is not None:
            warnings.append(f"Could not parse publication date: {release.date}")
        else:
            warnings.append("Missing publication date, using sync time")
        date_published = now

    date_closing = parse_date(tender.tender_period_end).value
    if date_closing is None:
        if tender.tender_period_end is not None:
            warnings.append(f"Could not parse closing date: {tender.tender_period_end}")
        date_closing = date_published + DEFAULT_CLOSING_WINDOW

    # Value
    value_amount = None
    value_currency = DEFAULT_CURRENCY
    if tender.value is not None:
        value_amount = parse_amount(tender.value.amount)
        if value_amount is None and tender.value.amount is not None:
            warnings.append(f"Could not parse value amount: {tender.value.amount}")
        if tender.value.currency:
            code = str(tender.value.currency).strip().upper()
            if _CURRENCY_CODE.fullmatch(code):
                value_currency = code
            else:
                warnings.append(f"Unrecognised currency code: {tender.value.currency}")

    submission_method = SUBMISSION_METHOD_SEPARATOR.join(tender.submission_method)

    canonical = CanonicalTender(
        ocid=ocid,
        title=title,
        description=clean_text(tender.description),
        buyer_name=buyer_name,
        buyer_contact_email=contact.email if contact else None,
        buyer_contact_phone=contact.telephone if contact else None,
        province=derive_province(release),
        industry=categorize_industry(release),
        status=resolve_status(release, now),
        date_published=date_published,
        date_closing=date_closing,
        value_amount=value_amount,
        value_currency=value_currency,
        submission_method=submission_method or DEFAULT_SUBMISSION_METHOD,
        language=DEFAULT_LANGUAGE,
        full_data=release.raw if release.raw is not None else asdict(release),
        normalization_warnings=warnings,
    )

    documents = []
    for document in tender.documents:
        record = normalize_document(document)
        if record is None:
            warnings.append(f"Dropped document without URL: {document.id or document.title or '?'}")
            continue
        documents.append(record)

    return canonical, documents


def normalize_document(document: RawDocument) -> TenderDocumentRecord | None:
    """Flatten a raw document; documents without a URL yield None."""
    if not document.url:
        return None

    title = clean_text(document.title) or document.id or UNTITLED_DOCUMENT

    return TenderDocumentRecord(
        title=title,
        url=document.url,
        description=clean_text(document.description),
        format=document.format,
        document_type=document.document_type,
        language=document.language or DEFAULT_LANGUAGE,
        date_published=parse_date(document.date_published).value,
        date_modified=parse_date(document.date_modified).value,
    )
