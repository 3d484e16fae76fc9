"""Normalization: classification, lifecycle and canonical records."""

from .canonical import (
    CanonicalTender,
    TenderDocumentRecord,
    normalize_document,
    normalize_release,
)
from .classify import (
    INDUSTRY_KEYWORDS,
    PROVINCE_LOOKUP,
    IndustryCategory,
    Province,
    categorize_industry,
    derive_province,
    lookup_province,
)
from .lifecycle import TenderStatus, resolve_status
from .parsing import ParsedDate, parse_amount, parse_date, utcnow

__all__ = [
    # Canonical
    "CanonicalTender",
    "TenderDocumentRecord",
    "normalize_document",
    "normalize_release",
    # Classification
    "INDUSTRY_KEYWORDS",
    "PROVINCE_LOOKUP",
    "IndustryCategory",
    "Province",
    "categorize_industry",
    "derive_province",
    "lookup_province",
    # Lifecycle
    "TenderStatus",
    "resolve_status",
    # Parsing
    "ParsedDate",
    "parse_amount",
    "parse_date",
    "utcnow",
]
