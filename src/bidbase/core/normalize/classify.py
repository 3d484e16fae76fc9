"""
Heuristic classification of releases.

Derives the province and industry facets that the feed does not publish
directly. Both lookup tables are ordered: the first match in declaration
order wins, and that order is the tie-break when several entries match.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from bidbase.core.feed.models import RawRelease


class Province(str, Enum):
    """South African provinces plus the national fallback."""

    WESTERN_CAPE = "Western Cape"
    EASTERN_CAPE = "Eastern Cape"
    NORTHERN_CAPE = "Northern Cape"
    FREE_STATE = "Free State"
    KWAZULU_NATAL = "KwaZulu-Natal"
    GAUTENG = "Gauteng"
    MPUMALANGA = "Mpumalanga"
    LIMPOPO = "Limpopo"
    NORTH_WEST = "North West"
    NATIONAL = "National"


class IndustryCategory(str, Enum):
    CONSTRUCTION = "Construction & Infrastructure"
    INFORMATION_TECHNOLOGY = "Information Technology"
    HEALTHCARE = "Healthcare & Medical"
    EDUCATION = "Education & Training"
    TRANSPORTATION = "Transportation & Logistics"
    SECURITY = "Security & Safety"
    PROFESSIONAL_SERVICES = "Professional Services"
    UTILITIES = "Utilities & Energy"
    FOOD = "Food & Catering"
    OFFICE_SUPPLIES = "Office Supplies & Equipment"
    CLEANING = "Cleaning & Maintenance"
    OTHER = "Other"


# =============================================================================
# Lookup Tables
# =============================================================================


PROVINCE_LOOKUP: tuple[tuple[str, Province], ...] = (
    # Full province names
    ("western cape", Province.WESTERN_CAPE),
    ("eastern cape", Province.EASTERN_CAPE),
    ("northern cape", Province.NORTHERN_CAPE),
    ("free state", Province.FREE_STATE),
    ("kwazulu-natal", Province.KWAZULU_NATAL),
    ("kwazulu natal", Province.KWAZULU_NATAL),
    ("gauteng", Province.GAUTENG),
    ("mpumalanga", Province.MPUMALANGA),
    ("limpopo", Province.LIMPOPO),
    ("north west", Province.NORTH_WEST),
    ("northwest", Province.NORTH_WEST),
    # Major cities
    ("cape town", Province.WESTERN_CAPE),
    ("durban", Province.KWAZULU_NATAL),
    ("johannesburg", Province.GAUTENG),
    ("pretoria", Province.GAUTENG),
    ("tshwane", Province.GAUTENG),
    ("port elizabeth", Province.EASTERN_CAPE),
    ("gqeberha", Province.EASTERN_CAPE),
    ("bloemfontein", Province.FREE_STATE),
    ("kimberley", Province.NORTHERN_CAPE),
    ("polokwane", Province.LIMPOPO),
    ("nelspruit", Province.MPUMALANGA),
    ("mbombela", Province.MPUMALANGA),
    ("mafikeng", Province.NORTH_WEST),
    ("pietermaritzburg", Province.KWAZULU_NATAL),
    # Abbreviations
    ("wc", Province.WESTERN_CAPE),
    ("ec", Province.EASTERN_CAPE),
    ("nc", Province.NORTHERN_CAPE),
    ("fs", Province.FREE_STATE),
    ("kzn", Province.KWAZULU_NATAL),
    ("gp", Province.GAUTENG),
    ("mp", Province.MPUMALANGA),
    ("lp", Province.LIMPOPO),
    ("nw", Province.NORTH_WEST),
)

# Exact lookup for buyer region/locality
_PROVINCE_BY_KEY = dict(PROVINCE_LOOKUP)


INDUSTRY_KEYWORDS: tuple[tuple[IndustryCategory, tuple[str, ...]], ...] = (
    (IndustryCategory.CONSTRUCTION, (
        "construction", "building", "infrastructure", "road", "bridge", "housing",
        "civil engineering", "structural", "concrete", "steel", "architecture",
        "renovation", "maintenance", "repair", "plumbing", "electrical", "roofing",
    )),
    (IndustryCategory.INFORMATION_TECHNOLOGY, (
        "software", "hardware", "computer", "IT", "technology", "system",
        "network", "database", "programming", "development", "website",
        "application", "digital", "cyber", "cloud", "server", "telecommunications",
    )),
    (IndustryCategory.HEALTHCARE, (
        "medical", "health", "hospital", "clinic", "pharmaceutical", "medicine",
        "equipment", "surgical", "diagnostic", "therapy", "nursing", "dental",
        "laboratory", "radiology", "ambulance", "emergency",
    )),
    (IndustryCategory.EDUCATION, (
        "education", "school", "university", "training", "learning", "teaching",
        "curriculum", "textbook", "classroom", "student", "academic", "research",
        "library", "educational", "course", "workshop",
    )),
    (IndustryCategory.TRANSPORTATION, (
        "transport", "vehicle", "fleet", "logistics", "delivery", "shipping",
        "freight", "cargo", "bus", "truck", "aviation", "railway", "maritime",
        "fuel", "maintenance", "parts",
    )),
    (IndustryCategory.SECURITY, (
        "security", "safety", "guard", "surveillance", "alarm", "protection",
        "fire", "emergency", "rescue", "police", "enforcement", "monitoring",
        "access control", "CCTV", "patrol",
    )),
    (IndustryCategory.PROFESSIONAL_SERVICES, (
        "consulting", "advisory", "legal", "accounting", "audit", "financial",
        "management", "strategy", "planning", "analysis", "research",
        "professional", "expertise", "specialist",
    )),
    (IndustryCategory.UTILITIES, (
        "electricity", "water", "gas", "energy", "power", "utility", "renewable",
        "solar", "wind", "generator", "transmission", "distribution", "meter",
        "infrastructure", "grid",
    )),
    (IndustryCategory.FOOD, (
        "food", "catering", "meal", "kitchen", "restaurant", "nutrition",
        "beverage", "cooking", "dining", "cafeteria", "supply", "grocery",
    )),
    (IndustryCategory.OFFICE_SUPPLIES, (
        "office", "furniture", "stationery", "equipment", "supplies", "paper",
        "printing", "copier", "desk", "chair", "filing", "storage",
    )),
    (IndustryCategory.CLEANING, (
        "cleaning", "maintenance", "janitorial", "housekeeping", "sanitation",
        "waste", "hygiene", "pest control", "landscaping", "gardening",
    )),
)


# =============================================================================
# Matching
# =============================================================================


def _contains(text: str, term: str) -> bool:
    """Substring match against lower-cased text.

    Terms are not lower-cased, so upper-case table entries ("IT", "CCTV")
    never match.
    """
    return term in text


def lookup_province(value: str | None) -> Province | None:
    """Exact lookup of a region or locality name."""
    if not value:
        return None
    return _PROVINCE_BY_KEY.get(value.strip().lower())


def _join(parts: Iterable[str | None]) -> str:
    return " ".join(p for p in parts if p)


# =============================================================================
# Classifiers
# =============================================================================


def derive_province(release: RawRelease) -> Province:
    """Derive the release's province.

    Priority, first match wins:
    1. buyer party postal region (exact lookup)
    2. buyer party locality (exact lookup)
    3. any lookup key found in the tender title + description
    4. National
    """
    buyer = release.buyer_party
    address = buyer.address if buyer else None

    if address is not None:
        for value in (address.region, address.locality):
            province = lookup_province(value)
            if province is not None:
                return province

    tender = release.tender
    if tender is not None:
        text = _join((tender.title, tender.description)).lower()
        if text:
            for key, province in PROVINCE_LOOKUP:
                if _contains(text, key):
                    return province

    return Province.NATIONAL


def categorize_industry(release: RawRelease) -> IndustryCategory:
    """Derive the release's industry category.

    Scans title + description + the first item's classification
    description; returns the first category in table order with a
    matching keyword, else Other.
    """
    tender = release.tender
    if tender is None:
        return IndustryCategory.OTHER

    classification = None
    if tender.items and tender.items[0].classification is not None:
        classification = tender.items[0].classification.description

    text = _join((tender.title, tender.description, classification)).lower()
    if not text:
        return IndustryCategory.OTHER

    for category, keywords in INDUSTRY_KEYWORDS:
        for keyword in keywords:
            if _contains(text, keyword):
                return category

    return IndustryCategory.OTHER
