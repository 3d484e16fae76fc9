"""
Raw OCDS release structures as received from the feed.

Every constructor is lenient: optional members with the wrong shape become
None or empty instead of raising, so one sloppy publisher field never stops
a release from reaching the normalizer. Required-field checks happen there.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _text(value: Any) -> str | None:
    """Return a stripped string, or None for empty/non-scalar values."""
    if value is None or isinstance(value, (Mapping, list, tuple, bool)):
        return None
    text = str(value).strip()
    return text or None


@dataclass
class RawAddress:
    street_address: str | None = None
    locality: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country_name: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawAddress":
        data = _mapping(data)
        return cls(
            street_address=_text(data.get("streetAddress")),
            locality=_text(data.get("locality")),
            region=_text(data.get("region")),
            postal_code=_text(data.get("postalCode")),
            country_name=_text(data.get("countryName")),
        )


@dataclass
class RawContactPoint:
    name: str | None = None
    email: str | None = None
    telephone: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawContactPoint":
        data = _mapping(data)
        return cls(
            name=_text(data.get("name")),
            email=_text(data.get("email")),
            telephone=_text(data.get("telephone")),
        )


@dataclass
class RawParty:
    """An organization involved in the procurement (buyer, supplier, ...)."""

    id: str | None = None
    name: str | None = None
    roles: list[str] = field(default_factory=list)
    address: RawAddress | None = None
    contact_point: RawContactPoint | None = None

    @property
    def is_buyer(self) -> bool:
        return "buyer" in self.roles

    @classmethod
    def from_dict(cls, data: Any) -> "RawParty":
        data = _mapping(data)
        roles = [r.strip().lower() for r in _list(data.get("roles")) if isinstance(r, str)]
        address = data.get("address")
        contact = data.get("contactPoint")
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            roles=roles,
            address=RawAddress.from_dict(address) if isinstance(address, Mapping) else None,
            contact_point=RawContactPoint.from_dict(contact) if isinstance(contact, Mapping) else None,
        )


@dataclass
class RawBuyer:
    """The release-level buyer reference."""

    id: str | None = None
    name: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawBuyer":
        data = _mapping(data)
        return cls(id=_text(data.get("id")), name=_text(data.get("name")))


@dataclass
class RawValue:
    # Kept as received; parsed into Decimal during normalization
    amount: Any = None
    currency: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawValue":
        data = _mapping(data)
        return cls(amount=data.get("amount"), currency=_text(data.get("currency")))


@dataclass
class RawClassification:
    scheme: str | None = None
    id: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawClassification":
        data = _mapping(data)
        return cls(
            scheme=_text(data.get("scheme")),
            id=_text(data.get("id")),
            description=_text(data.get("description")),
        )


@dataclass
class RawItem:
    id: str | None = None
    description: str | None = None
    classification: RawClassification | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawItem":
        data = _mapping(data)
        classification = data.get("classification")
        return cls(
            id=_text(data.get("id")),
            description=_text(data.get("description")),
            classification=(
                RawClassification.from_dict(classification)
                if isinstance(classification, Mapping)
                else None
            ),
        )


@dataclass
class RawDocument:
    id: str | None = None
    document_type: str | None = None
    title: str | None = None
    description: str | None = None
    url: str | None = None
    format: str | None = None
    language: str | None = None
    date_published: Any = None
    date_modified: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawDocument":
        data = _mapping(data)
        return cls(
            id=_text(data.get("id")),
            document_type=_text(data.get("documentType")),
            title=_text(data.get("title")),
            description=_text(data.get("description")),
            url=_text(data.get("url")),
            format=_text(data.get("format")),
            language=_text(data.get("language")),
            date_published=data.get("datePublished"),
            date_modified=data.get("dateModified"),
        )


@dataclass
class RawTender:
    """The tender block of a release."""

    id: str | None = None
    title: str | None = None
    description: str | None = None
    status: str | None = None
    value: RawValue | None = None
    submission_method: list[str] = field(default_factory=list)
    tender_period_start: Any = None
    tender_period_end: Any = None
    items: list[RawItem] = field(default_factory=list)
    documents: list[RawDocument] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "RawTender":
        data = _mapping(data)
        period = _mapping(data.get("tenderPeriod"))
        value = data.get("value")

        submission = data.get("submissionMethod")
        if isinstance(submission, str):
            submission_method = [submission]
        else:
            submission_method = [m for m in (_text(v) for v in _list(submission)) if m]

        return cls(
            id=_text(data.get("id")),
            title=_text(data.get("title")),
            description=_text(data.get("description")),
            status=_text(data.get("status")),
            value=RawValue.from_dict(value) if isinstance(value, Mapping) else None,
            submission_method=submission_method,
            tender_period_start=period.get("startDate"),
            tender_period_end=period.get("endDate"),
            items=[RawItem.from_dict(i) for i in _list(data.get("items")) if isinstance(i, Mapping)],
            documents=[
                RawDocument.from_dict(d) for d in _list(data.get("documents")) if isinstance(d, Mapping)
            ],
        )


@dataclass
class RawAward:
    id: str | None = None
    status: str | None = None
    date: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "RawAward":
        data = _mapping(data)
        return cls(id=_text(data.get("id")), status=_text(data.get("status")), date=data.get("date"))


@dataclass
class RawRelease:
    """One OCDS release exactly as the feed published it."""

    ocid: str | None = None
    id: str | None = None
    date: Any = None
    parties: list[RawParty] = field(default_factory=list)
    buyer: RawBuyer | None = None
    tender: RawTender | None = None
    awards: list[RawAward] = field(default_factory=list)

    # Original payload, archived on the canonical record
    raw: Any = field(default=None, repr=False)

    @property
    def buyer_party(self) -> RawParty | None:
        """First party carrying the buyer role."""
        for party in self.parties:
            if party.is_buyer:
                return party
        return None

    @classmethod
    def from_dict(cls, data: Any) -> "RawRelease":
        payload = data
        data = _mapping(data)
        buyer = data.get("buyer")
        tender = data.get("tender")
        return cls(
            ocid=_text(data.get("ocid")),
            id=_text(data.get("id")),
            date=data.get("date"),
            parties=[RawParty.from_dict(p) for p in _list(data.get("parties")) if isinstance(p, Mapping)],
            buyer=RawBuyer.from_dict(buyer) if isinstance(buyer, Mapping) else None,
            tender=RawTender.from_dict(tender) if isinstance(tender, Mapping) else None,
            awards=[RawAward.from_dict(a) for a in _list(data.get("awards")) if isinstance(a, Mapping)],
            raw=payload,
        )


def coerce_release(release: RawRelease | Mapping[str, Any]) -> RawRelease:
    """Accept either a parsed release or the feed's plain mapping."""
    if isinstance(release, RawRelease):
        return release
    return RawRelease.from_dict(release)
