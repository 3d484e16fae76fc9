"""Shared fixtures."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta
from typing import Any

import pytest

from bidbase.persistence.db import build_engine, make_session_factory
from bidbase.persistence.models import Base


NOW = datetime(2024, 6, 1, 12, 0, 0)


def make_release(
    ocid: str | None = "ocds-1",
    title: str | None = "Road construction project",
    *,
    region: str | None = "Western Cape",
    locality: str | None = None,
    buyer_name: str = "City of Cape Town",
    description: str | None = None,
    status: str = "active",
    published: str | None = "2024-05-20T08:00:00Z",
    closing: str | None = None,
    awards: list[dict[str, Any]] | None = None,
    documents: list[dict[str, Any]] | None = None,
    value: dict[str, Any] | None = None,
    submission_method: list[str] | None = None,
    items: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build an OCDS release payload the way the feed publishes it."""
    if closing is None:
        closing = (NOW + timedelta(days=31)).isoformat() + "Z"

    address: dict[str, Any] = {}
    if region is not None:
        address["region"] = region
    if locality is not None:
        address["locality"] = locality

    tender: dict[str, Any] = {
        "id": f"{ocid}-tender" if ocid else "tender",
        "status": status,
        "tenderPeriod": {"startDate": published, "endDate": closing},
    }
    if title is not None:
        tender["title"] = title
    if description is not None:
        tender["description"] = description
    if documents is not None:
        tender["documents"] = documents
    if value is not None:
        tender["value"] = value
    if submission_method is not None:
        tender["submissionMethod"] = submission_method
    if items is not None:
        tender["items"] = items

    release: dict[str, Any] = {
        "id": f"{ocid}-release" if ocid else "release",
        "date": published,
        "parties": [
            {
                "id": "buyer-1",
                "name": buyer_name,
                "roles": ["buyer"],
                "address": address,
                "contactPoint": {"email": "tenders@example.gov.za", "telephone": "021 400 1111"},
            }
        ],
        "tender": tender,
    }
    if ocid is not None:
        release["ocid"] = ocid
    if awards is not None:
        release["awards"] = awards
    return release


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def release() -> dict[str, Any]:
    return make_release()


@pytest.fixture
def release_factory():
    def factory(**kwargs: Any) -> dict[str, Any]:
        return copy.deepcopy(make_release(**kwargs))

    return factory


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)
