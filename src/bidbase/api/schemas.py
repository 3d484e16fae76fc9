"""
Request validation and response serialization for the HTTP API.

Validation failures are reported per field with a stable error code, e.g.
{"field": "page_size", "message": "...", "code": "INVALID_PAGE_SIZE"}.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from bidbase.core.normalize.lifecycle import TenderStatus
from bidbase.persistence.models import Tender, TenderDocument
from bidbase.persistence.repo import SORT_COLUMNS, SearchFilters


TENDER_STATUSES = [s.value for s in TenderStatus]
SORT_FIELDS = list(SORT_COLUMNS)
SORT_ORDERS = ["asc", "desc"]
PAGE_SIZES = [12, 24, 48]
MAX_SEARCH_LENGTH = 500
MAX_SYNC_PAGE_SIZE = 1000

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Model-level errors have no field location
_MODEL_ERROR_FIELDS = {
    "INVALID_DATE_RANGE": "date_range",
    "INVALID_VALUE_RANGE": "value_range",
}


def _error(code: str, message: str) -> PydanticCustomError:
    return PydanticCustomError(code, message)


def _valid_date(value: str) -> bool:
    if not _DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


# =============================================================================
# Sync Request
# =============================================================================


class SyncRequest(BaseModel):
    """Body of POST /sync-tenders; both members optional."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    page_size: int | None = Field(default=None, alias="pageSize")
    page_number: int | None = Field(default=None, alias="pageNumber")

    @field_validator("page_size")
    @classmethod
    def check_page_size(cls, v: int | None) -> int | None:
        if v is not None and not 1 <= v <= MAX_SYNC_PAGE_SIZE:
            raise _error("INVALID_PAGE_SIZE", f"Page size must be between 1 and {MAX_SYNC_PAGE_SIZE}")
        return v

    @field_validator("page_number")
    @classmethod
    def check_page_number(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise _error("INVALID_PAGE_NUMBER", "Page number must be a positive integer")
        return v


# =============================================================================
# Search Request
# =============================================================================


class TenderSearchFilters(BaseModel):
    model_config = ConfigDict(extra="ignore")

    search: str | None = None
    province: str | None = None
    industry: str | None = None
    status: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    min_value: float | None = None
    max_value: float | None = None

    @field_validator("search")
    @classmethod
    def check_search(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_SEARCH_LENGTH:
            raise _error("SEARCH_TOO_LONG", f"Search term cannot exceed {MAX_SEARCH_LENGTH} characters")
        return v

    @field_validator("province", "industry")
    @classmethod
    def check_not_blank(cls, v: str | None, info: ValidationInfo) -> str | None:
        if v is not None and not v.strip():
            name = info.field_name
            raise _error(f"{name.upper()}_EMPTY", f"{name.capitalize()} cannot be empty if provided")
        return v

    @field_validator("status")
    @classmethod
    def check_status(cls, v: str | None) -> str | None:
        if v is not None and v not in TENDER_STATUSES:
            raise _error("INVALID_STATUS", f"Status must be one of: {', '.join(TENDER_STATUSES)}")
        return v

    @field_validator("date_from", "date_to")
    @classmethod
    def check_date(cls, v: str | None, info: ValidationInfo) -> str | None:
        if v is not None and not _valid_date(v):
            label = "Date from" if info.field_name == "date_from" else "Date to"
            raise _error(f"INVALID_{info.field_name.upper()}", f"{label} must be in YYYY-MM-DD format")
        return v

    @field_validator("min_value", "max_value")
    @classmethod
    def check_value(cls, v: float | None, info: ValidationInfo) -> float | None:
        if v is not None and (v < 0 or not math.isfinite(v)):
            label = "Minimum" if info.field_name == "min_value" else "Maximum"
            code = "INVALID_MIN_VALUE" if info.field_name == "min_value" else "INVALID_MAX_VALUE"
            raise _error(code, f"{label} value must be a non-negative number")
        return v

    @model_validator(mode="after")
    def check_ranges(self) -> "TenderSearchFilters":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise _error("INVALID_DATE_RANGE", "Date from cannot be after date to")
        if self.min_value is not None and self.max_value is not None and self.min_value > self.max_value:
            raise _error("INVALID_VALUE_RANGE", "Minimum value cannot be greater than maximum value")
        return self

    def to_filters(self) -> SearchFilters:
        """Convert to repository filters; status defaults to open."""
        return SearchFilters(
            search=self.search or None,
            province=self.province,
            industry=self.industry,
            status=self.status or TenderStatus.OPEN.value,
            date_from=date.fromisoformat(self.date_from) if self.date_from else None,
            date_to=date.fromisoformat(self.date_to) if self.date_to else None,
            min_value=Decimal(str(self.min_value)) if self.min_value is not None else None,
            max_value=Decimal(str(self.max_value)) if self.max_value is not None else None,
        )


class GetTendersRequest(BaseModel):
    """Body of POST /get-tenders."""

    model_config = ConfigDict(extra="ignore")

    filters: TenderSearchFilters = Field(default_factory=TenderSearchFilters)
    page: int = 1
    page_size: int = 12
    sort_by: str = "date_published"
    sort_order: str = "desc"

    @field_validator("filters", mode="before")
    @classmethod
    def none_filters(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("page")
    @classmethod
    def check_page(cls, v: int) -> int:
        if v < 1:
            raise _error("INVALID_PAGE", "Page must be a positive integer")
        return v

    @field_validator("page_size")
    @classmethod
    def check_page_size(cls, v: int) -> int:
        if v not in PAGE_SIZES:
            raise _error("INVALID_PAGE_SIZE", f"Page size must be one of: {', '.join(map(str, PAGE_SIZES))}")
        return v

    @field_validator("sort_by")
    @classmethod
    def check_sort_by(cls, v: str) -> str:
        if v not in SORT_FIELDS:
            raise _error("INVALID_SORT_FIELD", f"Sort field must be one of: {', '.join(SORT_FIELDS)}")
        return v

    @field_validator("sort_order")
    @classmethod
    def check_sort_order(cls, v: str) -> str:
        if v not in SORT_ORDERS:
            raise _error("INVALID_SORT_ORDER", f"Sort order must be one of: {', '.join(SORT_ORDERS)}")
        return v


def validation_details(exc: ValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic ValidationError into per-field details."""
    details = []
    for error in exc.errors():
        code = error["type"]
        fields = [str(part) for part in error["loc"] if part != "filters"]
        if fields:
            field = fields[-1]
        else:
            field = _MODEL_ERROR_FIELDS.get(code, "request")
        if not code.isupper():
            # Built-in pydantic type errors, e.g. "int_parsing"
            code = f"INVALID_{field.upper()}"
        details.append({"field": field, "message": error["msg"], "code": code})
    return details


# =============================================================================
# Serialization
# =============================================================================


def document_to_dict(document: TenderDocument) -> dict[str, Any]:
    return {
        "id": document.id,
        "title": document.title,
        "description": document.description,
        "url": document.url,
        "format": document.format,
        "document_type": document.document_type,
        "language": document.language,
        "date_published": document.date_published,
        "date_modified": document.date_modified,
    }


def tender_to_dict(tender: Tender) -> dict[str, Any]:
    """Public representation of a tender (raw payload excluded)."""
    return {
        "id": tender.id,
        "ocid": tender.ocid,
        "title": tender.title,
        "description": tender.description,
        "buyer_name": tender.buyer_name,
        "buyer_contact_email": tender.buyer_contact_email,
        "buyer_contact_phone": tender.buyer_contact_phone,
        "province": tender.province,
        "industry": tender.industry,
        "value_amount": tender.value_amount,
        "value_currency": tender.value_currency,
        "submission_method": tender.submission_method,
        "language": tender.language,
        "date_published": tender.date_published,
        "date_closing": tender.date_closing,
        "status": tender.status,
        "documents": [document_to_dict(d) for d in tender.documents],
        "created_at": tender.created_at,
        "updated_at": tender.updated_at,
    }


def iso_timestamp(value: datetime) -> str:
    """Render a naive-UTC datetime as ISO 8601 with a Z suffix."""
    return value.isoformat(timespec="milliseconds") + "Z"
