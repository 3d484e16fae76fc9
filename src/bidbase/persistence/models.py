"""
SQLAlchemy ORM models for BidBase.

Defines the database schema:
- Tenders: canonical tender records, one per ocid
- TenderDocuments: attachments owned by a tender
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from bidbase.core.normalize.parsing import utcnow


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Base Class
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSON,
    }


# =============================================================================
# Mixins
# =============================================================================


class TimestampMixin:
    """Mixin providing created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


# =============================================================================
# Tender Model
# =============================================================================


class Tender(Base, TimestampMixin):
    """Canonical tender, unique by ocid."""

    __tablename__ = "tenders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    ocid: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Core fields
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Buyer
    buyer_name: Mapped[str] = mapped_column(Text, nullable=False)
    buyer_contact_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    buyer_contact_phone: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Derived facets
    province: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    industry: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open", index=True)

    # Value
    value_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    value_currency: Mapped[str] = mapped_column(Text, nullable=False, default="ZAR")

    submission_method: Mapped[str] = mapped_column(Text, nullable=False, default="Not specified")
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")

    # Dates
    date_published: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    date_closing: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    # Raw release (archival)
    full_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Relationships
    documents: Mapped[list["TenderDocument"]] = relationship(
        "TenderDocument",
        back_populates="tender",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_tenders_status_date_closing", "status", "date_closing"),
    )

    def __repr__(self) -> str:
        return f"<Tender(id={self.id}, ocid='{self.ocid}', status='{self.status}')>"


# =============================================================================
# Tender Document Model
# =============================================================================


class TenderDocument(Base):
    """Attachment belonging to exactly one tender."""

    __tablename__ = "tender_documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tender_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    format: Mapped[str | None] = mapped_column(String(100), nullable=True)
    document_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    date_published: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    date_modified: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    tender: Mapped["Tender"] = relationship("Tender", back_populates="documents")

    def __repr__(self) -> str:
        return f"<TenderDocument(id={self.id}, tender_id={self.tender_id}, title='{self.title[:50]}')>"
