"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create tenders and tender_documents."""

    op.create_table(
        "tenders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("ocid", sa.String(length=255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("buyer_name", sa.Text(), nullable=False),
        sa.Column("buyer_contact_email", sa.Text(), nullable=True),
        sa.Column("buyer_contact_phone", sa.Text(), nullable=True),
        sa.Column("province", sa.String(length=50), nullable=False),
        sa.Column("industry", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("value_amount", sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column("value_currency", sa.Text(), nullable=False, server_default="ZAR"),
        sa.Column("submission_method", sa.Text(), nullable=False, server_default="Not specified"),
        sa.Column("language", sa.String(length=10), nullable=False, server_default="en"),
        sa.Column("date_published", sa.DateTime(), nullable=False),
        sa.Column("date_closing", sa.DateTime(), nullable=False),
        sa.Column("full_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ocid"),
    )
    op.create_index("ix_tenders_province", "tenders", ["province"])
    op.create_index("ix_tenders_industry", "tenders", ["industry"])
    op.create_index("ix_tenders_status", "tenders", ["status"])
    op.create_index("ix_tenders_date_published", "tenders", ["date_published"])
    op.create_index("ix_tenders_date_closing", "tenders", ["date_closing"])
    op.create_index("ix_tenders_status_date_closing", "tenders", ["status", "date_closing"])

    op.create_table(
        "tender_documents",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tender_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("format", sa.String(length=100), nullable=True),
        sa.Column("document_type", sa.String(length=100), nullable=True),
        sa.Column("language", sa.String(length=10), nullable=False, server_default="en"),
        sa.Column("date_published", sa.DateTime(), nullable=True),
        sa.Column("date_modified", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tender_id"], ["tenders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tender_documents_tender_id", "tender_documents", ["tender_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("ix_tender_documents_tender_id", table_name="tender_documents")
    op.drop_table("tender_documents")

    op.drop_index("ix_tenders_status_date_closing", table_name="tenders")
    op.drop_index("ix_tenders_date_closing", table_name="tenders")
    op.drop_index("ix_tenders_date_published", table_name="tenders")
    op.drop_index("ix_tenders_status", table_name="tenders")
    op.drop_index("ix_tenders_industry", table_name="tenders")
    op.drop_index("ix_tenders_province", table_name="tenders")
    op.drop_table("tenders")
