"""create companies, company_credentials and documents tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("cnpj", sa.String(length=18), nullable=False),
        sa.Column("trade_name", sa.String(length=255), nullable=True),
        sa.Column("restricted", sa.Boolean(), nullable=False),
        sa.Column("auto_fetch", sa.Boolean(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_companies"),
        sa.UniqueConstraint("cnpj", name="uq_companies_cnpj"),
    )
    op.create_index("ix_companies_active_auto_fetch", "companies", ["active", "auto_fetch"], unique=False)

    op.create_table(
        "company_credentials",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("login", sa.String(length=255), nullable=True),
        sa.Column("token", sa.Text(), nullable=True),
        sa.Column("environment", sa.String(length=16), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["company_id"],
            ["companies.id"],
            name="fk_company_credentials_company_id_companies",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_company_credentials"),
    )
    op.create_index(
        "ix_company_credentials_company_type_active",
        "company_credentials",
        ["company_id", "type", "active"],
        unique=False,
    )

    op.create_table(
        "documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("number", sa.String(length=64), nullable=False),
        sa.Column("series", sa.String(length=16), nullable=True),
        sa.Column("verification_code", sa.String(length=64), nullable=True),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("competence", sa.String(length=16), nullable=True),
        sa.Column("rps_issue_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("amount", sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column("service_value", sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column("service_code", sa.String(length=32), nullable=True),
        sa.Column("provider_cnpj", sa.String(length=18), nullable=True),
        sa.Column("provider_name", sa.String(length=255), nullable=True),
        sa.Column("provider_trade_name", sa.String(length=255), nullable=True),
        sa.Column("taker_cnpj", sa.String(length=18), nullable=True),
        sa.Column("taker_name", sa.String(length=255), nullable=True),
        sa.Column("municipal_registration", sa.String(length=32), nullable=True),
        sa.Column("document_hash", sa.String(length=64), nullable=True),
        sa.Column("is_cancelled", sa.Boolean(), nullable=False),
        sa.Column("is_substituted", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("metadata_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["company_id"],
            ["companies.id"],
            name="fk_documents_company_id_companies",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_documents"),
        sa.UniqueConstraint("company_id", "type", "number", name="uq_documents_company_type_number"),
    )
    op.create_index(
        "ix_documents_company_type_issue_date",
        "documents",
        ["company_id", "type", "issue_date"],
        unique=False,
    )
    op.create_index(
        "ix_documents_company_type_created_at",
        "documents",
        ["company_id", "type", "created_at"],
        unique=False,
    )
    op.create_index("ix_documents_status", "documents", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_documents_status", table_name="documents")
    op.drop_index("ix_documents_company_type_created_at", table_name="documents")
    op.drop_index("ix_documents_company_type_issue_date", table_name="documents")
    op.drop_table("documents")
    op.drop_index("ix_company_credentials_company_type_active", table_name="company_credentials")
    op.drop_table("company_credentials")
    op.drop_index("ix_companies_active_auto_fetch", table_name="companies")
    op.drop_table("companies")
