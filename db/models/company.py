"""
db/models/company.py

Company model: the tenant whose NFS-e documents are ingested.
Credentials and documents are scoped to a company.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.company_credential import CompanyCredential
    from db.models.document import Document


class Company(Base, TimestampMixin):
    """
    An onboarded organization.

    Companies are maintained by the admin layer; the scheduler only reads
    them. auto_fetch marks a company as eligible for scheduled ingestion.
    """

    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    cnpj: Mapped[str] = mapped_column(
        String(18),
        nullable=False,
        unique=True,
        comment="Brazilian company registration number",
    )

    trade_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    restricted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Visible only to members when true",
    )

    auto_fetch: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Eligible for scheduled NFS-e ingestion",
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Soft-disable a company without deletion",
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    credentials: Mapped[list["CompanyCredential"]] = relationship(
        "CompanyCredential",
        back_populates="company",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="company",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (
        Index("ix_companies_active_auto_fetch", "active", "auto_fetch"),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r} cnpj={self.cnpj!r}>"
