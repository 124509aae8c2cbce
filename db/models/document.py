"""
db/models/document.py

Fiscal document ingested from an external source. Rows are insert-only from
the scheduler's point of view; (company_id, type, number) identifies a
document for idempotent re-insertion.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.company import Company

DOCUMENT_DEDUPE_CONSTRAINT = "uq_documents_company_type_number"


class DocumentType:
    NFSE = "nfse"
    NFE = "nfe"
    CTE = "cte"


class DocumentStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class Document(Base, TimestampMixin):
    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="nfse, nfe, cte",
    )
    number: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Source-assigned document number",
    )
    series: Mapped[str | None] = mapped_column(String(16), nullable=True)
    verification_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    issue_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    competence: Mapped[str | None] = mapped_column(String(16), nullable=True)
    rps_issue_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    service_value: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    service_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    provider_cnpj: Mapped[str | None] = mapped_column(String(18), nullable=True)
    provider_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_trade_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    taker_cnpj: Mapped[str | None] = mapped_column(String(18), nullable=True)
    taker_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    municipal_registration: Mapped[str | None] = mapped_column(String(32), nullable=True)
    document_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="SHA-256 of the raw source payload",
    )
    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_substituted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=DocumentStatus.PROCESSED,
        comment="pending, processing, processed, error",
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Raw source payload",
    )

    company: Mapped["Company"] = relationship("Company", back_populates="documents")

    __table_args__ = (
        UniqueConstraint("company_id", "type", "number", name=DOCUMENT_DEDUPE_CONSTRAINT),
        Index("ix_documents_company_type_issue_date", "company_id", "type", "issue_date"),
        Index("ix_documents_company_type_created_at", "company_id", "type", "created_at"),
        Index("ix_documents_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Document id={self.id} type={self.type!r} number={self.number!r}>"
