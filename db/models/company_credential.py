"""
db/models/company_credential.py

Authorization artifact for one company's municipal NFS-e API.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.company import Company


class CredentialType:
    USER_PASS = "prefeitura_user_pass"
    TOKEN = "prefeitura_token"
    MIXED = "prefeitura_mixed"


class CredentialEnvironment:
    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"


class CompanyCredential(Base, TimestampMixin):
    """
    Credential for the municipal API. Only active token credentials are used
    by the scheduler.
    """

    __tablename__ = "company_credentials"

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
        String(32),
        nullable=False,
        comment="prefeitura_token, prefeitura_user_pass, prefeitura_mixed",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    login: Mapped[str | None] = mapped_column(String(255), nullable=True)
    token: Mapped[str | None] = mapped_column(Text, nullable=True)

    environment: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=CredentialEnvironment.PRODUCTION,
    )

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    company: Mapped["Company"] = relationship("Company", back_populates="credentials")

    __table_args__ = (
        Index("ix_company_credentials_company_type_active", "company_id", "type", "active"),
    )

    def __repr__(self) -> str:
        return (
            f"<CompanyCredential id={self.id} company_id={self.company_id} "
            f"type={self.type!r} active={self.active}>"
        )
