"""
app/repositories/nfse_document_store.py

PostgreSQL-backed store used by the NFS-e scheduler.

Every call opens its own short-lived session, so the scheduler worker and
on-demand API requests can use one store instance concurrently.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.nfse import CompanyRef, CredentialRef, NFSeDocumentInput, StoredDocument
from db.models.company import Company
from db.models.company_credential import CompanyCredential
from db.models.document import DOCUMENT_DEDUPE_CONSTRAINT, Document, DocumentStatus
from db.repositories.errors import DocumentStoreError

_ORDERABLE_COLUMNS = {
    "issue_date": Document.issue_date,
    "created_at": Document.created_at,
}


class NFSeDocumentStore:
    """
    Read/insert access to companies, credentials and documents.

    SQLAlchemy failures are re-raised as DocumentStoreError.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory: Callable[[], Session] = SessionLocal
        else:
            self._session_factory = session_factory

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            raise DocumentStoreError(str(exc)) from exc
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Companies and credentials
    # ------------------------------------------------------------------

    def list_eligible_companies(self) -> list[CompanyRef]:
        stmt = (
            select(Company.id, Company.name, Company.cnpj)
            .where(Company.active.is_(True), Company.auto_fetch.is_(True))
            .order_by(Company.name, Company.id)
        )
        with self._session_scope() as session:
            rows = session.execute(stmt).all()
        return [CompanyRef(id=row.id, name=row.name, cnpj=row.cnpj) for row in rows]

    def get_active_company(self, company_id: uuid.UUID) -> CompanyRef | None:
        stmt = select(Company.id, Company.name, Company.cnpj).where(
            Company.id == company_id,
            Company.active.is_(True),
        )
        with self._session_scope() as session:
            row = session.execute(stmt).first()
        if row is None:
            return None
        return CompanyRef(id=row.id, name=row.name, cnpj=row.cnpj)

    def list_active_credentials(
        self,
        company_id: uuid.UUID,
        credential_type: str,
    ) -> list[CredentialRef]:
        stmt = (
            select(CompanyCredential)
            .where(
                CompanyCredential.company_id == company_id,
                CompanyCredential.active.is_(True),
                CompanyCredential.type == credential_type,
            )
            .order_by(CompanyCredential.created_at, CompanyCredential.id)
        )
        with self._session_scope() as session:
            credentials = session.scalars(stmt).all()
            return [
                CredentialRef(
                    id=credential.id,
                    company_id=credential.company_id,
                    type=credential.type,
                    name=credential.name,
                    token=credential.token,
                    environment=credential.environment,
                )
                for credential in credentials
            ]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def most_recent_document(
        self,
        company_id: uuid.UUID,
        document_type: str,
        order_by: str,
    ) -> StoredDocument | None:
        column = _ORDERABLE_COLUMNS.get(order_by)
        if column is None:
            raise ValueError(f"Unsupported order_by column: {order_by!r}")

        stmt = (
            select(Document.number, Document.issue_date, Document.created_at)
            .where(Document.company_id == company_id, Document.type == document_type)
            .order_by(column.desc())
            .limit(1)
        )
        with self._session_scope() as session:
            row = session.execute(stmt).first()
        if row is None:
            return None
        return StoredDocument(
            number=row.number,
            issue_date=row.issue_date,
            created_at=row.created_at,
        )

    def count_documents(
        self,
        company_id: uuid.UUID,
        document_type: str,
        start: datetime,
        end: datetime,
    ) -> int:
        stmt = select(func.count(Document.id)).where(
            Document.company_id == company_id,
            Document.type == document_type,
            Document.issue_date >= start,
            Document.issue_date <= end,
        )
        with self._session_scope() as session:
            return int(session.scalar(stmt) or 0)

    def insert_documents(
        self,
        company_id: uuid.UUID,
        documents: Sequence[NFSeDocumentInput],
    ) -> int:
        """
        Insert a page of documents; rows whose (company, type, number) already
        exist are ignored. Returns the number of newly inserted rows.
        """

        if not documents:
            return 0

        payloads = _deduplicate(
            [_document_payload(company_id, document) for document in documents]
        )
        stmt = (
            insert(Document)
            .values(payloads)
            .on_conflict_do_nothing(constraint=DOCUMENT_DEDUPE_CONSTRAINT)
            .returning(Document.id)
        )
        with self._session_scope() as session:
            inserted = len(session.scalars(stmt).all())
            session.commit()
        return inserted


def _document_payload(company_id: uuid.UUID, document: NFSeDocumentInput) -> dict[str, Any]:
    return {
        "id": uuid.uuid4(),
        "company_id": company_id,
        "type": document.type,
        "number": document.number,
        "series": document.series,
        "verification_code": document.verification_code,
        "issue_date": document.issue_date,
        "competence": document.competence,
        "rps_issue_date": document.rps_issue_date,
        "processing_date": document.processing_date,
        "amount": document.amount,
        "service_value": document.service_value,
        "service_code": document.service_code,
        "provider_cnpj": document.provider_cnpj,
        "provider_name": document.provider_name,
        "provider_trade_name": document.provider_trade_name,
        "taker_cnpj": document.taker_cnpj,
        "taker_name": document.taker_name,
        "municipal_registration": document.municipal_registration,
        "document_hash": document.document_hash,
        "is_cancelled": document.is_cancelled,
        "is_substituted": document.is_substituted,
        "status": DocumentStatus.PROCESSED,
        "metadata_json": document.metadata_json,
    }


def _deduplicate(payloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # Repeated numbers within one page keep the first occurrence.
    seen: set[tuple[str, str]] = set()
    unique: list[dict[str, Any]] = []
    for payload in payloads:
        key = (payload["type"], payload["number"])
        if key in seen:
            continue
        seen.add(key)
        unique.append(payload)
    return unique
