"""
Shared in-memory fakes for scheduler tests.

FakeStore and FakeSource implement the DocumentStore / DocumentSource
protocols without a database or network.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

from app.config import NFSeSchedulerSettings
from app.domain.nfse import (
    CompanyRef,
    CredentialRef,
    NFSeDocumentInput,
    NFSePageResult,
    StoredDocument,
)
from db.repositories.errors import DocumentStoreError

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self) -> None:
        self.companies: list[CompanyRef] = []
        self.inactive_company_ids: set[uuid.UUID] = set()
        self.credentials: dict[uuid.UUID, list[CredentialRef]] = {}
        self.documents: dict[uuid.UUID, list[StoredDocument]] = {}

        self.fail_list_companies = False
        self.fail_credentials = False
        self.fail_latest = False
        self.fail_latest_created = False
        self.fail_count = False
        self.failing_insert_calls: set[int] = set()

        self.count_calls: list[tuple[uuid.UUID, datetime, datetime]] = []
        self.latest_calls: list[tuple[uuid.UUID, str, str]] = []
        self.insert_calls: list[tuple[uuid.UUID, list[NFSeDocumentInput]]] = []

    # ── Fixture helpers ────────────────────────────────────────────────────────

    def add_company(self, name: str = "Acme Servicos", cnpj: str = "12.345.678/0001-90") -> CompanyRef:
        company = CompanyRef(id=uuid.uuid4(), name=name, cnpj=cnpj)
        self.companies.append(company)
        return company

    def add_credential(self, company: CompanyRef, name: str = "token", token: str = "secret") -> CredentialRef:
        credential = CredentialRef(
            id=uuid.uuid4(),
            company_id=company.id,
            type="prefeitura_token",
            name=name,
            token=token,
        )
        self.credentials.setdefault(company.id, []).append(credential)
        return credential

    def add_document(
        self,
        company: CompanyRef,
        *,
        issue_date: datetime,
        created_at: datetime | None = None,
        number: str | None = None,
    ) -> None:
        self.documents.setdefault(company.id, []).append(
            StoredDocument(
                number=number or str(len(self.documents.get(company.id, [])) + 1),
                issue_date=issue_date,
                created_at=created_at or issue_date,
            )
        )

    # ── DocumentStore protocol ─────────────────────────────────────────────────

    def list_eligible_companies(self) -> list[CompanyRef]:
        if self.fail_list_companies:
            raise DocumentStoreError("companies unavailable")
        return list(self.companies)

    def get_active_company(self, company_id: uuid.UUID) -> CompanyRef | None:
        if company_id in self.inactive_company_ids:
            return None
        return next((c for c in self.companies if c.id == company_id), None)

    def list_active_credentials(self, company_id: uuid.UUID, credential_type: str) -> list[CredentialRef]:
        if self.fail_credentials:
            raise DocumentStoreError("credentials unavailable")
        return [c for c in self.credentials.get(company_id, []) if c.type == credential_type]

    def most_recent_document(
        self, company_id: uuid.UUID, document_type: str, order_by: str
    ) -> StoredDocument | None:
        self.latest_calls.append((company_id, document_type, order_by))
        if self.fail_latest or (order_by == "created_at" and self.fail_latest_created):
            raise DocumentStoreError("latest document unavailable")
        documents = self.documents.get(company_id, [])
        if not documents:
            return None
        return max(documents, key=lambda d: getattr(d, order_by))

    def count_documents(
        self, company_id: uuid.UUID, document_type: str, start: datetime, end: datetime
    ) -> int:
        self.count_calls.append((company_id, start, end))
        if self.fail_count:
            raise DocumentStoreError("count unavailable")
        return sum(1 for d in self.documents.get(company_id, []) if start <= d.issue_date <= end)

    def insert_documents(self, company_id: uuid.UUID, documents: Sequence[NFSeDocumentInput]) -> int:
        self.insert_calls.append((company_id, list(documents)))
        if len(self.insert_calls) in self.failing_insert_calls:
            raise DocumentStoreError("insert failed")
        known = {d.number for d in self.documents.get(company_id, [])}
        inserted = 0
        for document in documents:
            if document.number in known:
                continue
            known.add(document.number)
            self.add_document(
                CompanyRef(id=company_id, name="", cnpj=""),
                issue_date=document.issue_date,
                created_at=NOW,
                number=document.number,
            )
            inserted += 1
        return inserted


class FakeSource:
    """
    Returns scripted responses per page number. Unscripted pages are empty.
    A scripted Exception instance is raised instead of returned.
    """

    def __init__(self, page_size: int = 3) -> None:
        self.page_size = page_size
        self.responses: dict[int, NFSePageResult | Exception] = {}
        self.calls: list[dict] = []

    def fetch_page(
        self,
        *,
        credential: CredentialRef,
        start_date: datetime,
        end_date: datetime,
        page: int,
    ) -> NFSePageResult:
        self.calls.append(
            {"credential": credential, "start_date": start_date, "end_date": end_date, "page": page}
        )
        response = self.responses.get(page)
        if response is None:
            return NFSePageResult(success=True, documents=[], page=page)
        if isinstance(response, Exception):
            raise response
        return response


def make_documents(count: int, *, first_number: int = 1, issue_date: datetime = NOW) -> list[NFSeDocumentInput]:
    return [
        NFSeDocumentInput(number=str(first_number + offset), issue_date=issue_date - timedelta(hours=offset))
        for offset in range(count)
    ]


def page_of(count: int, *, page: int, first_number: int = 1) -> NFSePageResult:
    return NFSePageResult(
        success=True,
        documents=make_documents(count, first_number=first_number),
        page=page,
    )


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture()
def settings() -> NFSeSchedulerSettings:
    return NFSeSchedulerSettings(
        enabled=True,
        interval="15m",
        fetch_days_back=7,
        max_pages_per_run=5,
        api_delay_seconds=2,
    )
