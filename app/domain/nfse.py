"""
app/domain/nfse.py

Domain models and collaborator protocols for scheduled NFS-e ingestion.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Protocol, Sequence

from db.models.company_credential import CredentialType
from db.models.document import DocumentType

NFSE_DOCUMENT_TYPE = DocumentType.NFSE
TOKEN_CREDENTIAL_TYPE = CredentialType.TOKEN


# ---------------------------------------------------------------------------
# Read models handed out by the store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompanyRef:
    id: uuid.UUID
    name: str
    cnpj: str


@dataclass(frozen=True)
class CredentialRef:
    id: uuid.UUID
    company_id: uuid.UUID
    type: str
    name: str
    token: str | None = None
    environment: str | None = None


@dataclass(frozen=True)
class StoredDocument:
    """
    Minimal projection of a persisted document used for window and skip
    decisions.
    """

    number: str
    issue_date: datetime
    created_at: datetime


# ---------------------------------------------------------------------------
# Source payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NFSeDocumentInput:
    """
    One normalized NFS-e as returned by the source, ready for insertion.
    """

    number: str
    issue_date: datetime
    type: str = NFSE_DOCUMENT_TYPE
    series: str | None = None
    verification_code: str | None = None
    competence: str | None = None
    rps_issue_date: datetime | None = None
    processing_date: datetime | None = None
    amount: Decimal | None = None
    service_value: Decimal | None = None
    service_code: str | None = None
    provider_cnpj: str | None = None
    provider_name: str | None = None
    provider_trade_name: str | None = None
    taker_cnpj: str | None = None
    taker_name: str | None = None
    municipal_registration: str | None = None
    document_hash: str | None = None
    is_cancelled: bool = False
    is_substituted: bool = False
    metadata_json: dict[str, Any] | None = None


@dataclass(frozen=True)
class NFSePageResult:
    """
    One page of the source response. success=False is an API-level refusal,
    distinct from a transport failure (which raises).
    """

    success: bool
    documents: list[NFSeDocumentInput]
    page: int
    message: str | None = None
    failed_records: int = 0


# ---------------------------------------------------------------------------
# Scheduler results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchWindow:
    start: datetime
    end: datetime

    @property
    def days(self) -> int:
        """Whole days covered by the window."""
        return (self.end - self.start) // timedelta(days=1)


class FetchStatus:
    SUCCESS = "success"
    NO_NEW_DATA = "no_new_data"
    FAILED = "failed"


@dataclass(frozen=True)
class CompanyFetchOutcome:
    company_id: uuid.UUID
    status: str
    documents_fetched: int = 0
    documents_stored: int = 0
    documents_inserted: int = 0
    pages_fetched: int = 0
    reason: str | None = None
    window: FetchWindow | None = None

    @property
    def success(self) -> bool:
        return self.status != FetchStatus.FAILED


@dataclass
class FetchCycleSummary:
    started_at: datetime
    finished_at: datetime | None = None
    companies_total: int = 0
    companies_success: int = 0
    companies_no_new_data: int = 0
    companies_failed: int = 0
    documents_stored: int = 0
    outcomes: list[CompanyFetchOutcome] = field(default_factory=list)

    def record(self, outcome: CompanyFetchOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status == FetchStatus.FAILED:
            self.companies_failed += 1
        else:
            self.companies_success += 1
            if outcome.status == FetchStatus.NO_NEW_DATA:
                self.companies_no_new_data += 1
        self.documents_stored += outcome.documents_stored


@dataclass(frozen=True)
class SchedulerStatus:
    running: bool
    enabled: bool
    interval: str
    fetch_days_back: int
    max_pages_per_run: int
    api_delay_seconds: int
    last_cycle: FetchCycleSummary | None = None


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class DocumentStore(Protocol):
    """
    Persistence capability required by the scheduler. Implementations raise
    DocumentStoreError on database failures and must be safe to call from
    several threads.
    """

    def list_eligible_companies(self) -> list[CompanyRef]:
        ...

    def get_active_company(self, company_id: uuid.UUID) -> CompanyRef | None:
        ...

    def list_active_credentials(
        self, company_id: uuid.UUID, credential_type: str
    ) -> list[CredentialRef]:
        ...

    def most_recent_document(
        self, company_id: uuid.UUID, document_type: str, order_by: str
    ) -> StoredDocument | None:
        ...

    def count_documents(
        self,
        company_id: uuid.UUID,
        document_type: str,
        start: datetime,
        end: datetime,
    ) -> int:
        ...

    def insert_documents(
        self, company_id: uuid.UUID, documents: Sequence[NFSeDocumentInput]
    ) -> int:
        ...


class DocumentSource(Protocol):
    """
    External document source. fetch_page raises ConnectorRequestError on
    transport failures.
    """

    page_size: int

    def fetch_page(
        self,
        *,
        credential: CredentialRef,
        start_date: datetime,
        end_date: datetime,
        page: int,
    ) -> NFSePageResult:
        ...
