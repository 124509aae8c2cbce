"""
app/domain package marker.
"""

from app.domain.nfse import (
    CompanyFetchOutcome,
    CompanyRef,
    CredentialRef,
    FetchCycleSummary,
    FetchStatus,
    FetchWindow,
    NFSeDocumentInput,
    NFSePageResult,
    SchedulerStatus,
    StoredDocument,
)

__all__ = [
    "CompanyFetchOutcome",
    "CompanyRef",
    "CredentialRef",
    "FetchCycleSummary",
    "FetchStatus",
    "FetchWindow",
    "NFSeDocumentInput",
    "NFSePageResult",
    "SchedulerStatus",
    "StoredDocument",
]
