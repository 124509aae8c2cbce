"""
app/schemas package marker.
"""

from app.schemas.nfse import (
    CompanyFetchOutcomeResponse,
    DocumentListResponse,
    DocumentResponse,
    FetchCycleSummaryResponse,
    SchedulerStatusResponse,
)

__all__ = [
    "CompanyFetchOutcomeResponse",
    "DocumentListResponse",
    "DocumentResponse",
    "FetchCycleSummaryResponse",
    "SchedulerStatusResponse",
]
