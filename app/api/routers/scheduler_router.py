"""
app/api/routers/scheduler_router.py

NFS-e scheduler status and on-demand fetch endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_scheduler
from app.scheduler.nfse_scheduler import NFSeScheduler
from app.schemas.nfse import CompanyFetchOutcomeResponse, SchedulerStatusResponse
from db.repositories.errors import CompanyNotFoundError, DocumentStoreError

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status", response_model=SchedulerStatusResponse)
def get_scheduler_status(
    scheduler: NFSeScheduler = Depends(get_scheduler),
) -> SchedulerStatusResponse:
    return SchedulerStatusResponse.from_status(scheduler.status())


@router.post(
    "/companies/{company_id}/fetch",
    response_model=CompanyFetchOutcomeResponse,
)
def fetch_company_now(
    company_id: UUID,
    scheduler: NFSeScheduler = Depends(get_scheduler),
) -> CompanyFetchOutcomeResponse:
    """
    Fetch NFS-e documents for one company immediately.

    Runs synchronously; the response reflects the completed fetch.
    """

    try:
        outcome = scheduler.fetch_company_now(company_id)
    except CompanyNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except DocumentStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document store unavailable.",
        ) from exc

    return CompanyFetchOutcomeResponse.from_outcome(outcome)
