"""
Schemas for scheduler status, on-demand fetch and document listing endpoints.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.nfse import CompanyFetchOutcome, FetchCycleSummary, SchedulerStatus


class FetchWindowResponse(BaseModel):
    start: datetime
    end: datetime


class CompanyFetchOutcomeResponse(BaseModel):
    company_id: UUID
    status: str
    success: bool
    documents_fetched: int = Field(..., ge=0)
    documents_stored: int = Field(..., ge=0)
    documents_inserted: int = Field(..., ge=0)
    pages_fetched: int = Field(..., ge=0)
    reason: str | None = None
    window: FetchWindowResponse | None = None

    @classmethod
    def from_outcome(cls, outcome: CompanyFetchOutcome) -> "CompanyFetchOutcomeResponse":
        window = None
        if outcome.window is not None:
            window = FetchWindowResponse(start=outcome.window.start, end=outcome.window.end)
        return cls(
            company_id=outcome.company_id,
            status=outcome.status,
            success=outcome.success,
            documents_fetched=outcome.documents_fetched,
            documents_stored=outcome.documents_stored,
            documents_inserted=outcome.documents_inserted,
            pages_fetched=outcome.pages_fetched,
            reason=outcome.reason,
            window=window,
        )


class FetchCycleSummaryResponse(BaseModel):
    started_at: datetime
    finished_at: datetime | None = None
    companies_total: int = Field(..., ge=0)
    companies_success: int = Field(..., ge=0)
    companies_no_new_data: int = Field(..., ge=0)
    companies_failed: int = Field(..., ge=0)
    documents_stored: int = Field(..., ge=0)

    @classmethod
    def from_summary(cls, summary: FetchCycleSummary) -> "FetchCycleSummaryResponse":
        return cls(
            started_at=summary.started_at,
            finished_at=summary.finished_at,
            companies_total=summary.companies_total,
            companies_success=summary.companies_success,
            companies_no_new_data=summary.companies_no_new_data,
            companies_failed=summary.companies_failed,
            documents_stored=summary.documents_stored,
        )


class SchedulerStatusResponse(BaseModel):
    running: bool
    enabled: bool
    interval: str
    fetch_days_back: int
    max_pages_per_run: int
    api_delay_seconds: int
    last_cycle: FetchCycleSummaryResponse | None = None

    @classmethod
    def from_status(cls, scheduler_status: SchedulerStatus) -> "SchedulerStatusResponse":
        last_cycle = None
        if scheduler_status.last_cycle is not None:
            last_cycle = FetchCycleSummaryResponse.from_summary(scheduler_status.last_cycle)
        return cls(
            running=scheduler_status.running,
            enabled=scheduler_status.enabled,
            interval=scheduler_status.interval,
            fetch_days_back=scheduler_status.fetch_days_back,
            max_pages_per_run=scheduler_status.max_pages_per_run,
            api_delay_seconds=scheduler_status.api_delay_seconds,
            last_cycle=last_cycle,
        )


class DocumentResponse(BaseModel):
    id: UUID
    company_id: UUID
    type: str
    number: str
    series: str | None = None
    verification_code: str | None = None
    issue_date: datetime
    competence: str | None = None
    amount: Decimal | None = None
    service_value: Decimal | None = None
    service_code: str | None = None
    provider_cnpj: str | None = None
    provider_name: str | None = None
    taker_cnpj: str | None = None
    taker_name: str | None = None
    is_cancelled: bool
    is_substituted: bool
    status: str
    metadata_json: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse] = Field(default_factory=list)
    pagination: PaginationResponse
