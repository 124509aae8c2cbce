"""
app/services/nfse_fetch_service.py

Per-company NFS-e fetch: credential selection, window computation, skip
check, and the paginated fetch-and-store loop.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from app.config import NFSeSchedulerSettings
from app.connectors.base import ConnectorRequestError
from app.domain.nfse import (
    TOKEN_CREDENTIAL_TYPE,
    CompanyFetchOutcome,
    CompanyRef,
    CredentialRef,
    DocumentSource,
    DocumentStore,
    FetchStatus,
    FetchWindow,
)
from app.scheduler.skip import SkipEvaluator
from app.scheduler.window import WindowCalculator
from db.repositories.errors import DocumentStoreError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NFSeFetchService:
    """
    Fetches and stores new NFS-e documents for one company at a time.

    Errors never escape fetch_company: missing credentials and failed first
    pages are reported as FAILED outcomes, store failures on individual
    pages only reduce the stored count.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        source: DocumentSource,
        settings: NFSeSchedulerSettings,
        window_calculator: WindowCalculator | None = None,
        skip_evaluator: SkipEvaluator | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._source = source
        self._settings = settings
        self._window_calculator = window_calculator or WindowCalculator(
            store, fetch_days_back=settings.fetch_days_back
        )
        self._skip_evaluator = skip_evaluator or SkipEvaluator(store, clock=clock)
        self._clock = clock
        self._sleep = sleep

    def fetch_company(self, company: CompanyRef) -> CompanyFetchOutcome:
        logger.info(
            "Fetching NFS-e documents for company company_id=%s company_name=%r company_cnpj=%s",
            company.id,
            company.name,
            company.cnpj,
        )

        try:
            credentials = self._store.list_active_credentials(company.id, TOKEN_CREDENTIAL_TYPE)
        except DocumentStoreError as exc:
            logger.error(
                "Failed to load company credentials company_id=%s error=%s",
                company.id,
                exc,
            )
            return CompanyFetchOutcome(
                company_id=company.id,
                status=FetchStatus.FAILED,
                reason="credential_lookup_failed",
            )

        if not credentials:
            logger.warning("No NFS-e credentials found for company company_id=%s", company.id)
            return CompanyFetchOutcome(
                company_id=company.id,
                status=FetchStatus.FAILED,
                reason="no_credentials",
            )

        credential = credentials[0]
        logger.info(
            "Selected credential company_id=%s credentials_count=%s credential_id=%s credential_type=%s",
            company.id,
            len(credentials),
            credential.id,
            credential.type,
        )

        end_date = self._clock()
        start_date = self._window_calculator.compute_start_date(company.id, end_date)
        window = FetchWindow(start=start_date, end=end_date)

        if start_date >= end_date:
            logger.info(
                "No new documents expected, skipping company company_id=%s reason=empty_window",
                company.id,
            )
            return CompanyFetchOutcome(
                company_id=company.id,
                status=FetchStatus.NO_NEW_DATA,
                reason="empty_window",
                window=window,
            )

        logger.info(
            "Fetching documents for date range company_id=%s start_date=%s end_date=%s "
            "config_days_back=%s calculated_days=%s",
            company.id,
            start_date.date().isoformat(),
            end_date.date().isoformat(),
            self._settings.fetch_days_back,
            window.days,
        )

        if self._skip_evaluator.should_skip(company.id, start_date, end_date):
            logger.info(
                "Skipping fetch company_id=%s reason=recent_sync_completed",
                company.id,
            )
            return CompanyFetchOutcome(
                company_id=company.id,
                status=FetchStatus.NO_NEW_DATA,
                reason="recent_sync_completed",
                window=window,
            )

        return self._fetch_pages(company, credential, window)

    def _fetch_pages(
        self,
        company: CompanyRef,
        credential: CredentialRef,
        window: FetchWindow,
    ) -> CompanyFetchOutcome:
        max_pages = self._settings.max_pages_per_run
        fetched = stored = inserted = pages = 0
        abort_reason: str | None = None

        for page in range(1, max_pages + 1):
            logger.info(
                "Fetching NFS-e documents page company_id=%s page=%s credential_id=%s",
                company.id,
                page,
                credential.id,
            )
            try:
                result = self._source.fetch_page(
                    credential=credential,
                    start_date=window.start,
                    end_date=window.end,
                    page=page,
                )
            except ConnectorRequestError as exc:
                logger.error(
                    "Failed to fetch NFS-e documents company_id=%s page=%s credential_id=%s error=%s",
                    company.id,
                    page,
                    credential.id,
                    exc,
                )
                abort_reason = "source_error"
                break

            if not result.success:
                logger.warning(
                    "NFS-e fetch was not successful company_id=%s page=%s message=%r",
                    company.id,
                    page,
                    result.message,
                )
                abort_reason = "source_unsuccessful"
                break

            if not result.documents:
                logger.info("No more documents found company_id=%s page=%s", company.id, page)
                break

            pages += 1
            page_count = len(result.documents)
            fetched += page_count

            try:
                inserted += self._store.insert_documents(company.id, result.documents)
            except DocumentStoreError as exc:
                logger.error(
                    "Failed to store NFS-e documents company_id=%s page=%s documents_count=%s error=%s",
                    company.id,
                    page,
                    page_count,
                    exc,
                )
            else:
                stored += page_count
                logger.info(
                    "Stored NFS-e documents company_id=%s page=%s documents_count=%s total_so_far=%s",
                    company.id,
                    page,
                    page_count,
                    stored,
                )

            if page_count < self._source.page_size:
                break

            if page < max_pages and self._settings.api_delay_seconds > 0:
                self._sleep(self._settings.api_delay_seconds)

        if stored > 0:
            status = FetchStatus.SUCCESS
            reason = None
        elif abort_reason is not None and pages == 0:
            status = FetchStatus.FAILED
            reason = abort_reason
        elif fetched > 0:
            status = FetchStatus.NO_NEW_DATA
            reason = "store_failed"
        else:
            status = FetchStatus.NO_NEW_DATA
            reason = abort_reason or "no_documents"

        logger.info(
            "Completed NFS-e fetch for company company_id=%s company_name=%r pages=%s "
            "total_documents=%s new_documents=%s status=%s",
            company.id,
            company.name,
            pages,
            stored,
            inserted,
            status,
        )
        return CompanyFetchOutcome(
            company_id=company.id,
            status=status,
            documents_fetched=fetched,
            documents_stored=stored,
            documents_inserted=inserted,
            pages_fetched=pages,
            reason=reason,
            window=window,
        )
