"""
app/scheduler/nfse_scheduler.py

APScheduler-based runtime for automatic NFS-e fetching.

Lifecycle
----------
``start()`` parses the configured interval, builds a ``BackgroundScheduler``
with a single worker thread and registers one interval job that sweeps every
eligible company. The first sweep runs immediately. ``stop()`` shuts the
scheduler down with ``wait=True``, so an in-flight sweep completes before it
returns; it never interrupts a company fetch already in progress.

Within a sweep companies are processed strictly one after another, which
keeps at most one request outstanding against the municipal API.

``fetch_company_now()`` runs the same per-company logic synchronously on the
caller's thread and may overlap a scheduled sweep; the store's idempotent
inserts make that safe.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from functools import lru_cache

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import (
    NFSeSchedulerSettings,
    get_external_http_settings,
    get_nfse_api_settings,
    get_nfse_scheduler_settings,
)
from app.domain.nfse import (
    CompanyFetchOutcome,
    DocumentStore,
    FetchCycleSummary,
    FetchStatus,
    SchedulerStatus,
)
from app.scheduler.duration import format_duration, parse_duration
from app.services.nfse_fetch_service import NFSeFetchService
from db.repositories.errors import CompanyNotFoundError, DocumentStoreError

logger = logging.getLogger(__name__)

JOB_ID = "nfse_fetch_cycle"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _default_scheduler_factory() -> BackgroundScheduler:
    return BackgroundScheduler(
        timezone="UTC",
        executors={"default": ThreadPoolExecutor(max_workers=1)},
        job_defaults={"coalesce": True, "max_instances": 1},
    )


class NFSeScheduler:
    """
    Owns the fetch cadence and the running flag.

    The running flag and the background scheduler handle are only touched by
    start() and stop(); the worker thread never mutates them.
    """

    def __init__(
        self,
        *,
        settings: NFSeSchedulerSettings,
        store: DocumentStore,
        fetch_service: NFSeFetchService,
        scheduler_factory: Callable[[], BackgroundScheduler] = _default_scheduler_factory,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._store = store
        self._fetch_service = fetch_service
        self._scheduler_factory = scheduler_factory
        self._clock = clock
        self._scheduler: BackgroundScheduler | None = None
        self._running = False
        self._last_cycle: FetchCycleSummary | None = None

    def start(self) -> None:
        """
        Start the background scheduler.

        No-op when disabled by configuration or already running. Raises
        SchedulerConfigError when the configured interval is invalid.
        """

        if not self._settings.enabled:
            logger.info("NFS-e scheduler is disabled")
            return

        if self._running:
            logger.warning("NFS-e scheduler already running")
            return

        try:
            interval = parse_duration(self._settings.interval)
        except ValueError:
            logger.error("Invalid scheduler interval interval=%r", self._settings.interval)
            raise

        scheduler = self._scheduler_factory()
        scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=interval.total_seconds(), timezone="UTC"),
            id=JOB_ID,
            name="NFS-e fetch for all companies",
            replace_existing=True,
            next_run_time=self._clock(),
            misfire_grace_time=None,
        )
        scheduler.start()
        self._scheduler = scheduler
        self._running = True

        logger.info(
            "Started NFS-e scheduler interval=%s fetch_days_back=%s max_pages=%s api_delay_seconds=%s",
            format_duration(interval),
            self._settings.fetch_days_back,
            self._settings.max_pages_per_run,
            self._settings.api_delay_seconds,
        )

    def stop(self) -> None:
        """
        Stop the scheduler. Blocks until an in-flight sweep has finished.
        """

        if not self._running:
            return

        logger.info("Stopping NFS-e scheduler")
        scheduler = self._scheduler
        if scheduler is not None:
            scheduler.shutdown(wait=True)
        self._scheduler = None
        self._running = False
        logger.info("NFS-e scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    def run_cycle(self) -> FetchCycleSummary:
        """
        Sweep every active company with auto_fetch enabled, one at a time.
        """

        summary = FetchCycleSummary(started_at=self._clock())
        logger.info(
            "Starting scheduled NFS-e fetch for all companies fetch_days_back=%s",
            self._settings.fetch_days_back,
        )

        try:
            companies = self._store.list_eligible_companies()
        except DocumentStoreError as exc:
            logger.error("Failed to list companies for scheduled NFS-e fetch error=%s", exc)
            summary.finished_at = self._clock()
            self._last_cycle = summary
            return summary

        summary.companies_total = len(companies)
        logger.info("Found companies for scheduled fetch companies_count=%s", len(companies))

        for company in companies:
            try:
                outcome = self._fetch_service.fetch_company(company)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Unexpected error during NFS-e fetch company_id=%s", company.id
                )
                outcome = CompanyFetchOutcome(
                    company_id=company.id,
                    status=FetchStatus.FAILED,
                    reason="unexpected_error",
                )
            summary.record(outcome)

        summary.finished_at = self._clock()
        self._last_cycle = summary
        logger.info(
            "Completed scheduled NFS-e fetch companies_total=%s companies_success=%s "
            "companies_no_new_data=%s companies_failed=%s documents_stored=%s",
            summary.companies_total,
            summary.companies_success,
            summary.companies_no_new_data,
            summary.companies_failed,
            summary.documents_stored,
        )
        return summary

    def fetch_company_now(self, company_id: uuid.UUID) -> CompanyFetchOutcome:
        """
        Fetch one company immediately on the caller's thread.

        Raises CompanyNotFoundError when the company is missing or inactive,
        and DocumentStoreError when it cannot be looked up.
        """

        company = self._store.get_active_company(company_id)
        if company is None:
            raise CompanyNotFoundError(company_id)
        return self._fetch_service.fetch_company(company)

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self._running,
            enabled=self._settings.enabled,
            interval=self._settings.interval,
            fetch_days_back=self._settings.fetch_days_back,
            max_pages_per_run=self._settings.max_pages_per_run,
            api_delay_seconds=self._settings.api_delay_seconds,
            last_cycle=self._last_cycle,
        )


@lru_cache(maxsize=1)
def get_nfse_scheduler() -> NFSeScheduler:
    """
    Build the process-wide scheduler wired to PostgreSQL and the NFS-e API.
    """

    from app.connectors.nfse_connector import NFSeConnector
    from app.repositories.nfse_document_store import NFSeDocumentStore

    settings = get_nfse_scheduler_settings()
    store = NFSeDocumentStore()
    connector = NFSeConnector(
        settings=get_nfse_api_settings(),
        http_settings=get_external_http_settings(),
    )
    return NFSeScheduler(
        settings=settings,
        store=store,
        fetch_service=NFSeFetchService(store=store, source=connector, settings=settings),
    )
