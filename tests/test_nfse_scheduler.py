"""
tests/test_nfse_scheduler.py

Lifecycle and sweep tests for NFSeScheduler.

Most tests inject a recording stand-in for APScheduler's BackgroundScheduler;
one test runs the real BackgroundScheduler to confirm the immediate first
sweep and a clean blocking shutdown.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import timedelta

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from app.domain.nfse import CompanyFetchOutcome, CompanyRef, FetchStatus
from app.scheduler.duration import SchedulerConfigError
from app.scheduler.nfse_scheduler import JOB_ID, NFSeScheduler
from app.services.nfse_fetch_service import NFSeFetchService
from conftest import NOW, FakeSource, FakeStore, page_of
from db.repositories.errors import CompanyNotFoundError


class RecordingBackgroundScheduler:
    def __init__(self) -> None:
        self.jobs: list[tuple] = []
        self.started = False
        self.shutdown_calls: list[bool] = []

    def add_job(self, func, **kwargs) -> None:
        self.jobs.append((func, kwargs))

    def start(self) -> None:
        self.started = True

    def shutdown(self, wait: bool = True) -> None:
        self.shutdown_calls.append(wait)


class StubFetchService:
    def __init__(self) -> None:
        self.calls: list[uuid.UUID] = []
        self.outcomes: dict[uuid.UUID, CompanyFetchOutcome] = {}
        self.raising: set[uuid.UUID] = set()
        self.fetched = threading.Event()

    def fetch_company(self, company: CompanyRef) -> CompanyFetchOutcome:
        self.calls.append(company.id)
        self.fetched.set()
        if company.id in self.raising:
            raise RuntimeError("unexpected")
        return self.outcomes.get(
            company.id,
            CompanyFetchOutcome(company_id=company.id, status=FetchStatus.SUCCESS, documents_stored=1),
        )


@pytest.fixture()
def fetch_service() -> StubFetchService:
    return StubFetchService()


@pytest.fixture()
def created() -> list[RecordingBackgroundScheduler]:
    return []


def _scheduler(store, fetch_service, settings, created=None, **kwargs) -> NFSeScheduler:
    def factory() -> RecordingBackgroundScheduler:
        instance = RecordingBackgroundScheduler()
        if created is not None:
            created.append(instance)
        return instance

    return NFSeScheduler(
        settings=settings,
        store=store,
        fetch_service=fetch_service,
        scheduler_factory=kwargs.pop("scheduler_factory", factory),
        clock=lambda: NOW,
    )


# ---------------------------------------------------------------------------
# start / stop
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_start_registers_interval_job_running_immediately(
        self, store, fetch_service, settings, created
    ) -> None:
        scheduler = _scheduler(store, fetch_service, settings, created)

        scheduler.start()

        assert scheduler.is_running() is True
        assert len(created) == 1 and created[0].started
        func, kwargs = created[0].jobs[0]
        assert func == scheduler.run_cycle
        assert kwargs["id"] == JOB_ID
        assert kwargs["next_run_time"] == NOW
        assert isinstance(kwargs["trigger"], IntervalTrigger)
        assert kwargs["trigger"].interval == timedelta(minutes=15)

    def test_start_twice_builds_one_scheduler(self, store, fetch_service, settings, created) -> None:
        scheduler = _scheduler(store, fetch_service, settings, created)

        scheduler.start()
        scheduler.start()

        assert len(created) == 1
        assert len(created[0].jobs) == 1

    def test_disabled_start_is_noop(self, store, fetch_service, settings, created) -> None:
        scheduler = _scheduler(store, fetch_service, replace(settings, enabled=False), created)

        scheduler.start()

        assert scheduler.is_running() is False
        assert created == []

    @pytest.mark.parametrize("interval", ["", "soon", "10", "-5m", "0s", "500ns"])
    def test_invalid_interval_raises_and_stays_stopped(
        self, store, fetch_service, settings, created, interval: str
    ) -> None:
        scheduler = _scheduler(store, fetch_service, replace(settings, interval=interval), created)

        with pytest.raises(SchedulerConfigError):
            scheduler.start()

        assert scheduler.is_running() is False
        assert created == []

    def test_stop_when_not_running_is_noop(self, store, fetch_service, settings, created) -> None:
        scheduler = _scheduler(store, fetch_service, settings, created)

        scheduler.stop()

        assert scheduler.is_running() is False

    def test_stop_waits_for_running_sweep(self, store, fetch_service, settings, created) -> None:
        scheduler = _scheduler(store, fetch_service, settings, created)
        scheduler.start()

        scheduler.stop()

        assert scheduler.is_running() is False
        assert created[0].shutdown_calls == [True]

    def test_restart_after_stop_builds_fresh_scheduler(self, store, fetch_service, settings, created) -> None:
        scheduler = _scheduler(store, fetch_service, settings, created)

        scheduler.start()
        scheduler.stop()
        scheduler.start()

        assert len(created) == 2
        assert scheduler.is_running() is True


# ---------------------------------------------------------------------------
# Sweeps
# ---------------------------------------------------------------------------


class TestRunCycle:
    def test_processes_every_company_in_order(self, store: FakeStore, fetch_service, settings) -> None:
        first = store.add_company(name="A")
        second = store.add_company(name="B", cnpj="98.765.432/0001-10")
        third = store.add_company(name="C", cnpj="11.222.333/0001-44")
        fetch_service.outcomes[second.id] = CompanyFetchOutcome(
            company_id=second.id, status=FetchStatus.FAILED, reason="no_credentials"
        )
        fetch_service.outcomes[third.id] = CompanyFetchOutcome(
            company_id=third.id, status=FetchStatus.NO_NEW_DATA
        )

        summary = _scheduler(store, fetch_service, settings).run_cycle()

        assert fetch_service.calls == [first.id, second.id, third.id]
        assert summary.companies_total == 3
        assert summary.companies_success == 2
        assert summary.companies_no_new_data == 1
        assert summary.companies_failed == 1
        assert summary.documents_stored == 1

    def test_unexpected_error_does_not_stop_sweep(self, store: FakeStore, fetch_service, settings) -> None:
        broken = store.add_company(name="Broken")
        healthy = store.add_company(name="Healthy", cnpj="98.765.432/0001-10")
        fetch_service.raising.add(broken.id)

        summary = _scheduler(store, fetch_service, settings).run_cycle()

        assert fetch_service.calls == [broken.id, healthy.id]
        assert summary.companies_failed == 1
        assert summary.companies_success == 1
        assert summary.outcomes[0].reason == "unexpected_error"

    def test_store_failure_counts_company_as_succeeded(self, store: FakeStore, settings) -> None:
        company = store.add_company()
        store.add_credential(company)
        source = FakeSource()
        source.responses[1] = page_of(2, page=1)
        store.failing_insert_calls = {1}
        service = NFSeFetchService(
            store=store, source=source, settings=settings, clock=lambda: NOW, sleep=lambda _: None
        )

        summary = _scheduler(store, service, settings).run_cycle()

        assert summary.companies_total == 1
        assert summary.companies_success == 1
        assert summary.companies_no_new_data == 1
        assert summary.companies_failed == 0
        assert summary.documents_stored == 0
        assert summary.outcomes[0].reason == "store_failed"

    def test_company_listing_error_yields_empty_summary(self, store: FakeStore, fetch_service, settings) -> None:
        store.add_company()
        store.fail_list_companies = True
        scheduler = _scheduler(store, fetch_service, settings)

        summary = scheduler.run_cycle()

        assert summary.companies_total == 0
        assert fetch_service.calls == []
        assert scheduler.status().last_cycle is summary


# ---------------------------------------------------------------------------
# On-demand fetch and status
# ---------------------------------------------------------------------------


class TestFetchCompanyNow:
    def test_delegates_to_fetch_service(self, store: FakeStore, fetch_service, settings) -> None:
        company = store.add_company()

        outcome = _scheduler(store, fetch_service, settings).fetch_company_now(company.id)

        assert outcome.company_id == company.id
        assert fetch_service.calls == [company.id]

    def test_unknown_company_raises(self, store: FakeStore, fetch_service, settings) -> None:
        with pytest.raises(CompanyNotFoundError):
            _scheduler(store, fetch_service, settings).fetch_company_now(uuid.uuid4())

    def test_inactive_company_raises(self, store: FakeStore, fetch_service, settings) -> None:
        company = store.add_company()
        store.inactive_company_ids.add(company.id)

        with pytest.raises(CompanyNotFoundError):
            _scheduler(store, fetch_service, settings).fetch_company_now(company.id)
        assert fetch_service.calls == []


def test_status_reflects_settings_and_running_flag(store, fetch_service, settings) -> None:
    scheduler = _scheduler(store, fetch_service, settings)
    scheduler.start()

    status = scheduler.status()

    assert status.running is True
    assert status.enabled is True
    assert status.interval == "15m"
    assert status.fetch_days_back == 7
    assert status.max_pages_per_run == 5
    assert status.api_delay_seconds == 2
    assert status.last_cycle is None


def test_real_background_scheduler_runs_first_cycle_immediately(store: FakeStore, fetch_service, settings) -> None:
    store.add_company()
    scheduler = NFSeScheduler(
        settings=replace(settings, interval="1h"),
        store=store,
        fetch_service=fetch_service,
    )

    scheduler.start()
    try:
        assert fetch_service.fetched.wait(timeout=10)
    finally:
        scheduler.stop()

    assert scheduler.is_running() is False
    assert scheduler.status().last_cycle is not None
    assert scheduler.status().last_cycle.companies_total == 1
