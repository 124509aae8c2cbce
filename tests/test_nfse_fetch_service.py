"""
tests/test_nfse_fetch_service.py

Tests for the per-company fetch loop in NFSeFetchService.

All collaborators are in-memory fakes; the clock and sleep are injected so
every run is deterministic and instant.

Coverage
--------
- Credential absence and lookup failures
- Window short-circuits (empty window, skip heuristic)
- Pagination termination: short page, empty page, page ceiling
- Inter-page delay
- Source errors and unsuccessful results
- Page-level persistence failure isolation
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from app.config import NFSeSchedulerSettings
from app.connectors.base import ConnectorRequestError
from app.domain.nfse import FetchStatus, NFSePageResult
from app.services.nfse_fetch_service import NFSeFetchService
from conftest import NOW, FakeSource, FakeStore, page_of


class _AlwaysSkip:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def should_skip(self, company_id, start_date, end_date) -> bool:
        self.calls.append((company_id, start_date, end_date))
        return True


@pytest.fixture()
def sleeps() -> list[float]:
    return []


def _service(
    store: FakeStore,
    source: FakeSource,
    settings: NFSeSchedulerSettings,
    sleeps: list[float],
    **overrides,
) -> NFSeFetchService:
    return NFSeFetchService(
        store=store,
        source=source,
        settings=settings,
        clock=lambda: NOW,
        sleep=sleeps.append,
        **overrides,
    )


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    def test_no_credentials_fails_without_fetch_or_insert(self, store, source, settings, sleeps) -> None:
        company = store.add_company()

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert outcome.status == FetchStatus.FAILED
        assert outcome.success is False
        assert outcome.reason == "no_credentials"
        assert source.calls == []
        assert store.insert_calls == []

    def test_credential_lookup_error_fails(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        store.fail_credentials = True

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert outcome.status == FetchStatus.FAILED
        assert outcome.reason == "credential_lookup_failed"
        assert source.calls == []

    def test_first_credential_is_used(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        first = store.add_credential(company, name="primary")
        store.add_credential(company, name="secondary")

        _service(store, source, settings, sleeps).fetch_company(company)

        assert source.calls[0]["credential"] == first


# ---------------------------------------------------------------------------
# Window and skip short-circuits
# ---------------------------------------------------------------------------


class TestWindow:
    def test_first_fetch_uses_lookback_window_and_page_one(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)

        _service(store, source, settings, sleeps).fetch_company(company)

        assert len(source.calls) == 1
        call = source.calls[0]
        assert call["page"] == 1
        assert call["start_date"] == datetime(2024, 3, 3, 12, 0, tzinfo=timezone.utc)
        assert call["end_date"] == NOW

    def test_empty_window_returns_no_new_data_without_fetch(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        # A document dated after "now" clamps the window start to the end.
        store.add_document(company, issue_date=NOW + timedelta(days=1))

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert outcome.status == FetchStatus.NO_NEW_DATA
        assert outcome.success is True
        assert outcome.documents_stored == 0
        assert outcome.window.start == outcome.window.end
        assert source.calls == []

    def test_skip_returns_no_new_data_without_fetch(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        skip = _AlwaysSkip()

        outcome = _service(store, source, settings, sleeps, skip_evaluator=skip).fetch_company(company)

        assert outcome.status == FetchStatus.NO_NEW_DATA
        assert outcome.reason == "recent_sync_completed"
        assert len(skip.calls) == 1
        assert source.calls == []


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class TestPagination:
    def test_short_page_stops_after_storing(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(2, page=1)

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert [c["page"] for c in source.calls] == [1]
        assert len(store.insert_calls) == 1
        assert outcome.status == FetchStatus.SUCCESS
        assert outcome.documents_stored == 2
        assert outcome.documents_inserted == 2
        assert sleeps == []

    def test_full_pages_continue_with_delay(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(3, page=1, first_number=1)
        source.responses[2] = page_of(3, page=2, first_number=4)
        source.responses[3] = page_of(1, page=3, first_number=7)

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert [c["page"] for c in source.calls] == [1, 2, 3]
        assert sleeps == [2, 2]
        assert outcome.documents_stored == 7
        assert outcome.pages_fetched == 3

    def test_empty_page_stops_loop(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(3, page=1)

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert [c["page"] for c in source.calls] == [1, 2]
        assert outcome.status == FetchStatus.SUCCESS
        assert outcome.documents_stored == 3

    def test_empty_first_page_is_no_new_data(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert outcome.status == FetchStatus.NO_NEW_DATA
        assert outcome.success is True
        assert store.insert_calls == []

    def test_page_ceiling_bounds_requests(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        for page in range(1, 10):
            source.responses[page] = page_of(3, page=page, first_number=page * 10)
        capped = replace(settings, max_pages_per_run=2)

        outcome = _service(store, source, capped, sleeps).fetch_company(company)

        assert [c["page"] for c in source.calls] == [1, 2]
        assert sleeps == [2]
        assert outcome.documents_stored == 6

    def test_zero_delay_never_sleeps(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(3, page=1, first_number=1)
        source.responses[2] = page_of(1, page=2, first_number=4)

        _service(store, source, replace(settings, api_delay_seconds=0), sleeps).fetch_company(company)

        assert sleeps == []


# ---------------------------------------------------------------------------
# Source failures
# ---------------------------------------------------------------------------


class TestSourceFailures:
    def test_error_on_first_page_fails(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = ConnectorRequestError("nfse: request failed after retries.")

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert outcome.status == FetchStatus.FAILED
        assert outcome.reason == "source_error"
        assert store.insert_calls == []

    def test_unsuccessful_first_page_fails(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = NFSePageResult(success=False, documents=[], page=1, message="token expired")

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert outcome.status == FetchStatus.FAILED
        assert outcome.reason == "source_unsuccessful"

    def test_error_on_later_page_keeps_stored_documents(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(3, page=1)
        source.responses[2] = ConnectorRequestError("boom")

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert [c["page"] for c in source.calls] == [1, 2]
        assert outcome.status == FetchStatus.SUCCESS
        assert outcome.documents_stored == 3


# ---------------------------------------------------------------------------
# Persistence failures
# ---------------------------------------------------------------------------


class TestPersistenceFailures:
    def test_failed_middle_page_does_not_stop_pagination(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(3, page=1, first_number=1)
        source.responses[2] = page_of(3, page=2, first_number=4)
        source.responses[3] = page_of(2, page=3, first_number=7)
        store.failing_insert_calls = {2}

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert len(store.insert_calls) == 3
        assert [d.number for d in store.insert_calls[2][1]] == ["7", "8"]
        assert outcome.status == FetchStatus.SUCCESS
        assert outcome.documents_fetched == 8
        assert outcome.documents_stored == 5

    def test_every_page_failing_to_store_is_no_new_data(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(2, page=1)
        store.failing_insert_calls = {1}

        outcome = _service(store, source, settings, sleeps).fetch_company(company)

        assert outcome.status == FetchStatus.NO_NEW_DATA
        assert outcome.success is True
        assert outcome.reason == "store_failed"
        assert outcome.documents_fetched == 2
        assert outcome.documents_stored == 0

    def test_reinserted_documents_count_as_stored_not_new(self, store, source, settings, sleeps) -> None:
        company = store.add_company()
        store.add_credential(company)
        source.responses[1] = page_of(2, page=1)
        service = _service(store, source, settings, sleeps)

        service.fetch_company(company)
        second = service.fetch_company(company)

        assert second.documents_stored == 2
        assert second.documents_inserted == 0
