"""
app/scheduler/skip.py

Heuristic that avoids an API call when local data already looks current.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from app.domain.nfse import NFSE_DOCUMENT_TYPE, DocumentStore
from db.repositories.errors import DocumentStoreError

logger = logging.getLogger(__name__)

MIN_SKIPPABLE_DAYS = 7
LARGE_WINDOW_DAYS = 30
RECENT_ACTIVITY = timedelta(days=3)
RECENT_FETCH = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SkipEvaluator:
    """
    Decides whether a fetch window can be skipped.

    A window is skipped only when it spans more than LARGE_WINDOW_DAYS, the
    company already has documents issued in the last RECENT_ACTIVITY, and the
    newest document was ingested within RECENT_FETCH. Any store failure
    means "do not skip".
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        document_type: str = NFSE_DOCUMENT_TYPE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._document_type = document_type
        self._clock = clock

    def should_skip(self, company_id: uuid.UUID, start_date: datetime, end_date: datetime) -> bool:
        days = (end_date - start_date) // timedelta(days=1)
        if days < MIN_SKIPPABLE_DAYS:
            return False

        recent_threshold = end_date - RECENT_ACTIVITY
        try:
            recent_count = self._store.count_documents(
                company_id, self._document_type, recent_threshold, end_date
            )
        except DocumentStoreError as exc:
            logger.warning(
                "Recent document count failed, not skipping company_id=%s error=%s",
                company_id,
                exc,
            )
            return False

        if recent_count <= 0 or days <= LARGE_WINDOW_DAYS:
            return False

        logger.info(
            "Recent documents found, considering skip company_id=%s recent_doc_count=%s "
            "days_diff=%s recent_threshold=%s",
            company_id,
            recent_count,
            days,
            recent_threshold.date().isoformat(),
        )

        last_fetch = self._last_fetch_time(company_id)
        if last_fetch is None:
            return False

        since = self._clock() - last_fetch
        if since < RECENT_FETCH:
            logger.info(
                "Recent fetch detected, skipping company_id=%s last_fetch=%s time_since=%s",
                company_id,
                last_fetch.isoformat(),
                since,
            )
            return True
        return False

    def _last_fetch_time(self, company_id: uuid.UUID) -> datetime | None:
        try:
            latest = self._store.most_recent_document(
                company_id, self._document_type, order_by="created_at"
            )
        except DocumentStoreError as exc:
            logger.warning(
                "Last fetch lookup failed company_id=%s error=%s",
                company_id,
                exc,
            )
            return None
        return latest.created_at if latest is not None else None
